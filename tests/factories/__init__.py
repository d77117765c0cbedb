# ===============================================================================
# TEST FACTORIES - CENTRALIZED TEST DATA GENERATION
# ===============================================================================
"""
Factory module for generating affiliate test data.

Usage:
    from tests.factories import create_creator, create_link, create_click

    creator = create_creator()
    link = create_link(creator)
    click = create_click(link)
"""

from tests.factories.affiliate_factories import (
    CreatorCreationRequest,
    create_click,
    create_commission,
    create_creator,
    create_link,
    create_return,
    create_staff_user,
)

__all__ = [
    'CreatorCreationRequest',
    'create_click',
    'create_commission',
    'create_creator',
    'create_link',
    'create_return',
    'create_staff_user',
]
