# ===============================================================================
# API CORE INFRASTRUCTURE - SHARED BASE CLASSES 🏗️
# ===============================================================================

# Import all core components for easy access
from .pagination import StandardResultsSetPagination
from .permissions import IsAffiliateServiceOrStaff, IsStaffUser
from .throttling import AffiliateReadThrottle, AffiliateWriteThrottle, ClickThrottle, ConversionThrottle

# Export public API
__all__ = [
    'AffiliateReadThrottle',
    'AffiliateWriteThrottle',
    'ClickThrottle',
    'ConversionThrottle',
    'IsAffiliateServiceOrStaff',
    'IsStaffUser',
    'StandardResultsSetPagination',
]
