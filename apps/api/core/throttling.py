# ===============================================================================
# API THROTTLING CLASSES 🚦
# ===============================================================================

from rest_framework.throttling import UserRateThrottle


class ClickThrottle(UserRateThrottle):
    """Click recording from the HTTP edge (high volume)"""
    scope = 'affiliate_click'


class ConversionThrottle(UserRateThrottle):
    """Order-completed events from checkout"""
    scope = 'affiliate_conversion'


class AffiliateWriteThrottle(UserRateThrottle):
    """Link creation and settlement transitions"""
    scope = 'affiliate_write'


class AffiliateReadThrottle(UserRateThrottle):
    """Metrics and ledger reads"""
    scope = 'affiliate_read'
