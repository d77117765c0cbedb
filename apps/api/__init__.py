# ===============================================================================
# AFFILIATE PLATFORM API - CENTRALIZED API MODULE 🚀
# ===============================================================================
#
# Structure:
#   - api/core/       → Shared API infrastructure (pagination, permissions, throttling)
#   - api/affiliates/ → Link, click, conversion and ledger endpoints
#
# Import Direction (CRITICAL):
#   api → apps.affiliates.*_service → apps.affiliates.models
#   Never import api modules from domain apps to avoid circular dependencies
#
