"""
Affiliate API Serializers
Input validation and response shapes for link, click, conversion, return,
creator and ledger endpoints.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.affiliates.click_service import UTM_FIELDS
from apps.affiliates.ledger_service import CREATOR_ORDERINGS
from apps.affiliates.models import MONEY_MAX_DIGITS, CommissionTransaction, Creator, ReferralLink

# ===============================================================================
# INPUT SERIALIZERS
# ===============================================================================


class LinkCreateInputSerializer(serializers.Serializer):
    """Link creation request; field rules are enforced by LinkService"""

    creator_id = serializers.UUIDField()
    original_url = serializers.CharField(max_length=2048)
    custom_alias = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    description = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


class ClickInputSerializer(serializers.Serializer):
    """Click forwarded by the HTTP edge"""

    code = serializers.CharField(max_length=32)
    ip_address = serializers.IPAddressField()
    user_agent = serializers.CharField(required=False, allow_blank=True, default='')
    referrer = serializers.CharField(max_length=2048, required=False, allow_blank=True, default='')
    utm_source = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    utm_medium = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    utm_campaign = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    utm_term = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    utm_content = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def get_utm(self) -> dict:
        return {name: self.validated_data.get(name, '') for name in UTM_FIELDS}


class ConversionInputSerializer(serializers.Serializer):
    """Order-completed event"""

    order_id = serializers.CharField(max_length=100)
    order_amount = serializers.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2, min_value=0)
    session_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    link_id = serializers.UUIDField(required=False, allow_null=True)


class CommissionStatusInputSerializer(serializers.Serializer):
    """Settlement transition request"""

    status = serializers.ChoiceField(choices=[choice for choice, _label in CommissionTransaction.STATUS_CHOICES])
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CommissionFilterSerializer(serializers.Serializer):
    """Query parameters of the commission listing"""

    status = serializers.ChoiceField(
        choices=[choice for choice, _label in CommissionTransaction.STATUS_CHOICES], required=False
    )
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)


class ReturnInputSerializer(serializers.Serializer):
    """Order-returned event"""

    order_id = serializers.CharField(max_length=100)
    return_amount = serializers.DecimalField(
        max_digits=MONEY_MAX_DIGITS, decimal_places=2, min_value=Decimal('0.01')
    )
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class CreatorFilterSerializer(serializers.Serializer):
    """Query parameters of the creator listing"""

    status = serializers.ChoiceField(choices=[choice for choice, _label in Creator.STATUS_CHOICES], required=False)
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
    ordering = serializers.ChoiceField(choices=sorted(CREATOR_ORDERINGS), required=False, default='-created_at')


class CreatorStatusInputSerializer(serializers.Serializer):
    """Creator lifecycle transition"""

    status = serializers.ChoiceField(choices=[choice for choice, _label in Creator.STATUS_CHOICES])
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class SummaryFilterSerializer(serializers.Serializer):
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)


# ===============================================================================
# OUTPUT SERIALIZERS
# ===============================================================================


class ReferralLinkSerializer(serializers.ModelSerializer):
    """Link descriptor returned on creation"""

    creator_id = serializers.UUIDField(read_only=True)
    short_url = serializers.CharField(read_only=True)

    class Meta:
        model = ReferralLink
        fields = [
            'id', 'creator_id', 'link_code', 'custom_alias', 'short_url',
            'original_url', 'title', 'description', 'is_active', 'expires_at',
            'click_count', 'unique_click_count', 'conversion_count', 'created_at',
        ]
        read_only_fields = fields


class ClickResultSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    target_url = serializers.CharField()
    is_unique = serializers.BooleanField()
    link_id = serializers.CharField()
    expires_at = serializers.DateTimeField()


class CommissionTransactionSerializer(serializers.ModelSerializer):
    """Ledger entry"""

    creator_id = serializers.UUIDField(read_only=True)
    link_id = serializers.UUIDField(read_only=True)
    click_id = serializers.UUIDField(read_only=True)
    parent_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = CommissionTransaction
        fields = [
            'id', 'order_id', 'creator_id', 'link_id', 'click_id', 'parent_id',
            'commission_rate', 'order_amount', 'commission_amount',
            'status', 'type', 'notes',
            'created_at', 'processed_at', 'paid_at', 'cancelled_at',
        ]
        read_only_fields = fields


class CreatorMetricsSerializer(serializers.Serializer):
    total_clicks = serializers.IntegerField()
    total_sales = serializers.IntegerField()
    total_commission = serializers.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2)
    conversion_rate = serializers.DecimalField(max_digits=7, decimal_places=2)
    last_sale_date = serializers.DateTimeField(allow_null=True)


class PayoutEligibilitySerializer(serializers.Serializer):
    creator_id = serializers.CharField()
    total_earnings = serializers.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2)
    available_for_payout = serializers.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2)
    minimum_payout = serializers.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2)
    is_eligible = serializers.BooleanField()
    transaction_ids = serializers.ListField(child=serializers.CharField())


class TierResultSerializer(serializers.Serializer):
    tier = serializers.CharField()
    rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    changed = serializers.BooleanField()
    monthly_volume = serializers.DecimalField(max_digits=14, decimal_places=2)
    previous_rate = serializers.DecimalField(max_digits=5, decimal_places=2)


class CreatorSerializer(serializers.ModelSerializer):
    """Creator record as shown in the staff console"""

    class Meta:
        model = Creator
        fields = [
            'id', 'creator_code', 'display_name', 'email', 'status',
            'commission_rate', 'rate_overridden', 'minimum_payout',
            'total_clicks', 'total_sales', 'total_commission', 'conversion_rate',
            'last_sale_date', 'metrics_updated_at', 'approved_at', 'suspended_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class TopCreatorSerializer(serializers.Serializer):
    creator_id = serializers.CharField()
    creator_code = serializers.CharField()
    display_name = serializers.CharField()
    total_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_sales = serializers.IntegerField()


class ProgramSummarySerializer(serializers.Serializer):
    date_from = serializers.DateTimeField()
    date_to = serializers.DateTimeField()
    total_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_paid = serializers.DecimalField(max_digits=14, decimal_places=2)
    pending_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    active_creators = serializers.IntegerField()
    top_creators = TopCreatorSerializer(many=True)
