"""
Creator affiliate models.
Creators own referral links; clicks on those links are later converted into
commission transactions, one per order.

Supports:
- Creator onboarding and status lifecycle
- Referral links with generated codes and optional custom aliases
- Click tracking with duplicate suppression fingerprints
- An append-mostly commission ledger keyed by external order id
- An audit trail of commission rate changes
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import ClassVar

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from . import config
from .types import CreatorMetrics

# ===============================================================================
# Constants
# ===============================================================================

MIN_COMMISSION_RATE = Decimal("0.00")
MAX_COMMISSION_RATE = Decimal("50.00")
DEFAULT_COMMISSION_RATE = Decimal("10.00")
DEFAULT_MINIMUM_PAYOUT = Decimal("50.00")

MONEY_MAX_DIGITS = 12
RATE_MAX_DIGITS = 5


# ===============================================================================
# Creator Model
# ===============================================================================


class Creator(models.Model):
    """
    Content creator enrolled in the affiliate program.

    The metrics fields are a derived cache rebuilt by the ledger; nothing else
    writes them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    creator_code = models.CharField(
        max_length=8,
        unique=True,
        help_text=_("Short human-facing creator code"),
    )
    display_name = models.CharField(max_length=120)
    email = models.EmailField()

    # Commission configuration
    commission_rate = models.DecimalField(
        max_digits=RATE_MAX_DIGITS,
        decimal_places=2,
        default=DEFAULT_COMMISSION_RATE,
        validators=[MinValueValidator(MIN_COMMISSION_RATE), MaxValueValidator(MAX_COMMISSION_RATE)],
        help_text=_("Current commission percentage (0-50)"),
    )
    rate_overridden = models.BooleanField(
        default=False,
        help_text=_("Rate was set manually by an admin"),
    )
    minimum_payout = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=2,
        default=DEFAULT_MINIMUM_PAYOUT,
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("pending", _("Pending Review")),
        ("approved", _("Approved")),
        ("suspended", _("Suspended")),
        ("inactive", _("Inactive")),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")

    # Cached metrics (rebuilt by LedgerService.record_metrics)
    total_clicks = models.PositiveIntegerField(default=0)
    total_sales = models.PositiveIntegerField(default=0)
    total_commission = models.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2, default=Decimal("0.00"))
    conversion_rate = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal("0.00"))
    last_sale_date = models.DateTimeField(null=True, blank=True)
    metrics_updated_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, help_text=_("Admin notes"))

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    suspended_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "affiliate_creators"
        verbose_name = _("Creator")
        verbose_name_plural = _("Creators")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["status"], name="affiliate_creator_status_idx"),
            models.Index(fields=["-total_sales"], name="affiliate_creator_sales_idx"),
        )

    def __str__(self) -> str:
        return f"{self.display_name} ({self.creator_code})"

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"

    @property
    def metrics(self) -> CreatorMetrics:
        return CreatorMetrics(
            total_clicks=self.total_clicks,
            total_sales=self.total_sales,
            total_commission=self.total_commission,
            conversion_rate=self.conversion_rate,
            last_sale_date=self.last_sale_date,
        )


# ===============================================================================
# Referral Link Model
# ===============================================================================


class ReferralLink(models.Model):
    """
    Trackable link owned by a creator.

    ``link_code`` and ``custom_alias`` share one lookup namespace; the alias is
    unique case-insensitively. Links are soft-disabled, never deleted while
    clicks or transactions reference them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    creator = models.ForeignKey(
        Creator,
        on_delete=models.PROTECT,
        related_name="links",
    )

    link_code = models.CharField(max_length=32, unique=True, help_text=_("Generated short code"))
    custom_alias = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        help_text=_("Optional human-readable alternative key"),
    )

    original_url = models.URLField(max_length=2048)
    title = models.CharField(max_length=200, blank=True)
    description = models.CharField(max_length=200, blank=True)

    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    # Counters (only ever changed through F() expressions)
    click_count = models.PositiveIntegerField(default=0)
    unique_click_count = models.PositiveIntegerField(default=0)
    conversion_count = models.PositiveIntegerField(default=0)
    last_clicked_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "affiliate_referral_links"
        verbose_name = _("Referral Link")
        verbose_name_plural = _("Referral Links")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.UniqueConstraint(Lower("custom_alias"), name="affiliate_link_alias_ci_unique"),
        )
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["creator", "-created_at"], name="affiliate_link_creator_idx"),
            models.Index(fields=["is_active"], name="affiliate_link_active_idx"),
        )

    def __str__(self) -> str:
        return f"{self.custom_alias or self.link_code} -> {self.original_url}"

    @property
    def short_url(self) -> str:
        return f"{config.get_short_link_base_url()}/{self.custom_alias or self.link_code}"

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at <= now

    def is_available(self, now=None) -> bool:
        return self.is_active and not self.is_expired(now)


# ===============================================================================
# Referral Click Model
# ===============================================================================


class ReferralClick(models.Model):
    """
    A counted visit through a referral link.

    ``session_id`` is the attribution token handed to the browser; it is a
    bearer credential. A click converts at most once.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    link = models.ForeignKey(ReferralLink, on_delete=models.PROTECT, related_name="clicks")
    creator = models.ForeignKey(Creator, on_delete=models.PROTECT, related_name="clicks")

    session_id = models.CharField(max_length=64, unique=True)

    # Visitor data (duplicate suppression and analytics only)
    ip_address = models.GenericIPAddressField()
    user_agent = models.TextField(blank=True)
    fingerprint = models.CharField(max_length=64, help_text=_("sha256 of ip|user agent"))
    referrer = models.CharField(max_length=2048, blank=True)

    DEVICE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("desktop", _("Desktop")),
        ("mobile", _("Mobile")),
        ("tablet", _("Tablet")),
    )
    device_type = models.CharField(max_length=10, choices=DEVICE_CHOICES, default="desktop")
    browser = models.CharField(max_length=50, blank=True)
    os = models.CharField(max_length=50, blank=True)

    # UTM parameters
    utm_source = models.CharField(max_length=100, blank=True)
    utm_medium = models.CharField(max_length=100, blank=True)
    utm_campaign = models.CharField(max_length=100, blank=True)
    utm_term = models.CharField(max_length=100, blank=True)
    utm_content = models.CharField(max_length=100, blank=True)

    # Conversion state
    converted = models.BooleanField(default=False)
    order_id = models.CharField(max_length=100, null=True, blank=True)
    conversion_value = models.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2, null=True, blank=True)
    converted_at = models.DateTimeField(null=True, blank=True)

    clicked_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = "affiliate_referral_clicks"
        verbose_name = _("Referral Click")
        verbose_name_plural = _("Referral Clicks")
        ordering: ClassVar[tuple[str, ...]] = ("-clicked_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["link", "fingerprint", "-clicked_at"], name="affiliate_click_dedupe_idx"),
            models.Index(fields=["link", "converted", "-clicked_at"], name="affiliate_click_open_idx"),
            models.Index(fields=["creator", "-clicked_at"], name="affiliate_click_creator_idx"),
        )

    def __str__(self) -> str:
        state = "converted" if self.converted else "open"
        return f"Click on {self.link_id} at {self.clicked_at:%Y-%m-%d %H:%M} ({state})"

    def attribution_expires_at(self):
        return self.clicked_at + config.get_attribution_window()

    def is_within_attribution_window(self, now=None) -> bool:
        now = now or timezone.now()
        return now - self.clicked_at <= config.get_attribution_window()


# ===============================================================================
# Commission Transaction Model
# ===============================================================================


class CommissionTransaction(models.Model):
    """
    Ledger entry for one attributed order, or a return against it.

    ``(order_id, type)`` is the idempotency key of the whole pipeline and the
    click relation is one-to-one, so the database itself rejects a second sale
    for the same order or the same click. Return rows carry negative amounts,
    point at their sale through ``parent`` and have no click.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    creator = models.ForeignKey(Creator, on_delete=models.PROTECT, related_name="commission_transactions")
    link = models.ForeignKey(ReferralLink, on_delete=models.PROTECT, related_name="commission_transactions")
    click = models.OneToOneField(
        ReferralClick, on_delete=models.PROTECT, null=True, blank=True, related_name="commission_transaction"
    )
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="returns",
        help_text=_("Sale this return claws back"),
    )

    order_id = models.CharField(max_length=100)

    commission_rate = models.DecimalField(max_digits=RATE_MAX_DIGITS, decimal_places=2)
    order_amount = models.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2)

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("pending", _("Pending")),
        ("approved", _("Approved")),
        ("paid", _("Paid")),
        ("cancelled", _("Cancelled")),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")

    # Statuses that count as real sales for tiers and metrics
    QUALIFYING_STATUSES: ClassVar[tuple[str, ...]] = ("approved", "paid")

    TYPE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("sale", _("Sale")),
        ("return", _("Return")),
        ("adjustment", _("Adjustment")),
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="sale")

    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    processed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "affiliate_commission_transactions"
        verbose_name = _("Commission Transaction")
        verbose_name_plural = _("Commission Transactions")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.UniqueConstraint(fields=["order_id", "type"], name="affiliate_txn_order_type_unique"),
        )
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["creator", "status", "-created_at"], name="affiliate_txn_creator_idx"),
            models.Index(fields=["status"], name="affiliate_txn_status_idx"),
        )

    def __str__(self) -> str:
        return f"{self.order_id}: {self.commission_amount} ({self.status})"

    @property
    def is_final(self) -> bool:
        return self.status in ("paid", "cancelled")


# ===============================================================================
# Tier Change Log Model
# ===============================================================================


class TierChangeLog(models.Model):
    """Append-only audit of every commission rate change."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    creator = models.ForeignKey(Creator, on_delete=models.CASCADE, related_name="tier_changes")

    previous_rate = models.DecimalField(max_digits=RATE_MAX_DIGITS, decimal_places=2)
    new_rate = models.DecimalField(max_digits=RATE_MAX_DIGITS, decimal_places=2)
    tier = models.CharField(max_length=20, blank=True)
    monthly_volume = models.DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=2, null=True, blank=True)

    SOURCE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("automatic", _("Tier Engine")),
        ("admin", _("Admin Override")),
    )
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    replaced_override = models.BooleanField(
        default=False,
        help_text=_("An automatic change replaced a manual admin rate"),
    )
    reason = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "affiliate_tier_change_log"
        verbose_name = _("Tier Change")
        verbose_name_plural = _("Tier Changes")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.creator_id}: {self.previous_rate}% -> {self.new_rate}% ({self.source})"
