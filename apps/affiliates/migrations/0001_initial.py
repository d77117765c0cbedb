# Generated manually for the creator affiliate schema

import decimal
import uuid

import django.core.validators
import django.db.models.deletion
import django.db.models.functions.text
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    """
    Creators, referral links, clicks, the commission ledger and the tier change log.
    """

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Creator",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "creator_code",
                    models.CharField(help_text="Short human-facing creator code", max_length=8, unique=True),
                ),
                ("display_name", models.CharField(max_length=120)),
                ("email", models.EmailField(max_length=254)),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("10.00"),
                        help_text="Current commission percentage (0-50)",
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(decimal.Decimal("0.00")),
                            django.core.validators.MaxValueValidator(decimal.Decimal("50.00")),
                        ],
                    ),
                ),
                (
                    "rate_overridden",
                    models.BooleanField(default=False, help_text="Rate was set manually by an admin"),
                ),
                (
                    "minimum_payout",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("50.00"),
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(decimal.Decimal("0.00"))],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending Review"),
                            ("approved", "Approved"),
                            ("suspended", "Suspended"),
                            ("inactive", "Inactive"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("total_clicks", models.PositiveIntegerField(default=0)),
                ("total_sales", models.PositiveIntegerField(default=0)),
                (
                    "total_commission",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=12),
                ),
                (
                    "conversion_rate",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=7),
                ),
                ("last_sale_date", models.DateTimeField(blank=True, null=True)),
                ("metrics_updated_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, help_text="Admin notes")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("suspended_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Creator",
                "verbose_name_plural": "Creators",
                "db_table": "affiliate_creators",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["status"], name="affiliate_creator_status_idx"),
                    models.Index(fields=["-total_sales"], name="affiliate_creator_sales_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReferralLink",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("link_code", models.CharField(help_text="Generated short code", max_length=32, unique=True)),
                (
                    "custom_alias",
                    models.CharField(
                        blank=True,
                        help_text="Optional human-readable alternative key",
                        max_length=20,
                        null=True,
                    ),
                ),
                ("original_url", models.URLField(max_length=2048)),
                ("title", models.CharField(blank=True, max_length=200)),
                ("description", models.CharField(blank=True, max_length=200)),
                ("is_active", models.BooleanField(default=True)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("click_count", models.PositiveIntegerField(default=0)),
                ("unique_click_count", models.PositiveIntegerField(default=0)),
                ("conversion_count", models.PositiveIntegerField(default=0)),
                ("last_clicked_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="links",
                        to="affiliates.creator",
                    ),
                ),
            ],
            options={
                "verbose_name": "Referral Link",
                "verbose_name_plural": "Referral Links",
                "db_table": "affiliate_referral_links",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["creator", "-created_at"], name="affiliate_link_creator_idx"),
                    models.Index(fields=["is_active"], name="affiliate_link_active_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower("custom_alias"),
                        name="affiliate_link_alias_ci_unique",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReferralClick",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("session_id", models.CharField(max_length=64, unique=True)),
                ("ip_address", models.GenericIPAddressField()),
                ("user_agent", models.TextField(blank=True)),
                ("fingerprint", models.CharField(help_text="sha256 of ip|user agent", max_length=64)),
                ("referrer", models.CharField(blank=True, max_length=2048)),
                (
                    "device_type",
                    models.CharField(
                        choices=[("desktop", "Desktop"), ("mobile", "Mobile"), ("tablet", "Tablet")],
                        default="desktop",
                        max_length=10,
                    ),
                ),
                ("browser", models.CharField(blank=True, max_length=50)),
                ("os", models.CharField(blank=True, max_length=50)),
                ("utm_source", models.CharField(blank=True, max_length=100)),
                ("utm_medium", models.CharField(blank=True, max_length=100)),
                ("utm_campaign", models.CharField(blank=True, max_length=100)),
                ("utm_term", models.CharField(blank=True, max_length=100)),
                ("utm_content", models.CharField(blank=True, max_length=100)),
                ("converted", models.BooleanField(default=False)),
                ("order_id", models.CharField(blank=True, max_length=100, null=True)),
                ("conversion_value", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("converted_at", models.DateTimeField(blank=True, null=True)),
                ("clicked_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="clicks",
                        to="affiliates.creator",
                    ),
                ),
                (
                    "link",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="clicks",
                        to="affiliates.referrallink",
                    ),
                ),
            ],
            options={
                "verbose_name": "Referral Click",
                "verbose_name_plural": "Referral Clicks",
                "db_table": "affiliate_referral_clicks",
                "ordering": ("-clicked_at",),
                "indexes": [
                    models.Index(fields=["link", "fingerprint", "-clicked_at"], name="affiliate_click_dedupe_idx"),
                    models.Index(fields=["link", "converted", "-clicked_at"], name="affiliate_click_open_idx"),
                    models.Index(fields=["creator", "-clicked_at"], name="affiliate_click_creator_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_id", models.CharField(max_length=100, unique=True)),
                ("commission_rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("order_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("commission_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[("sale", "Sale"), ("return", "Return"), ("adjustment", "Adjustment")],
                        default="sale",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "click",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_transaction",
                        to="affiliates.referralclick",
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_transactions",
                        to="affiliates.creator",
                    ),
                ),
                (
                    "link",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_transactions",
                        to="affiliates.referrallink",
                    ),
                ),
            ],
            options={
                "verbose_name": "Commission Transaction",
                "verbose_name_plural": "Commission Transactions",
                "db_table": "affiliate_commission_transactions",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["creator", "status", "-created_at"], name="affiliate_txn_creator_idx"),
                    models.Index(fields=["status"], name="affiliate_txn_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TierChangeLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("previous_rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("new_rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("tier", models.CharField(blank=True, max_length=20)),
                ("monthly_volume", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                (
                    "source",
                    models.CharField(
                        choices=[("automatic", "Tier Engine"), ("admin", "Admin Override")],
                        max_length=20,
                    ),
                ),
                (
                    "replaced_override",
                    models.BooleanField(
                        default=False,
                        help_text="An automatic change replaced a manual admin rate",
                    ),
                ),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tier_changes",
                        to="affiliates.creator",
                    ),
                ),
            ],
            options={
                "verbose_name": "Tier Change",
                "verbose_name_plural": "Tier Changes",
                "db_table": "affiliate_tier_change_log",
                "ordering": ("-created_at",),
            },
        ),
    ]
