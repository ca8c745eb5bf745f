from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


ORDER_STATUS_CHOICES = [
    ("submitted", "Submitted"),
    ("paid", "Paid"),
    ("in_production", "In Production"),
    ("shipping", "Shipping"),
    ("delivered", "Delivered"),
    ("draft", "Draft"),
    ("quote_requested", "Quote Requested"),
    ("quoted", "Quoted"),
    ("deposit_pending", "Deposit Pending"),
    ("deposit_paid", "Deposit Paid"),
    ("quality_check", "Quality Check"),
    ("balance_pending", "Balance Pending"),
    ("balance_paid", "Balance Paid"),
    ("ready_to_ship", "Ready To Ship"),
    ("shipped", "Shipped"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("requires_payment_method", "Requires payment method"),
    ("requires_action", "Requires action"),
    ("processing", "Processing"),
    ("succeeded", "Succeeded"),
    ("failed", "Failed"),
    ("canceled", "Canceled"),
    ("refunded", "Refunded"),
    ("partially_refunded", "Partially refunded"),
]

PAYMENT_PHASE_CHOICES = [
    ("deposit", "Deposit (40%)"),
    ("balance", "Balance (60%)"),
    ("full_payment", "Full payment"),
    ("shipping_fee", "Shipping fee"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("order_number", models.CharField(max_length=32, unique=True)),
                ("guest_email", models.EmailField(blank=True, db_index=True, default="", max_length=254)),
                ("customer_name", models.CharField(blank=True, default="", max_length=255)),
                ("company_name", models.CharField(blank=True, default="", max_length=255)),
                ("product_name", models.CharField(max_length=255)),
                ("product_category", models.CharField(max_length=120)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("customization", models.JSONField(blank=True, default=dict)),
                ("colors", models.JSONField(blank=True, default=list)),
                ("sizes", models.JSONField(blank=True, default=dict, help_text="Size -> quantity; values sum to quantity.")),
                ("print_locations", models.JSONField(blank=True, default=list)),
                (
                    "workflow",
                    models.CharField(
                        choices=[("simplified", "Simplified (full payment)"), ("legacy", "Legacy (deposit + balance)")],
                        default="simplified",
                        max_length=16,
                    ),
                ),
                ("status", models.CharField(choices=ORDER_STATUS_CHOICES, db_index=True, max_length=32)),
                ("total_paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("deposit_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("balance_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("shipping_address", models.JSONField(blank=True, default=dict)),
                ("tracking_number", models.CharField(blank=True, default="", max_length=120)),
                ("estimated_delivery", models.DateTimeField(blank=True, null=True)),
                ("actual_delivery", models.DateTimeField(blank=True, null=True)),
                ("shipping_fee_cents", models.PositiveIntegerField(blank=True, null=True)),
                ("shipping_paid_at", models.DateTimeField(blank=True, null=True)),
                ("customer_notes", models.TextField(blank=True, default="")),
                ("admin_notes", models.TextField(blank=True, default="")),
                ("lead_time_snapshot", models.JSONField(blank=True, default=dict)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="apparel_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [models.Index(fields=["status", "created_at"], name="orders_status_dt")],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            (models.Q(user__isnull=False) & models.Q(guest_email=""))
                            | (models.Q(user__isnull=True) & ~models.Q(guest_email=""))
                        ),
                        name="orders_order_single_owner",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("phase", models.CharField(choices=PAYMENT_PHASE_CHOICES, max_length=20)),
                ("amount_cents", models.PositiveIntegerField()),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("status", models.CharField(choices=PAYMENT_STATUS_CHOICES, db_index=True, default="pending", max_length=32)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("stripe_payment_intent_id", models.CharField(blank=True, db_index=True, default="", max_length=255)),
                ("stripe_checkout_session_id", models.CharField(blank=True, db_index=True, default="", max_length=255)),
                ("stripe_charge_id", models.CharField(blank=True, default="", max_length=255)),
                ("stripe_invoice_id", models.CharField(blank=True, db_index=True, default="", max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ("created_at", "id"),
                "constraints": [
                    models.UniqueConstraint(fields=("order", "phase"), name="orders_payment_order_phase"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductionUpdate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("stage", models.CharField(max_length=64)),
                ("status", models.CharField(max_length=64)),
                ("description", models.TextField(blank=True, default="")),
                ("photos", models.JSONField(blank=True, default=list)),
                ("visible_to_customer", models.BooleanField(default=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="production_updates",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="OrderTimelineEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(db_index=True, max_length=64)),
                ("description", models.CharField(max_length=500)),
                ("event_data", models.JSONField(blank=True, default=dict)),
                (
                    "trigger_source",
                    models.CharField(
                        choices=[
                            ("manual", "Manual"),
                            ("system", "System"),
                            ("webhook", "Webhook"),
                            ("api", "API"),
                            ("admin", "Admin"),
                        ],
                        default="manual",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="timeline_events",
                        to="orders.order",
                    ),
                ),
                (
                    "triggered_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [models.Index(fields=["order", "created_at"], name="orders_tl_order_dt")],
            },
        ),
    ]
