"""
orders.serializers

DRF serializers.

Input serializers only check shape and types; business rules (MOQ, size
totals, placements, identity, totals) live in OrderService so the API and
any other caller share one rulebook.
"""

from __future__ import annotations

from rest_framework import serializers

from . import workflow as wf
from .models import Order, OrderTimelineEvent, Payment, ProductionUpdate


# ----------------------------
# output
# ----------------------------

class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "phase",
            "amount_cents",
            "currency",
            "status",
            "paid_at",
            "stripe_payment_intent_id",
            "stripe_checkout_session_id",
            "stripe_invoice_id",
            "metadata",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    owner_email = serializers.CharField(read_only=True)
    shipping_fee_due = serializers.BooleanField(read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "owner_email",
            "customer_name",
            "company_name",
            "product_name",
            "product_category",
            "quantity",
            "unit_price",
            "total_amount",
            "currency",
            "customization",
            "colors",
            "sizes",
            "print_locations",
            "workflow",
            "status",
            "total_paid_amount",
            "paid_at",
            "deposit_amount",
            "balance_amount",
            "shipping_address",
            "tracking_number",
            "estimated_delivery",
            "actual_delivery",
            "shipping_fee_cents",
            "shipping_paid_at",
            "shipping_fee_due",
            "customer_notes",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class StaffOrderSerializer(OrderSerializer):
    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["admin_notes", "lead_time_snapshot"]
        read_only_fields = fields


class TimelineEventSerializer(serializers.ModelSerializer):
    triggered_by = serializers.SerializerMethodField()

    class Meta:
        model = OrderTimelineEvent
        fields = ["id", "event_type", "description", "event_data", "trigger_source", "triggered_by", "created_at"]
        read_only_fields = fields

    def get_triggered_by(self, obj):
        user = obj.triggered_by
        return user.get_username() if user else None


class ProductionUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductionUpdate
        fields = ["id", "stage", "status", "description", "photos", "visible_to_customer", "created_at"]
        read_only_fields = fields


# ----------------------------
# input
# ----------------------------

class CustomizationSerializer(serializers.Serializer):
    placements = serializers.ListField(child=serializers.CharField(max_length=64), required=False, default=list)
    design_notes = serializers.CharField(required=False, allow_blank=True, default="")
    artwork_urls = serializers.ListField(child=serializers.URLField(), required=False, default=list)


class OrderCreateSerializer(serializers.Serializer):
    workflow = serializers.ChoiceField(choices=wf.WORKFLOWS, required=False, default=wf.WORKFLOW_SIMPLIFIED)
    product_name = serializers.CharField(max_length=255)
    product_category = serializers.CharField(max_length=120)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False)
    sizes = serializers.DictField(child=serializers.IntegerField(min_value=0), required=False, default=dict)
    colors = serializers.ListField(child=serializers.CharField(max_length=64), required=False, default=list)
    print_locations = serializers.ListField(child=serializers.CharField(max_length=64), required=False, default=list)
    customization = CustomizationSerializer(required=False)
    guest_email = serializers.EmailField(required=False, allow_blank=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    company_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    shipping_address = serializers.DictField(required=False, default=dict)
    shipping_fee_cents = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    customer_notes = serializers.CharField(required=False, allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=wf.ALL_STATUSES)
    expected_status = serializers.ChoiceField(choices=wf.ALL_STATUSES, required=False)
    tracking_number = serializers.CharField(max_length=120, required=False, allow_blank=True)
    estimated_delivery = serializers.DateTimeField(required=False, allow_null=True)


class PayActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["pay"], required=False, default="pay")
    guest_email = serializers.EmailField(required=False, allow_blank=True)


class CheckoutSessionRequestSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    phase = serializers.ChoiceField(choices=wf.PHASES)
    guest_email = serializers.EmailField(required=False, allow_blank=True)


class InvoiceRequestSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["create", "resend"], required=False, default="create")
    order_id = serializers.IntegerField(required=False)
    phase = serializers.ChoiceField(choices=wf.PHASES, required=False)
    invoice_id = serializers.CharField(required=False, allow_blank=True)
    days_until_due = serializers.IntegerField(min_value=1, max_value=90, required=False)

    def validate(self, attrs):
        if attrs.get("action") == "resend":
            if not attrs.get("invoice_id"):
                raise serializers.ValidationError({"invoice_id": "Required to resend an invoice."})
        elif not (attrs.get("order_id") and attrs.get("phase")):
            raise serializers.ValidationError("order_id and phase are required to create an invoice.")
        return attrs


class ReconcileRequestSerializer(serializers.Serializer):
    session_id = serializers.CharField(required=False, allow_blank=True)
    order_id = serializers.IntegerField(required=False)
    phase = serializers.ChoiceField(choices=wf.PHASES, required=False)

    def validate(self, attrs):
        if not attrs.get("session_id") and not (attrs.get("order_id") and attrs.get("phase")):
            raise serializers.ValidationError("Provide session_id, or order_id and phase.")
        return attrs


class TimelineEventCreateSerializer(serializers.Serializer):
    event_type = serializers.CharField(max_length=64)
    description = serializers.CharField(max_length=500)
    event_data = serializers.DictField(required=False, default=dict)
    trigger_source = serializers.ChoiceField(
        choices=[c[0] for c in OrderTimelineEvent.SOURCE_CHOICES],
        required=False,
        default=OrderTimelineEvent.ADMIN,
    )


class ProductionUpdateCreateSerializer(serializers.Serializer):
    stage = serializers.CharField(max_length=64)
    status = serializers.CharField(max_length=64)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    photos = serializers.ListField(child=serializers.CharField(max_length=500), required=False, default=list)
    visible_to_customer = serializers.BooleanField(required=False, default=True)
