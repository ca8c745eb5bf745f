# /home/techwithwayne/storefront/orders/admin.py
"""
Orders: Django admin registrations

========= CHANGE LOG =========
2026-10-06 • Register Order (payments inline, timeline read-only), Payment, ProductionUpdate.
           • Timeline events are append-only: no add/change/delete from admin.
           • Status is read-only here; staff move orders through the status API so the
             transition rules, side effects and timeline always apply.
"""

from __future__ import annotations

from django.contrib import admin

from .models import Order, OrderTimelineEvent, Payment, ProductionUpdate


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    fields = ("phase", "amount_cents", "currency", "status", "paid_at", "stripe_checkout_session_id")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class TimelineInline(admin.TabularInline):
    model = OrderTimelineEvent
    extra = 0
    can_delete = False
    fields = ("created_at", "event_type", "description", "trigger_source", "triggered_by")
    readonly_fields = fields
    ordering = ("-created_at", "-id")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "owner",
        "product_name",
        "quantity",
        "total_amount",
        "workflow",
        "status",
        "created_at",
    )
    list_filter = ("workflow", "status", "product_category")
    search_fields = ("order_number", "guest_email", "user__email", "company_name", "customer_name")
    ordering = ("-created_at",)
    readonly_fields = (
        "order_number",
        "workflow",
        "status",
        "total_amount",
        "total_paid_amount",
        "paid_at",
        "shipping_paid_at",
        "actual_delivery",
        "lead_time_snapshot",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentInline, TimelineInline]

    @admin.display(description="Owner")
    def owner(self, obj):
        return obj.owner_email or "-"


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "phase", "amount_cents", "currency", "status", "paid_at", "updated_at")
    list_filter = ("phase", "status")
    search_fields = (
        "order__order_number",
        "stripe_payment_intent_id",
        "stripe_checkout_session_id",
        "stripe_invoice_id",
    )
    ordering = ("-updated_at",)
    readonly_fields = ("created_at", "updated_at")


@admin.register(ProductionUpdate)
class ProductionUpdateAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "stage", "status", "visible_to_customer", "created_at")
    list_filter = ("visible_to_customer", "stage")
    search_fields = ("order__order_number", "description")
    ordering = ("-created_at",)


@admin.register(OrderTimelineEvent)
class OrderTimelineEventAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "event_type", "trigger_source", "triggered_by", "created_at")
    list_filter = ("event_type", "trigger_source")
    search_fields = ("order__order_number", "description")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
