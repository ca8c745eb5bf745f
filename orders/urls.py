"""
orders.urls (mounted at /api/)
"""

from django.urls import path

from . import views

app_name = "orders"

urlpatterns = [
    path("health/", views.health, name="health"),

    # Orders
    path("orders/", views.OrderListCreateView.as_view(), name="order_list"),
    path("orders/<int:order_id>/", views.OrderDetailView.as_view(), name="order_detail"),
    path("orders/<int:order_id>/status/", views.OrderStatusView.as_view(), name="order_status"),
    path("orders/<int:order_id>/payment/", views.OrderPaymentView.as_view(), name="order_pay"),
    path("orders/<int:order_id>/payments/", views.OrderPaymentsView.as_view(), name="order_payments"),
    path("orders/<int:order_id>/timeline/", views.OrderTimelineView.as_view(), name="order_timeline"),
    path(
        "orders/<int:order_id>/production-updates/",
        views.ProductionUpdatesView.as_view(),
        name="order_production_updates",
    ),
    path("orders/<int:order_id>/eta/", views.OrderEtaView.as_view(), name="order_eta"),

    # Payments
    path("payments/checkout-session/", views.CheckoutSessionView.as_view(), name="checkout_session"),
    path("payments/invoice/", views.InvoiceView.as_view(), name="invoice"),
    path("payments/reconcile/", views.ReconcileView.as_view(), name="reconcile"),

    # Stripe
    path("stripe/webhook/", views.stripe_webhook, name="stripe_webhook"),
]
