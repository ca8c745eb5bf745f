"""
orders.views

Public surface for orders/urls.py. Each endpoint group lives in its own
module.
"""

from .health import health
from .orders import (
    OrderDetailView,
    OrderEtaView,
    OrderListCreateView,
    OrderPaymentView,
    OrderPaymentsView,
    OrderStatusView,
)
from .payments import CheckoutSessionView, InvoiceView, ReconcileView
from .stripe_webhook import stripe_webhook
from .timeline import OrderTimelineView, ProductionUpdatesView

__all__ = [
    "health",
    "OrderDetailView",
    "OrderEtaView",
    "OrderListCreateView",
    "OrderPaymentView",
    "OrderPaymentsView",
    "OrderStatusView",
    "CheckoutSessionView",
    "InvoiceView",
    "ReconcileView",
    "stripe_webhook",
    "OrderTimelineView",
    "ProductionUpdatesView",
]
