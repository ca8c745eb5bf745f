"""
orders.views.payments

- POST payments/checkout-session/   {order_id, phase}            -> {session_id, url}
- POST payments/invoice/            {order_id, phase[, days_until_due]} (staff)
                                    {action: "resend", invoice_id}      (staff)
- POST payments/reconcile/          {session_id} | {order_id, phase}

Provider failures come back as 502 provider_error; the ledger is untouched
when Stripe fails.
"""

from __future__ import annotations

from ..serializers import CheckoutSessionRequestSerializer, InvoiceRequestSerializer, ReconcileRequestSerializer
from ._core import OrdersAPIView, guest_email_of, ok, require_staff, validated


class CheckoutSessionView(OrdersAPIView):
    def post(self, request, *args, **kwargs):
        body = validated(CheckoutSessionRequestSerializer, request.data)
        svc = self.services()
        order = svc.orders.get_order(body["order_id"], request.user, guest_email=guest_email_of(request))
        result = svc.ledger.create_checkout_session(order, body["phase"], request.user)
        return ok(result.to_dict(), status=201)


class InvoiceView(OrdersAPIView):
    def post(self, request, *args, **kwargs):
        require_staff(request)
        body = validated(InvoiceRequestSerializer, request.data)
        svc = self.services()
        if body["action"] == "resend":
            result = svc.ledger.resend_invoice(body["invoice_id"], request.user)
            return ok(result.to_dict())
        result = svc.ledger.create_invoice(
            body["order_id"], body["phase"], request.user, days_until_due=body.get("days_until_due")
        )
        return ok(result.to_dict(), status=201)


class ReconcileView(OrdersAPIView):
    def post(self, request, *args, **kwargs):
        body = validated(ReconcileRequestSerializer, request.data)
        svc = self.services()
        if body.get("session_id"):
            result = svc.reconciliation.reconcile(session_id=body["session_id"], actor=request.user)
        else:
            order = svc.orders.get_order(body["order_id"], request.user, guest_email=guest_email_of(request))
            result = svc.reconciliation.reconcile(order_id=order.pk, phase=body["phase"], actor=request.user)
        return ok(result.to_dict())
