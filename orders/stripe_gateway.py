"""
orders.stripe_gateway

Thin wrapper around the Stripe SDK (Django authoritative; the browser never
talks to Stripe with secrets).

Every call:
- passes the secret key explicitly (no global stripe.api_key mutation)
- returns plain dicts so callers never depend on StripeObject internals
- converts stripe.StripeError into orders.exceptions.ProviderError

No retries here: failures surface to the caller (webhook -> 5xx -> Stripe
re-delivers; client -> error toast).

ENV/SETTINGS
- STRIPE_SECRET_KEY      (required for any provider call)
- STRIPE_WEBHOOK_SECRET  (required for webhook verification)
- STOREFRONT_APP_URL     (success/cancel redirect base)

========= CHANGE LOG =========
2026-10-05 • ADD: Checkout Session + PaymentIntent retrieval for reconcile.
2026-10-08 • ADD: Hosted invoice creation (customer lookup, item, finalize, send) + resend.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe
from django.conf import settings

from . import workflow as wf
from .exceptions import ProviderError

log = logging.getLogger(__name__)


def _to_plain_dict(obj: Any) -> Dict[str, Any]:
    """
    Convert Stripe objects / mappings into a plain dict (best-effort).
    """
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    fn = getattr(obj, "to_dict", None)
    if callable(fn):
        return fn()
    fn = getattr(obj, "to_dict_recursive", None)
    if callable(fn):
        return fn()
    try:
        return dict(obj)
    except (TypeError, ValueError):
        return {}


def correlation_metadata(order, phase: str) -> Dict[str, str]:
    return {
        "order_id": str(order.pk),
        "order_number": order.order_number,
        "phase": phase,
    }


class StripeGateway:
    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None, app_url: Optional[str] = None):
        self.secret_key = secret_key if secret_key is not None else getattr(settings, "STRIPE_SECRET_KEY", "")
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
        )
        self.app_url = (app_url or getattr(settings, "STOREFRONT_APP_URL", "")).rstrip("/")

    # ----------------------------
    # helpers
    # ----------------------------

    def _key(self) -> str:
        if not self.secret_key:
            raise ProviderError("Payments are not configured (missing STRIPE_SECRET_KEY).", code="misconfigured")
        return self.secret_key

    def _call(self, label: str, fn, *args, **kwargs) -> Dict[str, Any]:
        try:
            return _to_plain_dict(fn(*args, api_key=self._key(), **kwargs))
        except stripe.StripeError as e:
            log.exception("Stripe %s failed", label)
            raise ProviderError(
                f"Payment provider error during {label}.",
                detail={"stripe_code": getattr(e, "code", None), "message": getattr(e, "user_message", None) or str(e)},
            )

    def redirect_urls(self, order, phase: str) -> Dict[str, str]:
        base = f"{self.app_url}/orders/{order.pk}"
        return {
            "success_url": f"{base}?payment=success&phase={phase}&session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base}?payment=cancelled&phase={phase}",
        }

    # ----------------------------
    # Checkout
    # ----------------------------

    def create_checkout_session(self, *, order, phase: str, amount_cents: int, currency: str) -> Dict[str, Any]:
        metadata = correlation_metadata(order, phase)
        urls = self.redirect_urls(order, phase)
        params: Dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": int(amount_cents),
                        "product_data": {
                            "name": f"Order {order.order_number} {wf.PHASE_LABELS.get(phase, phase)}",
                        },
                    },
                    "quantity": 1,
                }
            ],
            "payment_intent_data": {"metadata": metadata},
            "metadata": metadata,
            "success_url": urls["success_url"],
            "cancel_url": urls["cancel_url"],
        }
        email = order.owner_email
        if email:
            params["customer_email"] = email
        return self._call(
            "checkout.session.create",
            stripe.checkout.Session.create,
            **params,
        )

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return self._call("checkout.session.retrieve", stripe.checkout.Session.retrieve, session_id)

    def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        return self._call("payment_intent.retrieve", stripe.PaymentIntent.retrieve, payment_intent_id)

    # ----------------------------
    # Invoices
    # ----------------------------

    def _get_or_create_customer(self, *, email: str, name: str = "", company: str = "") -> Dict[str, Any]:
        found = self._call("customer.search", stripe.Customer.search, query=f"email:'{email}'")
        data = found.get("data") or []
        if data:
            return _to_plain_dict(data[0])
        params: Dict[str, Any] = {"email": email}
        if name:
            params["name"] = name
        if company:
            params["metadata"] = {"company": company}
        return self._call("customer.create", stripe.Customer.create, **params)

    def create_invoice(self, *, order, phase: str, amount_cents: int, currency: str, days_until_due: int) -> Dict[str, Any]:
        email = order.owner_email
        if not email:
            raise ProviderError("Customer email not found for order.", code="missing_email")

        customer = self._get_or_create_customer(email=email, name=order.customer_name, company=order.company_name)
        metadata = correlation_metadata(order, phase)

        invoice = self._call(
            "invoice.create",
            stripe.Invoice.create,
            customer=customer["id"],
            collection_method="send_invoice",
            days_until_due=int(days_until_due),
            metadata=metadata,
        )
        self._call(
            "invoiceitem.create",
            stripe.InvoiceItem.create,
            customer=customer["id"],
            invoice=invoice["id"],
            amount=int(amount_cents),
            currency=currency,
            description=f"Order {order.order_number} • {wf.PHASE_LABELS.get(phase, phase)}",
            metadata=metadata,
        )
        finalized = self._call("invoice.finalize", stripe.Invoice.finalize_invoice, invoice["id"])
        return self._call("invoice.send", stripe.Invoice.send_invoice, finalized["id"])

    def resend_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return self._call("invoice.send", stripe.Invoice.send_invoice, invoice_id)

    def retrieve_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return self._call("invoice.retrieve", stripe.Invoice.retrieve, invoice_id)

    # ----------------------------
    # Webhooks
    # ----------------------------

    def construct_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header and parse the event.

        Raises ValueError (bad payload) or stripe.SignatureVerificationError;
        the webhook view maps both to 400.
        """
        if not self.webhook_secret:
            raise ProviderError("Webhook not configured (missing STRIPE_WEBHOOK_SECRET).", code="misconfigured")
        event = stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=self.webhook_secret)
        return _to_plain_dict(event)


def get_gateway() -> StripeGateway:
    return StripeGateway()
