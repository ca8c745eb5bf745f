"""
orders.notifications

Transactional email for the order lifecycle (plain text via Django's mail
backend; the configured backend is anymail/Mailgun in production).

- send_order_confirmation(order): customer confirmation + optional sales copy
- send_payment_receipt(payment): receipt once a phase is paid

Best-effort: failures are logged and swallowed so a mail outage never rolls
back an order or makes Stripe re-deliver a webhook. Callers schedule these
with transaction.on_commit.

ENV/SETTINGS
- STOREFRONT_SEND_EMAILS         (default True; tests turn it off)
- STOREFRONT_SALES_NOTIFY_EMAIL  (optional internal copy of new orders)
- DEFAULT_FROM_EMAIL

========= CHANGE LOG =========
2026-10-06 • ADD: order confirmation + payment receipt (plain text).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.core.mail import send_mail

from . import workflow as wf

log = logging.getLogger(__name__)


def _enabled() -> bool:
    return bool(getattr(settings, "STOREFRONT_SEND_EMAILS", True))


def _from_email() -> str:
    return (
        getattr(settings, "DEFAULT_FROM_EMAIL", "")
        or getattr(settings, "SERVER_EMAIL", "")
        or "no-reply@localhost"
    )


def _money(cents: int, currency: str) -> str:
    return f"{(Decimal(cents) / 100):.2f} {currency.upper()}"


def _deliver(subject: str, body: str, recipients: list, *, kind: str, order_number: str) -> bool:
    recipients = [r for r in recipients if r]
    if not recipients:
        log.warning("email skipped kind=%s order=%s reason=no_recipient", kind, order_number)
        return False
    try:
        send_mail(subject, body, _from_email(), recipients, fail_silently=False)
    except Exception:
        log.exception("email failed kind=%s order=%s", kind, order_number)
        return False
    log.info("email sent kind=%s order=%s to=%s", kind, order_number, ",".join(recipients))
    return True


def send_order_confirmation(order) -> bool:
    if not _enabled():
        return False

    greeting = f"Hi {order.customer_name}," if order.customer_name else "Hi,"
    lines = [
        greeting,
        "",
        f"Thanks for your order {order.order_number}.",
        "",
        f"Product:   {order.product_name} ({order.product_category})",
        f"Quantity:  {order.quantity}",
        f"Unit:      {order.unit_price} {order.currency.upper()}",
        f"Total:     {order.total_amount} {order.currency.upper()}",
    ]
    if order.workflow == wf.WORKFLOW_LEGACY and order.deposit_amount is not None:
        lines.append(f"Deposit:   {order.deposit_amount} {order.currency.upper()} due to start production")
    lines += ["", "We'll email you again as soon as payment is received."]

    sent = _deliver(
        f"Order {order.order_number} received",
        "\n".join(lines),
        [order.owner_email],
        kind="order_confirmation",
        order_number=order.order_number,
    )

    sales = (getattr(settings, "STOREFRONT_SALES_NOTIFY_EMAIL", "") or "").strip()
    if sales:
        _deliver(
            f"New order {order.order_number} ({order.quantity} x {order.product_name})",
            f"Customer: {order.owner_email}\nCompany: {order.company_name or '-'}\nTotal: {order.total_amount}",
            [sales],
            kind="sales_notify",
            order_number=order.order_number,
        )
    return sent


def send_payment_receipt(payment) -> bool:
    if not _enabled():
        return False

    order = payment.order
    body = "\n".join(
        [
            f"Payment received for order {order.order_number}.",
            "",
            f"{wf.PHASE_LABELS.get(payment.phase, payment.phase)}: {_money(payment.amount_cents, payment.currency)}",
            f"Paid at: {payment.paid_at:%Y-%m-%d %H:%M} UTC" if payment.paid_at else "",
        ]
    ).rstrip()
    return _deliver(
        f"Receipt for order {order.order_number}",
        body,
        [order.owner_email],
        kind="payment_receipt",
        order_number=order.order_number,
    )
