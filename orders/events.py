"""
orders.events

Timeline event types and the structured payloads stored in
``OrderTimelineEvent.event_data``. Each payload carries a ``v`` so readers can
branch if the shape ever changes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

ORDER_CREATED = "order_created"
STATUS_CHANGED = "status_changed"
PAYMENT_UPDATED = "payment_updated"
CHECKOUT_STARTED = "checkout_started"
INVOICE_SENT = "invoice_sent"
SHIPPING_FEE_REQUESTED = "shipping_fee_requested"
PRODUCTION_UPDATE = "production_update"
NOTE = "note"

EVENT_DATA_VERSION = 1


@dataclass
class _Payload:
    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if v not in (None, "", {})}
        data["v"] = EVENT_DATA_VERSION
        return data


@dataclass
class OrderCreated(_Payload):
    order_number: str
    workflow: str
    status: str
    total_amount: str
    quantity: int


@dataclass
class StatusChanged(_Payload):
    from_status: str
    to_status: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        # keep the short keys the UI reads
        data["from"] = data.pop("from_status", "")
        data["to"] = data.pop("to_status", "")
        return data


@dataclass
class PaymentUpdated(_Payload):
    phase: str
    from_status: Optional[str]
    to_status: str
    amount_cents: int
    payment_intent_id: str = ""
    checkout_session_id: str = ""


@dataclass
class CheckoutStarted(_Payload):
    phase: str
    amount_cents: int
    checkout_session_id: str
    url: str = ""


@dataclass
class InvoiceSent(_Payload):
    phase: str
    amount_cents: int
    invoice_id: str
    hosted_invoice_url: str = ""
    resent: bool = False


@dataclass
class ShippingFeeRequested(_Payload):
    amount_cents: int
    checkout_session_id: str
    url: str = ""


@dataclass
class ProductionUpdateAdded(_Payload):
    update_id: int
    stage: str
    status: str
    visible_to_customer: bool
