"""
orders.services.timeline

Audit trail + production updates.

- append_event is a pure insert (rows are never updated)
- get_timeline returns newest first
- production updates also drop a ``production_update`` event on the timeline
- customers only ever see updates flagged ``visible_to_customer``
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from django.db import transaction

from .. import events
from ..exceptions import ValidationError
from ..models import Order, OrderTimelineEvent, ProductionUpdate
from ..repositories import OrderRepository, TimelineRepository

log = logging.getLogger(__name__)


def actor_user(actor):
    """Django user to store in ``triggered_by`` / ``created_by`` (or None)."""
    if actor is not None and getattr(actor, "is_authenticated", False):
        return actor
    return None


class TimelineService:
    def __init__(self, orders: Optional[OrderRepository] = None, timeline: Optional[TimelineRepository] = None):
        self.orders = orders or OrderRepository()
        self.timeline = timeline or TimelineRepository()

    def _order(self, order) -> Order:
        if isinstance(order, Order):
            return order
        return self.orders.get(order)

    def append_event(
        self,
        order,
        event_type: str,
        description: str,
        *,
        data: Any = None,
        source: str = OrderTimelineEvent.MANUAL,
        actor=None,
    ) -> OrderTimelineEvent:
        if not (event_type or "").strip():
            raise ValidationError("event_type is required.", code="missing_event_type")
        if source not in dict(OrderTimelineEvent.SOURCE_CHOICES):
            raise ValidationError(f"Unknown trigger source '{source}'.", code="invalid_source")
        if hasattr(data, "to_dict"):
            data = data.to_dict()

        order = self._order(order)
        event = self.timeline.append(
            order=order,
            event_type=event_type.strip(),
            description=(description or "")[:500],
            event_data=data or {},
            trigger_source=source,
            triggered_by=actor_user(actor),
        )
        log.debug("timeline order=%s type=%s source=%s", order.order_number, event.event_type, source)
        return event

    def get_timeline(self, order) -> List[OrderTimelineEvent]:
        return list(self.timeline.for_order(self._order(order)))

    def add_production_update(
        self,
        order,
        *,
        stage: str,
        status: str,
        description: str = "",
        photos: Optional[List[str]] = None,
        visible_to_customer: bool = True,
        actor=None,
    ) -> ProductionUpdate:
        if not (stage or "").strip() or not (status or "").strip():
            raise ValidationError("stage and status are required.", code="missing_stage")

        with transaction.atomic():
            order = self._order(order)
            update = self.timeline.add_production_update(
                order=order,
                stage=stage.strip(),
                status=status.strip(),
                description=description or "",
                photos=list(photos or []),
                visible_to_customer=bool(visible_to_customer),
                created_by=actor_user(actor),
            )
            self.append_event(
                order,
                events.PRODUCTION_UPDATE,
                f"Production update: {update.stage} ({update.status})",
                data=events.ProductionUpdateAdded(
                    update_id=update.pk,
                    stage=update.stage,
                    status=update.status,
                    visible_to_customer=update.visible_to_customer,
                ),
                source=OrderTimelineEvent.ADMIN,
                actor=actor,
            )

        log.info("production update order=%s stage=%s status=%s", order.order_number, update.stage, update.status)
        return update

    def list_production_updates(self, order, *, customer_view: bool = False) -> List[ProductionUpdate]:
        return list(self.timeline.production_updates(self._order(order), visible_only=customer_view))

