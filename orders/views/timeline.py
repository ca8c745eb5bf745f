"""
orders.views.timeline

- GET  orders/<id>/timeline/             owner / staff (newest first)
- POST orders/<id>/timeline/             staff note / manual event
- GET  orders/<id>/production-updates/   customers only see visible_to_customer
- POST orders/<id>/production-updates/   staff
"""

from __future__ import annotations

from ..serializers import (
    ProductionUpdateCreateSerializer,
    ProductionUpdateSerializer,
    TimelineEventCreateSerializer,
    TimelineEventSerializer,
)
from ._core import OrdersAPIView, guest_email_of, ok, require_staff, validated


def _is_staff(request) -> bool:
    return bool(request.user and request.user.is_authenticated and request.user.is_staff)


class OrderTimelineView(OrdersAPIView):
    def get(self, request, order_id, *args, **kwargs):
        svc = self.services()
        order = svc.orders.get_order(order_id, request.user, guest_email=guest_email_of(request))
        events = svc.timeline.get_timeline(order)
        return ok({"order_id": order.pk, "events": TimelineEventSerializer(events, many=True).data})

    def post(self, request, order_id, *args, **kwargs):
        require_staff(request)
        body = validated(TimelineEventCreateSerializer, request.data)
        svc = self.services()
        event = svc.timeline.append_event(
            order_id,
            body["event_type"],
            body["description"],
            data=body.get("event_data") or {},
            source=body["trigger_source"],
            actor=request.user,
        )
        return ok({"event": TimelineEventSerializer(event).data}, status=201)


class ProductionUpdatesView(OrdersAPIView):
    def get(self, request, order_id, *args, **kwargs):
        svc = self.services()
        order = svc.orders.get_order(order_id, request.user, guest_email=guest_email_of(request))
        updates = svc.timeline.list_production_updates(order, customer_view=not _is_staff(request))
        return ok({"order_id": order.pk, "updates": ProductionUpdateSerializer(updates, many=True).data})

    def post(self, request, order_id, *args, **kwargs):
        require_staff(request)
        body = validated(ProductionUpdateCreateSerializer, request.data)
        update = self.services().timeline.add_production_update(order_id, actor=request.user, **body)
        return ok({"update": ProductionUpdateSerializer(update).data}, status=201)
