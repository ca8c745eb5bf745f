"""
orders.views.orders

/api/orders/...

- POST  orders/                      create (signed-in customer or guest)
- GET   orders/                      list (staff: all, customer: own, guest: ?guest_email=)
- GET   orders/<id>/                 detail
- PATCH orders/<id>/status/          staff transition
- PATCH orders/<id>/payment/         customer pay action
- GET   orders/<id>/payments/        ledger rows
- GET   orders/<id>/eta/             schedule + delivery window

========= CHANGE LOG =========
2026-10-05 • ADD: create/list/detail + status + pay.
2026-10-12 • ADD: eta endpoint.
"""

from __future__ import annotations

import logging

from ..models import OrderTimelineEvent
from ..serializers import (
    OrderCreateSerializer,
    OrderSerializer,
    PayActionSerializer,
    PaymentSerializer,
    StaffOrderSerializer,
    StatusUpdateSerializer,
)
from ..services import eta
from ._core import OrdersAPIView, guest_email_of, ok, require_staff, validated

log = logging.getLogger("orders.api")


def serialize_order(order, request):
    if request.user and request.user.is_authenticated and request.user.is_staff:
        return StaffOrderSerializer(order).data
    return OrderSerializer(order).data


class OrderListCreateView(OrdersAPIView):
    def get(self, request, *args, **kwargs):
        orders = self.services().orders.list_orders(request.user, guest_email=guest_email_of(request))
        orders = orders.prefetch_related("payments")
        return ok({"orders": [serialize_order(o, request) for o in orders]})

    def post(self, request, *args, **kwargs):
        payload = validated(OrderCreateSerializer, request.data)
        order = self.services().orders.create_order(payload, request.user)
        return ok({"order": serialize_order(order, request)}, status=201)


class OrderDetailView(OrdersAPIView):
    def get(self, request, order_id, *args, **kwargs):
        order = self.services().orders.get_order(order_id, request.user, guest_email=guest_email_of(request))
        return ok({"order": serialize_order(order, request)})


class OrderStatusView(OrdersAPIView):
    def patch(self, request, order_id, *args, **kwargs):
        require_staff(request)
        body = validated(StatusUpdateSerializer, request.data)
        svc = self.services()
        result = svc.transitions.transition(
            order_id,
            body["status"],
            request.user,
            source=OrderTimelineEvent.ADMIN,
            expected_status=body.get("expected_status"),
            details={k: body[k] for k in ("tracking_number", "estimated_delivery") if body.get(k)},
        )
        order = svc.orders.get_order(order_id, request.user)
        return ok({"order": serialize_order(order, request), "transition": result.to_dict()})


class OrderPaymentView(OrdersAPIView):
    def patch(self, request, order_id, *args, **kwargs):
        validated(PayActionSerializer, request.data)
        guest_email = guest_email_of(request)
        svc = self.services()
        result = svc.orders.pay(order_id, request.user, guest_email=guest_email)
        order = svc.orders.get_order(order_id, request.user, guest_email=guest_email)
        return ok({"order": serialize_order(order, request), "transition": result.to_dict()})


class OrderPaymentsView(OrdersAPIView):
    def get(self, request, order_id, *args, **kwargs):
        svc = self.services()
        order = svc.orders.get_order(order_id, request.user, guest_email=guest_email_of(request))
        payments = svc.ledger.list_payments(order)
        return ok({"order_id": order.pk, "payments": PaymentSerializer(payments, many=True).data})


class OrderEtaView(OrdersAPIView):
    def get(self, request, order_id, *args, **kwargs):
        order = self.services().orders.get_order(order_id, request.user, guest_email=guest_email_of(request))
        return ok({"eta": eta.compute_eta(order)})
