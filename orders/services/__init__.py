"""
orders.services

Wires repositories + the Stripe gateway into the service objects. Views call
get_services(); tests pass a fake gateway.
"""

from __future__ import annotations

from typing import Optional

from ..repositories import OrderRepository, PaymentRepository, TimelineRepository
from ..stripe_gateway import get_gateway
from .ledger import LedgerService
from .orders import OrderService
from .reconciliation import ReconciliationService
from .timeline import TimelineService
from .transitions import TransitionService


class Services:
    def __init__(self, gateway=None):
        self.gateway = gateway if gateway is not None else get_gateway()

        order_repo = OrderRepository()
        payment_repo = PaymentRepository()

        self.timeline = TimelineService(orders=order_repo, timeline=TimelineRepository())
        self.ledger = LedgerService(self.gateway, orders=order_repo, payments=payment_repo, timeline=self.timeline)
        self.transitions = TransitionService(self.ledger, orders=order_repo, timeline=self.timeline)
        self.reconciliation = ReconciliationService(
            self.gateway, self.ledger, self.transitions, orders=order_repo, payments=payment_repo
        )
        self.orders = OrderService(self.ledger, self.transitions, orders=order_repo, timeline=self.timeline)


def get_services(gateway: Optional[object] = None) -> Services:
    return Services(gateway=gateway)


__all__ = [
    "Services",
    "get_services",
    "LedgerService",
    "OrderService",
    "ReconciliationService",
    "TimelineService",
    "TransitionService",
]
