# -*- coding: utf-8 -*-
"""
Orders: models package entrypoint.

The app uses a models/ package (not a single models.py); Django registers the
models when these modules are imported.
"""

from .order import Order
from .payment import Payment
from .production_update import ProductionUpdate
from .timeline import OrderTimelineEvent

__all__ = [
    "Order",
    "Payment",
    "ProductionUpdate",
    "OrderTimelineEvent",
]
