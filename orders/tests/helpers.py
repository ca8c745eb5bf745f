"""Shared builders for the order tests."""

from __future__ import annotations

from typing import Any, Dict

from orders.services import Services

from .fakes import FakeGateway

GUEST = "buyer@example.com"


def order_payload(**overrides: Any) -> Dict[str, Any]:
    """50 tees at 7.99 with two print placements (total 399.50)."""
    payload: Dict[str, Any] = {
        "product_name": "Heavyweight Tee",
        "product_category": "t-shirts",
        "quantity": 50,
        "unit_price": "7.99",
        "sizes": {"S": 10, "M": 20, "L": 15, "XL": 5},
        "colors": ["black"],
        "print_locations": ["front", "back"],
        "customization": {"design_notes": "2-color front, 1-color back"},
        "guest_email": GUEST,
        "customer_name": "Dana Buyer",
        "company_name": "Acme Robotics",
    }
    payload.update(overrides)
    return payload


def build_services(gateway: FakeGateway = None) -> Services:
    return Services(gateway=gateway or FakeGateway())
