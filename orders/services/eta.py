"""
orders.services.eta

Business-day lead-time math for the customer "where is my order" panel.

Lead times are snapshotted onto the order at creation
(``Order.lead_time_snapshot``) so later changes to STOREFRONT_LEAD_TIMES never
move the promise made to an existing customer.

Snapshot shape::

    {
        "production": {"min_days": 7, "max_days": 10},
        "shipping": {"min_days": 2, "max_days": 4},
        "working_days": ["Mon", "Tue", "Wed", "Thu", "Fri"],
    }

========= CHANGE LOG =========
2026-10-12 • ADD: schedule + delivery window + lateness (business days only).
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from django.conf import settings
from django.utils import timezone

from .. import workflow as wf

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

DEFAULT_LEAD_TIMES: Dict[str, Any] = {
    "production": {"min_days": 7, "max_days": 10},
    "shipping": {"min_days": 2, "max_days": 4},
    "working_days": ["Mon", "Tue", "Wed", "Thu", "Fri"],
}

STAGE_PENDING = "pending"
STAGE_IN_PROGRESS = "in_progress"
STAGE_DONE = "done"


def current_lead_times() -> Dict[str, Any]:
    """Copy of the configured lead times, for snapshotting onto a new order."""
    return copy.deepcopy(getattr(settings, "STOREFRONT_LEAD_TIMES", None) or DEFAULT_LEAD_TIMES)


def _working_set(working_days: Iterable[str]) -> set:
    return {DAY_NAMES.index(d) for d in working_days if d in DAY_NAMES}


def add_business_days(start: datetime, days: int, working_days: Iterable[str]) -> datetime:
    """Step forward one calendar day at a time, counting only working days."""
    ws = _working_set(working_days)
    remaining = max(0, int(days))
    if remaining and not ws:
        raise ValueError("working_days must name at least one weekday.")
    d = start
    while remaining > 0:
        d = d + timedelta(days=1)
        if d.weekday() in ws:
            remaining -= 1
    return d


def count_business_days(start: datetime, end: datetime, working_days: Iterable[str]) -> int:
    if end <= start:
        return 0
    ws = _working_set(working_days)
    d = start
    count = 0
    while d < end:
        if d.weekday() in ws:
            count += 1
        d = d + timedelta(days=1)
    return count


def _snapshot(snapshot: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    snap = copy.deepcopy(DEFAULT_LEAD_TIMES)
    for key in ("production", "shipping"):
        snap[key].update((snapshot or {}).get(key) or {})
    if (snapshot or {}).get("working_days"):
        snap["working_days"] = list(snapshot["working_days"])
    return snap


def compute_schedule(snapshot: Optional[Dict[str, Any]], created_at: datetime, paid_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Expected stage windows and the delivery window.

    Production starts at ``paid_at`` (or ``created_at`` while unpaid) and each
    stage bar uses the max duration; the delivery window spans min..max of
    production + shipping.
    """
    snap = _snapshot(snapshot)
    days = snap["working_days"]
    start = paid_at or created_at

    prod_end = add_business_days(start, snap["production"]["max_days"], days)
    ship_end = add_business_days(prod_end, snap["shipping"]["max_days"], days)

    return {
        "in_production": {"expected_start": start, "expected_end": prod_end},
        "shipping": {"expected_start": prod_end, "expected_end": ship_end},
        "delivery_window": {
            "start": add_business_days(start, snap["production"]["min_days"] + snap["shipping"]["min_days"], days),
            "end": add_business_days(start, snap["production"]["max_days"] + snap["shipping"]["max_days"], days),
        },
    }


STAGE_BY_STATUS = {
    # status: (in_production, shipping)
    wf.PAID: (STAGE_IN_PROGRESS, STAGE_PENDING),
    wf.DEPOSIT_PAID: (STAGE_IN_PROGRESS, STAGE_PENDING),
    wf.IN_PRODUCTION: (STAGE_IN_PROGRESS, STAGE_PENDING),
    wf.QUALITY_CHECK: (STAGE_IN_PROGRESS, STAGE_PENDING),
    wf.BALANCE_PENDING: (STAGE_DONE, STAGE_PENDING),
    wf.BALANCE_PAID: (STAGE_DONE, STAGE_PENDING),
    wf.READY_TO_SHIP: (STAGE_DONE, STAGE_PENDING),
    wf.SHIPPING: (STAGE_DONE, STAGE_IN_PROGRESS),
    wf.SHIPPED: (STAGE_DONE, STAGE_IN_PROGRESS),
    wf.DELIVERED: (STAGE_DONE, STAGE_DONE),
    wf.COMPLETED: (STAGE_DONE, STAGE_DONE),
}


def _stage_statuses(status: str) -> Dict[str, str]:
    production, shipping = STAGE_BY_STATUS.get(status, (STAGE_PENDING, STAGE_PENDING))
    return {"in_production": production, "shipping": shipping}


def compute_eta(order, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or timezone.now()
    snap = _snapshot(order.lead_time_snapshot)
    days = snap["working_days"]
    schedule = compute_schedule(snap, order.created_at, order.paid_at)
    statuses = _stage_statuses(order.status)

    stages: Dict[str, Any] = {}
    for key in ("in_production", "shipping"):
        window = schedule[key]
        stages[key] = {
            "status": statuses[key],
            "expected_start": window["expected_start"].isoformat(),
            "expected_end": window["expected_end"].isoformat(),
            "remaining_business_days": count_business_days(now, window["expected_end"], days),
        }

    # late = the stage currently running has passed its expected end
    is_late, days_late = False, 0
    for key in ("in_production", "shipping"):
        end = schedule[key]["expected_end"]
        if statuses[key] == STAGE_IN_PROGRESS and now > end:
            is_late = True
            days_late = count_business_days(end, now, days)

    window = schedule["delivery_window"]
    return {
        "order_number": order.order_number,
        "status": order.status,
        "stages": stages,
        "delivery_window": {"start": window["start"].isoformat(), "end": window["end"].isoformat()},
        "is_late": is_late,
        "days_late": days_late,
    }
