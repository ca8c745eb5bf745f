"""
orders.workflow

Order status graphs and payment phase rules.

Two workflows exist side by side:

- ``simplified`` (canonical): one full payment, optional shipping fee.
    submitted -> paid -> in_production -> shipping -> delivered

- ``legacy`` (compat): 40/60 deposit + balance.
    draft -> quote_requested -> quoted -> deposit_pending -> deposit_paid
    -> in_production -> quality_check -> balance_pending -> balance_paid
    -> ready_to_ship -> shipped -> delivered -> completed
  plus ``cancelled`` / ``refunded`` from every non-terminal state.

Everything here is pure data + functions so the graphs can be tested without a
database.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Tuple

from .exceptions import InvalidTransitionError, ValidationError

# Minimum order quantity (units per order).
MOQ = 50

# Legacy deposit share of the order total.
DEPOSIT_RATIO = 0.4

WORKFLOW_SIMPLIFIED = "simplified"
WORKFLOW_LEGACY = "legacy"
WORKFLOWS = (WORKFLOW_SIMPLIFIED, WORKFLOW_LEGACY)

# ---- simplified states ----
SUBMITTED = "submitted"
PAID = "paid"
IN_PRODUCTION = "in_production"
SHIPPING = "shipping"
DELIVERED = "delivered"

# ---- legacy states ----
DRAFT = "draft"
QUOTE_REQUESTED = "quote_requested"
QUOTED = "quoted"
DEPOSIT_PENDING = "deposit_pending"
DEPOSIT_PAID = "deposit_paid"
QUALITY_CHECK = "quality_check"
BALANCE_PENDING = "balance_pending"
BALANCE_PAID = "balance_paid"
READY_TO_SHIP = "ready_to_ship"
SHIPPED = "shipped"
COMPLETED = "completed"
CANCELLED = "cancelled"
REFUNDED = "refunded"

SIMPLIFIED_CHAIN: Tuple[str, ...] = (SUBMITTED, PAID, IN_PRODUCTION, SHIPPING, DELIVERED)

LEGACY_CHAIN: Tuple[str, ...] = (
    DRAFT,
    QUOTE_REQUESTED,
    QUOTED,
    DEPOSIT_PENDING,
    DEPOSIT_PAID,
    IN_PRODUCTION,
    QUALITY_CHECK,
    BALANCE_PENDING,
    BALANCE_PAID,
    READY_TO_SHIP,
    SHIPPED,
    DELIVERED,
    COMPLETED,
)

LEGACY_TERMINAL: FrozenSet[str] = frozenset({COMPLETED, CANCELLED, REFUNDED})


def _chain_edges(chain: Tuple[str, ...]) -> Dict[str, FrozenSet[str]]:
    edges: Dict[str, FrozenSet[str]] = {}
    for idx, state in enumerate(chain):
        nxt = chain[idx + 1:idx + 2]
        edges[state] = frozenset(nxt)
    return edges


def _legacy_edges() -> Dict[str, FrozenSet[str]]:
    edges = _chain_edges(LEGACY_CHAIN)
    for state, successors in list(edges.items()):
        if state not in LEGACY_TERMINAL:
            edges[state] = successors | {CANCELLED, REFUNDED}
    edges[CANCELLED] = frozenset()
    edges[REFUNDED] = frozenset()
    return edges


GRAPHS: Dict[str, Dict[str, FrozenSet[str]]] = {
    WORKFLOW_SIMPLIFIED: _chain_edges(SIMPLIFIED_CHAIN),
    WORKFLOW_LEGACY: _legacy_edges(),
}

INITIAL_STATUS = {
    WORKFLOW_SIMPLIFIED: SUBMITTED,
    WORKFLOW_LEGACY: QUOTE_REQUESTED,
}

ALL_STATUSES: Tuple[str, ...] = tuple(
    dict.fromkeys(SIMPLIFIED_CHAIN + LEGACY_CHAIN + (CANCELLED, REFUNDED))
)

# ---- payment phases ----
PHASE_DEPOSIT = "deposit"
PHASE_BALANCE = "balance"
PHASE_FULL = "full_payment"
PHASE_SHIPPING_FEE = "shipping_fee"
PHASES = (PHASE_DEPOSIT, PHASE_BALANCE, PHASE_FULL, PHASE_SHIPPING_FEE)

# Phases seeded as pending rows when an order is created.
INITIAL_PHASES = {
    WORKFLOW_SIMPLIFIED: (PHASE_FULL,),
    WORKFLOW_LEGACY: (PHASE_DEPOSIT, PHASE_BALANCE),
}

# Phases a customer may be charged for under each workflow.
CHARGEABLE_PHASES = {
    WORKFLOW_SIMPLIFIED: frozenset({PHASE_FULL, PHASE_SHIPPING_FEE}),
    WORKFLOW_LEGACY: frozenset({PHASE_DEPOSIT, PHASE_BALANCE}),
}

# (workflow, phase) -> (expected pre-state, state reached once the phase is paid)
PHASE_TRANSITIONS: Dict[Tuple[str, str], Tuple[str, str]] = {
    (WORKFLOW_SIMPLIFIED, PHASE_FULL): (SUBMITTED, PAID),
    (WORKFLOW_SIMPLIFIED, PHASE_SHIPPING_FEE): (IN_PRODUCTION, SHIPPING),
    (WORKFLOW_LEGACY, PHASE_DEPOSIT): (DEPOSIT_PENDING, DEPOSIT_PAID),
    (WORKFLOW_LEGACY, PHASE_BALANCE): (BALANCE_PENDING, BALANCE_PAID),
}

PHASE_LABELS = {
    PHASE_DEPOSIT: "Deposit (40%)",
    PHASE_BALANCE: "Balance (60%)",
    PHASE_FULL: "Full payment",
    PHASE_SHIPPING_FEE: "Shipping fee",
}


def graph_for(workflow: str) -> Dict[str, FrozenSet[str]]:
    try:
        return GRAPHS[workflow]
    except KeyError:
        raise ValidationError(f"Unknown workflow '{workflow}'.", code="unknown_workflow")


def successors(workflow: str, status: str) -> FrozenSet[str]:
    return graph_for(workflow).get(status, frozenset())


def is_allowed(workflow: str, current: str, target: str) -> bool:
    return target in successors(workflow, current)


def check_transition(workflow: str, current: str, target: str) -> None:
    """Raise InvalidTransitionError unless ``target`` directly follows ``current``."""
    graph = graph_for(workflow)
    if target not in graph:
        raise InvalidTransitionError(
            f"'{target}' is not a {workflow} order status.",
            detail={"from": current, "to": target},
        )
    if target not in graph.get(current, frozenset()):
        raise InvalidTransitionError(
            f"Cannot move order from '{current}' to '{target}'.",
            detail={"from": current, "to": target, "allowed": sorted(graph.get(current, frozenset()))},
        )


def phase_transition(workflow: str, phase: str) -> Optional[Tuple[str, str]]:
    return PHASE_TRANSITIONS.get((workflow, phase))


def check_phase(workflow: str, phase: str) -> None:
    if phase not in CHARGEABLE_PHASES.get(workflow, frozenset()):
        raise ValidationError(
            f"Phase '{phase}' does not apply to {workflow} orders.",
            code="invalid_phase",
            detail={"phase": phase, "workflow": workflow},
        )
