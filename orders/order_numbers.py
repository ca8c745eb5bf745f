"""
orders.order_numbers

Human-readable order number generation.

Format (default):
  ORD-XXXXX-XXXXX

Where X uses an unambiguous alphabet:
  23456789ABCDEFGHJKLMNPQRSTUVWXYZ
(omits: 0,1,I,O so numbers can be read back over the phone)

========= CHANGE LOG =========
2026-10-03 • ADD: Order number generator + uniqueness helper (caller supplies exists()).
"""

from __future__ import annotations

import secrets
from typing import Callable

ALPHABET: str = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"


def generate_order_number(
    *,
    prefix: str = "ORD",
    groups: int = 2,
    group_len: int = 5,
) -> str:
    """
    Generate a single order number string.

    Example:
      ORD-7K4Q9-9R6G2
    """
    pfx = (prefix or "").strip().upper() or "ORD"
    groups = max(1, groups)
    group_len = max(4, group_len)

    chunks = ["".join(secrets.choice(ALPHABET) for _ in range(group_len)) for _ in range(groups)]
    return f"{pfx}-" + "-".join(chunks)


def generate_unique_order_number(
    *,
    exists: Callable[[str], bool],
    prefix: str = "ORD",
    max_tries: int = 25,
) -> str:
    """
    Generate an order number that ``exists(number)`` reports as unused.

    Typically: lambda n: Order.objects.filter(order_number=n).exists()
    """
    for _ in range(max(1, max_tries)):
        candidate = generate_order_number(prefix=prefix)
        if not exists(candidate):
            return candidate
    raise RuntimeError("Unable to generate a unique order number (too many collisions).")


def is_valid_order_number(value: str, *, prefix: str = "ORD") -> bool:
    parts = (value or "").strip().upper().split("-")
    if len(parts) < 2 or parts[0] != prefix:
        return False
    return all(p and all(ch in ALPHABET for ch in p) for p in parts[1:])
