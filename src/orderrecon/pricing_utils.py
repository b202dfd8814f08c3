"""Pricing repair for order lines exported without per-line prices.

Some Platform B exports carry only the order-level grand total. When an
order's lines are unpriced the order's net revenue is spread across them by
quantity share; when some lines are priced, missing halves of
unit price / line revenue are derived from each other instead.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Sequence

import numpy as np


@dataclass(frozen=True)
class PricedLine:
    quantity: float
    unit_price: float
    line_revenue: float


def _effective_qty(quantity: float) -> float:
    # Floor at 1: no division by zero, and a zero-quantity line cannot absorb the order
    try:
        q = float(quantity)
    except (TypeError, ValueError):
        return 1.0
    if not np.isfinite(q) or q < 1:
        return 1.0
    return q


def has_real_pricing(lines: Sequence[PricedLine]) -> bool:
    return any(line.unit_price > 0 or line.line_revenue > 0 for line in lines)


def repair_line_pricing(lines: Sequence[PricedLine], order_net: float) -> List[PricedLine]:
    """Return repaired copies of ``lines``; the input is not modified.

    - Any line priced: fill line_revenue from unit_price (or the reverse)
      where exactly one of them is missing. Fully priced lines are untouched.
    - No line priced and ``order_net > 0``: allocate ``order_net`` by
      quantity share. ``sum(line_revenue) == order_net`` up to float rounding.
    - Otherwise the lines come back unchanged.

    A repaired line carries the quantity used for its arithmetic (floored at
    1), so ``unit_price * quantity == line_revenue`` holds on every repaired
    line.
    """
    if not lines:
        return []

    if has_real_pricing(lines):
        repaired: List[PricedLine] = []
        for line in lines:
            qty = _effective_qty(line.quantity)
            if line.line_revenue <= 0 < line.unit_price:
                line = replace(line, quantity=qty, line_revenue=line.unit_price * qty)
            elif line.unit_price <= 0 < line.line_revenue:
                line = replace(line, quantity=qty, unit_price=line.line_revenue / qty)
            repaired.append(line)
        return repaired

    if not order_net or order_net <= 0:
        return list(lines)

    qtys = np.array([_effective_qty(line.quantity) for line in lines], dtype="float64")
    shares = float(order_net) * (qtys / qtys.sum())
    return [
        replace(line, quantity=float(qty), line_revenue=float(share), unit_price=float(share / qty))
        for line, share, qty in zip(lines, shares, qtys)
    ]
