"""
Slab-based commission calculation.

Rules:
- Slabs are evaluated in ascending min_amount order, whatever order they were saved in
- Progressive mode: each slab earns its rate on the part of the deal inside [min, max)
- Flat mode: the one slab containing the deal value earns its rate on the whole value
- A value equal to a slab's min_amount belongs to that slab (inclusive lower bound)
- Negative or missing deal values count as zero
- Only the final total is rounded to cents; breakdown lines keep full precision

Everything here is pure: no I/O, no settings lookups, no mutation of the
slabs passed in. The same (deal value, slabs, mode) always gives the same
result, which lets reports be re-run for audit.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from slabline.services.exceptions import ComputationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


class CommissionMode(str, Enum):
    """How a slab table is applied to a deal value."""
    PROGRESSIVE = "progressive"
    FLAT = "flat"


@dataclass(frozen=True)
class SlabShare:
    """Commission earned by one slab for one deal."""

    slab_id: Optional[int]
    applied_amount: Decimal
    rate: Decimal
    commission: Decimal


@dataclass(frozen=True)
class CommissionCalculation:
    """Result of running one deal through a slab table."""

    deal_value: Decimal
    total_commission: Decimal
    breakdown: Tuple[SlabShare, ...] = ()

    @property
    def effective_rate(self) -> Decimal:
        """Total commission as a percentage of the deal value."""
        if self.deal_value <= 0:
            return ZERO
        return (self.total_commission / self.deal_value * HUNDRED).quantize(
            CENT, rounding=ROUND_HALF_UP
        )


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored or submitted number to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the short repr, Decimal(float) would keep binary noise
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round to the currency's minor unit."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _sort_key(slab: Any) -> Tuple[Decimal, bool]:
    # Unbounded slab sorts after a bounded one with the same floor
    return to_decimal(slab.min_amount), slab.max_amount is None


def order_slabs(slabs: Iterable[Any]) -> List[Any]:
    """
    Sort slabs for evaluation and check the invariants validation guarantees.

    Raises:
        ComputationError: a malformed slab slipped past validation
    """
    ordered = sorted(slabs, key=_sort_key)

    for position, slab in enumerate(ordered):
        lower = to_decimal(slab.min_amount)
        if lower < 0:
            raise ComputationError(f"Slab {getattr(slab, 'id', None)} has a negative min_amount")
        if to_decimal(slab.rate) < 0:
            raise ComputationError(f"Slab {getattr(slab, 'id', None)} has a negative rate")

        if slab.max_amount is None:
            is_top = position == len(ordered) - 1
            shares_floor = position > 0 and to_decimal(ordered[position - 1].min_amount) >= lower
            if not is_top or shares_floor:
                raise ComputationError(
                    f"Unbounded slab {getattr(slab, 'id', None)} is not the highest slab"
                )
        elif to_decimal(slab.max_amount) <= lower:
            raise ComputationError(
                f"Slab {getattr(slab, 'id', None)} has max_amount not above min_amount"
            )

    return ordered


def _progressive(value: Decimal, ordered: List[Any]) -> List[SlabShare]:
    shares = []
    for slab in ordered:
        lower = to_decimal(slab.min_amount)
        if value <= lower:
            # Remaining slabs start at or above this floor
            break

        top = value if slab.max_amount is None else min(value, to_decimal(slab.max_amount))
        portion = top - lower
        if portion <= 0:
            continue

        rate = to_decimal(slab.rate)
        shares.append(
            SlabShare(
                slab_id=getattr(slab, "id", None),
                applied_amount=portion,
                rate=rate,
                commission=portion * rate / HUNDRED,
            )
        )
    return shares


def _flat(value: Decimal, ordered: List[Any]) -> List[SlabShare]:
    for slab in ordered:
        lower = to_decimal(slab.min_amount)
        within_upper = slab.max_amount is None or value < to_decimal(slab.max_amount)
        if lower <= value and within_upper:
            rate = to_decimal(slab.rate)
            return [
                SlabShare(
                    slab_id=getattr(slab, "id", None),
                    applied_amount=value,
                    rate=rate,
                    commission=value * rate / HUNDRED,
                )
            ]
    return []


def calculate(
    deal_value: Any,
    slabs: Iterable[Any],
    mode: CommissionMode = CommissionMode.PROGRESSIVE,
) -> CommissionCalculation:
    """Calculate the commission owed on a single deal.

    Args:
        deal_value: Deal amount; None and negatives are treated as zero
        slabs: Objects exposing min_amount, max_amount (None = unbounded),
            rate (percent) and optionally id; ORM rows and schemas both work
        mode: Progressive (tiered brackets) or flat (whole value at one rate)

    Returns:
        CommissionCalculation with the rounded total and per-slab breakdown
    """
    value = max(to_decimal(deal_value), ZERO)
    ordered = order_slabs(slabs)

    if not ordered or value == 0:
        return CommissionCalculation(deal_value=value, total_commission=round_money(ZERO))

    if CommissionMode(mode) == CommissionMode.FLAT:
        shares = _flat(value, ordered)
    else:
        shares = _progressive(value, ordered)

    total = sum((share.commission for share in shares), ZERO)

    return CommissionCalculation(
        deal_value=value,
        total_commission=round_money(total),
        breakdown=tuple(shares),
    )
