"""
Slab table management.

A user's slab table is only ever swapped as a whole: the old rows are
deleted and the new rows inserted in the same transaction, so a report
running concurrently sees either the old table or the new one.
"""

import logging
from decimal import Decimal
from typing import Any, List, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from slabline.models import CommissionSlab, User
from slabline.services.calculator import to_decimal
from slabline.services.exceptions import NotFoundError, SlabValidationError

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float, Decimal)) or isinstance(value, bool):
        return False
    return to_decimal(value).is_finite()


def validate_slab(slab: Any, index: int = 0) -> None:
    """
    Validate one slab on its own, without looking at the rest of the table.

    Raises:
        SlabValidationError: naming the offending field
    """
    min_amount = slab.min_amount
    if not _is_number(min_amount) or to_decimal(min_amount) < 0:
        raise SlabValidationError("Invalid minimum amount", "min_amount", index)

    max_amount = slab.max_amount
    if max_amount is not None and (
        not _is_number(max_amount) or to_decimal(max_amount) <= to_decimal(min_amount)
    ):
        raise SlabValidationError("Invalid maximum amount", "max_amount", index)

    rate = slab.rate
    if not _is_number(rate) or to_decimal(rate) < 0:
        raise SlabValidationError("Invalid commission rate", "rate", index)


def validate_slab_table(slabs: Sequence[Any]) -> None:
    """
    Validate every slab, then check the single table-wide rule: at most one
    unbounded slab, and it must start above every other slab.
    """
    for index, slab in enumerate(slabs):
        validate_slab(slab, index)

    unbounded = [(index, slab) for index, slab in enumerate(slabs) if slab.max_amount is None]
    if len(unbounded) > 1:
        raise SlabValidationError(
            "Only one slab may have no maximum amount", "max_amount", unbounded[1][0]
        )

    if unbounded:
        index, top = unbounded[0]
        top_min = to_decimal(top.min_amount)
        for other_index, other in enumerate(slabs):
            if other_index != index and to_decimal(other.min_amount) >= top_min:
                raise SlabValidationError(
                    "The slab with no maximum amount must have the highest minimum amount",
                    "max_amount",
                    index,
                )


async def get_slabs(db: AsyncSession, owner_id: int) -> List[CommissionSlab]:
    """Get a user's slabs in evaluation order."""
    result = await db.execute(
        select(CommissionSlab)
        .where(CommissionSlab.user_id == owner_id)
        .order_by(CommissionSlab.min_amount, CommissionSlab.id)
    )
    return list(result.scalars().all())


async def replace_slabs(
    db: AsyncSession,
    owner_id: int,
    slabs: Sequence[Any],
) -> List[CommissionSlab]:
    """Replace a user's whole slab table.

    Nothing is written unless every slab is valid. Delete and insert run in
    the session's current transaction; the caller commits once.

    Args:
        db: Database session
        owner_id: User whose table is replaced
        slabs: Objects with min_amount, max_amount (None = unbounded) and rate

    Returns:
        The newly created slab rows, in submitted order

    Raises:
        SlabValidationError: a slab is malformed
        NotFoundError: the user does not exist
    """
    validate_slab_table(slabs)

    owner = await db.get(User, owner_id)
    if not owner:
        raise NotFoundError("User not found")

    await db.execute(
        delete(CommissionSlab).where(CommissionSlab.user_id == owner_id)
    )

    new_slabs = [
        CommissionSlab(
            user_id=owner_id,
            min_amount=to_decimal(slab.min_amount),
            max_amount=None if slab.max_amount is None else to_decimal(slab.max_amount),
            rate=to_decimal(slab.rate),
        )
        for slab in slabs
    ]
    db.add_all(new_slabs)
    await db.flush()

    logger.info(f"Replaced slab table for user {owner_id} with {len(new_slabs)} slab(s)")
    return new_slabs
