"""Percentage split to exact cent amounts.

Every share amount is rounded half-up to cents on its own, then the last share
absorbs the residual so that the allocated total equals
``round_half_up(sum(percentages) * item_amount)``. The cent-level outcome
therefore depends on request order; callers that want a stable result should
order requests deterministically.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from sharetrack.domain.money import ONE, ZERO, round_half_up, to_decimal
from sharetrack.domain.participants import Participant
from sharetrack.domain.types import (
    ShareAllocation,
    ShareAmountRow,
    ShareCorrection,
    ShareRequest,
)
from sharetrack.errors import ValidationError


def validate_requests(
    requests: Sequence[ShareRequest],
    *,
    item_id: int | None = None,
) -> None:
    """Reject out-of-range percentages, totals above 100% and repeated participants.

    Args:
        requests: Requests for a single item, in caller order
        item_id: Item being split, carried on the error for context

    Raises:
        ValidationError: On the first malformed request
    """
    seen: set[Participant] = set()
    total = Decimal(0)
    for request in requests:
        percentage = request.percentage
        if not percentage.is_finite() or percentage <= 0 or percentage > ONE:
            raise ValidationError(
                f"Share percentage for {request.participant} must be greater than 0 "
                f"and at most 1, got {percentage}",
                item_id=item_id,
                participant=request.participant,
                percentage=percentage,
            )
        if request.participant in seen:
            raise ValidationError(
                f"Participant {request.participant} appears more than once",
                item_id=item_id,
                participant=request.participant,
                percentage=percentage,
            )
        seen.add(request.participant)
        total += percentage

    if total > ONE:
        raise ValidationError(
            f"Sum of share percentages cannot exceed 1, got {total}",
            item_id=item_id,
            percentage=total,
        )


def reallocate_amounts(
    item_amount: Decimal,
    percentages: Sequence[Decimal],
) -> list[Decimal]:
    """Compute cent amounts for percentages of one item, last share corrected.

    Args:
        item_amount: Item amount (scale 2)
        percentages: Share fractions in allocation order

    Returns:
        One amount per percentage; the amounts sum to
        ``round_half_up(sum(percentages) * item_amount)`` and none is negative
    """
    if not percentages:
        return []

    amount = to_decimal(item_amount)
    amounts = [round_half_up(amount * percentage) for percentage in percentages]
    target = round_half_up(amount * sum(percentages, Decimal(0)))
    amounts[-1] = target - sum(amounts[:-1], ZERO)

    if amounts[-1] < 0:
        # Half-up rounding of the earlier shares overshot the target; give the
        # excess back from the preceding shares, newest first.
        deficit = -amounts[-1]
        amounts[-1] = ZERO
        for idx in range(len(amounts) - 2, -1, -1):
            taken = min(deficit, amounts[idx])
            amounts[idx] -= taken
            deficit -= taken
            if deficit == 0:
                break

    return amounts


def allocate_shares(
    item_amount: Decimal,
    requests: Sequence[ShareRequest],
    *,
    item_id: int | None = None,
) -> list[ShareAllocation]:
    """Turn validated split requests into share allocations.

    Args:
        item_amount: Amount of the item being split
        requests: Ordered split requests
        item_id: Item being split, for error context

    Returns:
        One allocation per request, in request order

    Raises:
        ValidationError: If the requests are malformed
    """
    validate_requests(requests, item_id=item_id)
    amounts = reallocate_amounts(
        item_amount, [request.percentage for request in requests]
    )
    return [
        ShareAllocation(
            participant=request.participant,
            percentage=request.percentage,
            amount=amount,
            responsible=request.responsible,
        )
        for request, amount in zip(requests, amounts, strict=True)
    ]


def plan_share_corrections(rows: Sequence[ShareAmountRow]) -> list[ShareCorrection]:
    """Re-derive share amounts from stored percentages and current item amounts.

    Rows are grouped per item keeping their given order, so the last row of each
    item absorbs the rounding residual exactly as at creation time.

    Args:
        rows: Snapshot of persisted shares, ordered within each item

    Returns:
        Corrections for the shares whose amount differs from the derived one
    """
    by_item: dict[int, list[ShareAmountRow]] = {}
    for row in rows:
        by_item.setdefault(row.item_id, []).append(row)

    corrections: list[ShareCorrection] = []
    for item_id, item_rows in by_item.items():
        new_amounts = reallocate_amounts(
            item_rows[0].item_amount, [row.percentage for row in item_rows]
        )
        for row, new_amount in zip(item_rows, new_amounts, strict=True):
            if row.amount != new_amount:
                corrections.append(
                    ShareCorrection(
                        share_id=row.share_id,
                        item_id=item_id,
                        old_amount=row.amount,
                        new_amount=new_amount,
                    )
                )
    return corrections
