"""Share allocation and lifecycle."""

from sharetrack.sharing.allocation import (
    allocate_shares,
    plan_share_corrections,
    reallocate_amounts,
    validate_requests,
)
from sharetrack.sharing.service import ExpenseSharingService, ensure_can_update_payment

__all__ = [
    "ExpenseSharingService",
    "allocate_shares",
    "ensure_can_update_payment",
    "plan_share_corrections",
    "reallocate_amounts",
    "validate_requests",
]
