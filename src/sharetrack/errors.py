"""Typed failures raised by the sharing and calculation engines."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sharetrack.domain.participants import Participant


class SharingError(Exception):
    """Base class for every error the engine reports to its callers."""


class ValidationError(SharingError):
    """A split request or payment update is malformed."""

    def __init__(
        self,
        message: str,
        *,
        item_id: int | None = None,
        participant: Participant | None = None,
        percentage: Decimal | None = None,
    ) -> None:
        super().__init__(message)
        self.item_id = item_id
        self.participant = participant
        self.percentage = percentage


class NotFoundError(SharingError):
    """A referenced item, share, invoice or participant does not exist."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class UnauthorizedError(SharingError):
    """The acting user may not change the payment status of a share."""

    def __init__(self, share_id: int, acting_user_id: int) -> None:
        super().__init__(
            f"User {acting_user_id} is not allowed to update payment status "
            f"of share {share_id}"
        )
        self.share_id = share_id
        self.acting_user_id = acting_user_id


class ConflictError(SharingError):
    """The share set of an item was changed by another writer."""

    def __init__(self, item_id: int, reason: str) -> None:
        super().__init__(f"Conflicting update of shares for item {item_id}: {reason}")
        self.item_id = item_id
        self.reason = reason
