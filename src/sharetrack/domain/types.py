"""Value types passed between the engines and the persistence layer."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import enum

from sharetrack.domain.money import to_decimal
from sharetrack.domain.participants import Participant
from sharetrack.errors import ValidationError


class PaymentMethod(enum.Enum):
    """Known ways a participant settles a share."""

    PIX = "PIX"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    OTHER = "OTHER"


@dataclass(frozen=True, slots=True)
class ShareRequest:
    """One participant's requested slice of an item.

    ``percentage`` is a fraction in (0, 1]; range checks happen in
    ``validate_requests`` so that they surface as ``ValidationError``.
    """

    participant: Participant
    percentage: Decimal
    responsible: bool = False

    def __post_init__(self) -> None:
        try:
            percentage = to_decimal(self.percentage)
        except ValueError as e:
            raise ValidationError(
                f"Share percentage for {self.participant} is not a number: "
                f"{self.percentage!r}",
                participant=self.participant,
            ) from e
        object.__setattr__(self, "percentage", percentage)


@dataclass(frozen=True, slots=True)
class ShareAllocation:
    """Allocation algorithm output for one request."""

    participant: Participant
    percentage: Decimal
    amount: Decimal
    responsible: bool = False


@dataclass(frozen=True, slots=True)
class ParticipantShare:
    """Total owed by one email identity across an invoice."""

    name: str
    email: str
    total_amount: Decimal


@dataclass(frozen=True, slots=True)
class ShareAmountRow:
    """Snapshot of a persisted share used by the recalculation sweep."""

    share_id: int
    item_id: int
    item_amount: Decimal
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True, slots=True)
class ShareCorrection:
    """A share whose stored amount must change."""

    share_id: int
    item_id: int
    old_amount: Decimal
    new_amount: Decimal
