"""Domain value types shared by the sharing and calculation engines."""

from sharetrack.domain.money import (
    CENT,
    ZERO,
    amount_to_cents,
    cents_to_amount,
    round_half_up,
    to_decimal,
)
from sharetrack.domain.participants import (
    ContactRef,
    Participant,
    UserRef,
    normalize_email,
    parse_participant,
)
from sharetrack.domain.types import (
    ParticipantShare,
    PaymentMethod,
    ShareAllocation,
    ShareAmountRow,
    ShareCorrection,
    ShareRequest,
)

__all__ = [
    "CENT",
    "ZERO",
    "ContactRef",
    "Participant",
    "ParticipantShare",
    "PaymentMethod",
    "ShareAllocation",
    "ShareAmountRow",
    "ShareCorrection",
    "ShareRequest",
    "UserRef",
    "amount_to_cents",
    "cents_to_amount",
    "normalize_email",
    "parse_participant",
    "round_half_up",
    "to_decimal",
]
