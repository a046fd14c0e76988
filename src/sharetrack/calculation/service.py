"""Invoice-level totals: what each participant owes the card owner."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import assert_never

from sharetrack.adapters.db.models import Invoice, InvoiceItem, ItemShare
from sharetrack.domain.money import ZERO
from sharetrack.domain.participants import (
    ContactRef,
    Participant,
    UserRef,
    normalize_email,
)
from sharetrack.domain.types import ParticipantShare
from sharetrack.sharing.service import ExpenseSharingService

_PERCENT_PLACES = Decimal("0.0001")


def _share_identity(share: ItemShare) -> tuple[str, str]:
    """Display name and email of the share's participant."""
    participant = share.participant
    if isinstance(participant, UserRef):
        user = share.user
        if user is None:
            raise ValueError(f"Share {share.share_id} references a missing user")
        return user.name, user.email
    if isinstance(participant, ContactRef):
        contact = share.trusted_contact
        if contact is not None:
            return contact.name, contact.email
        return share.contact_display_name or "", share.contact_display_email or ""
    assert_never(participant)


class InvoiceCalculationService:
    """Read-only calculations over invoices and their shares."""

    def __init__(self, sharing_service: ExpenseSharingService) -> None:
        self._sharing = sharing_service

    def calculate_user_share(self, invoice: Invoice, user_id: int) -> Decimal:
        """Amount a user is responsible for on an invoice.

        The card owner bears every item's unshared remainder plus any share they
        hold explicitly. Anyone else owes the sum of their own shares.
        """
        return self.calculate_participant_share(invoice, UserRef(user_id))

    def calculate_participant_share(
        self, invoice: Invoice, participant: Participant
    ) -> Decimal:
        """Like ``calculate_user_share`` but for either kind of participant."""
        is_owner = (
            isinstance(participant, UserRef)
            and participant.user_id == invoice.owner_user_id
        )
        total = ZERO
        for item in invoice.items:
            if is_owner:
                total += item.unshared_amount
            for share in item.shares:
                if share.participant == participant:
                    total += share.amount
        return total

    def calculate_other_participant_shares(
        self, invoice: Invoice, owner_user_id: int
    ) -> list[ParticipantShare]:
        """Aggregate what everyone but the owner owes on an invoice.

        Users and trusted contacts that share an email are merged into one
        entry. The first share seen for an email decides the entry's name.
        Contacts owned by another user are ignored.

        Args:
            invoice: Invoice with items and shares loaded
            owner_user_id: Card owner whose view is computed

        Returns:
            One entry per distinct email, in first-seen order
        """
        names: dict[str, str] = {}
        totals: dict[str, Decimal] = {}

        for item in invoice.items:
            for share in item.shares:
                participant = share.participant
                if isinstance(participant, UserRef):
                    if participant.user_id == owner_user_id:
                        continue
                elif isinstance(participant, ContactRef):
                    contact = share.trusted_contact
                    if contact is None or contact.owner_user_id != owner_user_id:
                        continue
                else:
                    assert_never(participant)

                name, email = _share_identity(share)
                key = normalize_email(email)
                if key not in names:
                    names[key] = name
                    totals[key] = ZERO
                totals[key] += share.amount

        return [
            ParticipantShare(name=names[key], email=key, total_amount=totals[key])
            for key in names
        ]

    def calculate_total_for_user(self, user_id: int, month: date) -> Decimal:
        """Sum of a user's shares across all invoices of a billing month."""
        shares = self._sharing.get_shares_for_user(user_id, month=month)
        return sum((share.amount for share in shares), ZERO)

    def calculate_shares_for_item(self, item: InvoiceItem) -> dict[Participant, Decimal]:
        return {share.participant: share.amount for share in item.shares}

    def calculate_total_shared_amount(self, invoice: Invoice) -> Decimal:
        return sum((item.shared_amount for item in invoice.items), ZERO)

    def calculate_unshared_amount(self, invoice: Invoice) -> Decimal:
        return sum((item.unshared_amount for item in invoice.items), ZERO)

    def calculate_shared_percentage(self, invoice: Invoice) -> Decimal:
        """Fraction of the invoice total that is shared, to four places."""
        total = invoice.total_amount
        if total == 0:
            return Decimal("0.0000")
        shared = self.calculate_total_shared_amount(invoice)
        return (shared / total).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)
