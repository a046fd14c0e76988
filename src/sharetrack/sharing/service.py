"""Share lifecycle: split, query, remove, payment status and recalculation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal

from sharetrack.adapters.db.facade import DB
from sharetrack.adapters.db.models import InvoiceItem, ItemShare
from sharetrack.domain.money import ZERO
from sharetrack.domain.participants import Participant, UserRef
from sharetrack.domain.types import PaymentMethod, ShareRequest
from sharetrack.errors import NotFoundError, UnauthorizedError, ValidationError
from sharetrack.sharing.allocation import allocate_shares, plan_share_corrections
from sharetrack.sharing.logger import SharingLogger


def ensure_can_update_payment(share: ItemShare, acting_user_id: int) -> None:
    """Allow the card owner, or the share's own user participant.

    Contact shares can only be updated by the card owner since contacts have
    no account to act as themselves.

    Raises:
        UnauthorizedError: If ``acting_user_id`` is neither
    """
    if share.invoice_item.invoice.owner_user_id == acting_user_id:
        return
    participant = share.participant
    if isinstance(participant, UserRef) and participant.user_id == acting_user_id:
        return
    raise UnauthorizedError(share.share_id, acting_user_id)


def _payment_method_value(payment_method: PaymentMethod | str) -> str:
    if isinstance(payment_method, PaymentMethod):
        return payment_method.value
    value = (payment_method or "").strip()
    if not value:
        raise ValidationError("Payment method cannot be blank")
    return value


class ExpenseSharingService:
    """Creates, reads and updates the shares of invoice items."""

    def __init__(self, db: DB, *, sharing_logger: SharingLogger | None = None) -> None:
        self._db = db
        self._log = sharing_logger or SharingLogger()

    def _require_item(self, item_id: int) -> InvoiceItem:
        item = self._db.get_invoice_item(item_id)
        if item is None:
            raise NotFoundError("InvoiceItem", item_id)
        return item

    def create_shares_from_requests(
        self,
        item_id: int,
        requests: Sequence[ShareRequest],
    ) -> list[ItemShare]:
        """Replace an item's shares with a new split.

        Existing shares are always discarded first, so calling this twice leaves
        only the second split. An empty request list leaves the item unshared.

        Args:
            item_id: Item to split
            requests: Ordered split requests; the last one absorbs rounding

        Returns:
            The new shares in request order

        Raises:
            ValidationError: If the requests are malformed
            NotFoundError: If the item or a participant does not exist
            ConflictError: If the item changed while the split was being saved
        """
        item = self._require_item(item_id)
        allocations = allocate_shares(item.amount, requests, item_id=item_id)
        shares = self._db.replace_item_shares(
            item_id, allocations, expected_amount=item.amount
        )
        self._log.shares_replaced(
            item_id,
            len(shares),
            sum((share.amount for share in shares), ZERO),
            item.amount,
        )
        return shares

    def calculate_share_amounts(
        self,
        item_id: int,
        requests: Sequence[ShareRequest],
    ) -> dict[Participant, Decimal]:
        """Preview the amounts a split would produce without saving it."""
        item = self._require_item(item_id)
        allocations = allocate_shares(item.amount, requests, item_id=item_id)
        return {allocation.participant: allocation.amount for allocation in allocations}

    def get_shares_for_item(self, item_id: int) -> list[ItemShare]:
        return self._db.find_shares_by_item(item_id)

    def get_shares_for_user(
        self,
        user_id: int,
        month: date | None = None,
    ) -> list[ItemShare]:
        """Shares held by a user, optionally limited to one billing month."""
        return self._db.find_shares_by_user(user_id, month=month)

    def get_unpaid_shares_for_user(self, user_id: int) -> list[ItemShare]:
        return self._db.find_shares_by_user(user_id, unpaid_only=True)

    def remove_shares(self, item_id: int) -> int:
        """Delete every share of an item; its full amount falls to the card owner.

        Returns:
            Number of shares removed
        """
        removed = self._db.delete_shares_by_item(item_id)
        self._log.shares_removed(item_id, removed)
        return removed

    def mark_share_as_paid(
        self,
        share_id: int,
        payment_method: PaymentMethod | str,
        paid_at: datetime,
        acting_user_id: int,
    ) -> ItemShare:
        """Record payment of one share.

        Raises:
            ValidationError: If the payment method is blank or ``paid_at`` missing
            NotFoundError: If the share does not exist
            UnauthorizedError: If the acting user may not update the share
        """
        return self.mark_shares_as_paid_bulk(
            [share_id], payment_method, paid_at, acting_user_id
        )[0]

    def mark_share_as_unpaid(self, share_id: int, acting_user_id: int) -> ItemShare:
        """Reverse a recorded payment, clearing method and date.

        Raises:
            NotFoundError: If the share does not exist
            UnauthorizedError: If the acting user may not update the share
        """
        updated = self._db.update_shares(
            [share_id],
            check=lambda share: ensure_can_update_payment(share, acting_user_id),
            update=lambda share: share.mark_as_unpaid(),
        )
        self._log.payment_updated([share_id], acting_user_id, paid=False)
        return updated[0]

    def mark_shares_as_paid_bulk(
        self,
        share_ids: Sequence[int],
        payment_method: PaymentMethod | str,
        paid_at: datetime,
        acting_user_id: int,
    ) -> list[ItemShare]:
        """Record payment of several shares in one all-or-nothing transaction.

        The first missing or unauthorized share aborts the whole batch.

        Returns:
            Updated shares, in the order given (duplicates collapsed)
        """
        method = _payment_method_value(payment_method)
        if paid_at is None:
            raise ValidationError("Payment date cannot be empty")

        updated = self._db.update_shares(
            share_ids,
            check=lambda share: ensure_can_update_payment(share, acting_user_id),
            update=lambda share: share.mark_as_paid(method, paid_at),
        )
        if updated:
            self._log.payment_updated(
                [share.share_id for share in updated], acting_user_id, paid=True
            )
        return updated

    def recalculate_all_shares(self) -> int:
        """Re-derive every share amount from its percentage and current item amount.

        Paid status and participants are untouched. Running it again right after
        a successful run changes nothing.

        Returns:
            Number of items whose shares were modified
        """
        corrections = self._db.correct_share_amounts(plan_share_corrections)
        self._log.recalculation_complete(corrections)
        return len({correction.item_id for correction in corrections})
