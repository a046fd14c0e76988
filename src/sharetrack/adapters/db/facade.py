from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import (
    Session,
    joinedload,
    selectinload,
    sessionmaker,
)

from sharetrack.adapters.db.models import (
    Base,
    CreditCard,
    Invoice,
    InvoiceItem,
    ItemShare,
    TrustedContact,
    User,
)
from sharetrack.domain.money import amount_to_cents, cents_to_amount, to_decimal
from sharetrack.domain.participants import ContactRef, UserRef, normalize_email
from sharetrack.domain.types import ShareAllocation, ShareAmountRow, ShareCorrection
from sharetrack.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.orm.interfaces import LoaderOption


def _share_options() -> tuple[LoaderOption, ...]:
    """Relationships read from detached shares (participant and card owner)."""
    return (
        joinedload(ItemShare.user),
        joinedload(ItemShare.trusted_contact),
        joinedload(ItemShare.invoice_item)
        .joinedload(InvoiceItem.invoice)
        .joinedload(Invoice.credit_card),
    )


def _item_options() -> tuple[LoaderOption, ...]:
    return (
        joinedload(InvoiceItem.invoice).joinedload(Invoice.credit_card),
        selectinload(InvoiceItem.shares).options(
            joinedload(ItemShare.user), joinedload(ItemShare.trusted_contact)
        ),
    )


def _invoice_options() -> tuple[LoaderOption, ...]:
    return (
        joinedload(Invoice.credit_card),
        selectinload(Invoice.items)
        .selectinload(InvoiceItem.shares)
        .options(joinedload(ItemShare.user), joinedload(ItemShare.trusted_contact)),
    )


class DB:
    """Database service layer: identities, invoices and share persistence.

    Every public method runs in its own session, so each call is one atomic
    unit of work. Returned objects are detached with the relationships the
    engines read already loaded.
    """

    def __init__(self, url: str) -> None:
        """Initialize database connection.

        Args:
            url: Database URL (e.g., "sqlite:///sharetrack.db")
        """
        self._url = url
        self._engine = create_engine(url, echo=False)
        self._session_factory = sessionmaker(
            bind=self._engine, class_=Session, expire_on_commit=False
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for database sessions."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self._engine)

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    def create_user(self, *, name: str, email: str) -> User:
        """Create a registered account holder.

        Args:
            name: Display name
            email: Account email (stored normalized)

        Returns:
            Created User instance
        """
        with self.session() as session:  # type: Session
            user = User(name=name.strip(), email=normalize_email(email))
            session.add(user)
            session.flush()
            session.refresh(user)
            session.expunge(user)
            return user

    def get_user(self, user_id: int) -> User | None:
        with self.session() as session:  # type: Session
            user = session.get(User, user_id)
            if user:
                session.expunge(user)
            return user

    def create_trusted_contact(
        self,
        *,
        owner_user_id: int,
        name: str,
        email: str,
        note: str | None = None,
    ) -> TrustedContact:
        """Create a trusted contact owned by a user.

        Args:
            owner_user_id: User who owns the contact
            name: Contact display name
            email: Contact email (stored normalized)
            note: Optional free-text note

        Returns:
            Created TrustedContact instance

        Raises:
            NotFoundError: If the owner does not exist
        """
        with self.session() as session:  # type: Session
            if session.get(User, owner_user_id) is None:
                raise NotFoundError("User", owner_user_id)
            contact = TrustedContact(
                owner_user_id=owner_user_id,
                name=name.strip(),
                email=normalize_email(email),
                note=note.strip() if note and note.strip() else None,
            )
            session.add(contact)
            session.flush()
            session.refresh(contact)
            session.expunge(contact)
            return contact

    def get_trusted_contact(self, contact_id: int) -> TrustedContact | None:
        with self.session() as session:  # type: Session
            contact = session.get(TrustedContact, contact_id)
            if contact:
                session.expunge(contact)
            return contact

    # ------------------------------------------------------------------
    # Cards, invoices and items
    # ------------------------------------------------------------------

    def create_credit_card(
        self,
        *,
        owner_user_id: int,
        name: str,
        last_four_digits: str | None = None,
    ) -> CreditCard:
        with self.session() as session:  # type: Session
            if session.get(User, owner_user_id) is None:
                raise NotFoundError("User", owner_user_id)
            card = CreditCard(
                owner_user_id=owner_user_id,
                name=name,
                last_four_digits=last_four_digits,
            )
            session.add(card)
            session.flush()
            session.refresh(card)
            session.expunge(card)
            return card

    def create_invoice(self, *, card_id: int, month: date, due_date: date) -> Invoice:
        """Create an invoice for a card's billing month.

        Args:
            card_id: Credit card ID
            month: Any day of the billing month (stored as the first day)
            due_date: Payment due date

        Returns:
            Created Invoice instance
        """
        with self.session() as session:  # type: Session
            if session.get(CreditCard, card_id) is None:
                raise NotFoundError("CreditCard", card_id)
            invoice = Invoice(
                card_id=card_id, month=month.replace(day=1), due_date=due_date
            )
            session.add(invoice)
            session.flush()
            session.refresh(invoice)
            session.expunge(invoice)
            return invoice

    def get_invoice(self, invoice_id: int) -> Invoice | None:
        """Load an invoice with its card, items, shares and share participants."""
        with self.session() as session:  # type: Session
            invoice = (
                session.query(Invoice)
                .options(*_invoice_options())
                .filter(Invoice.invoice_id == invoice_id)
                .first()
            )
            return invoice

    def add_invoice_item(
        self,
        *,
        invoice_id: int,
        description: str,
        amount: Decimal | int | str,
        purchase_date: date,
        installment: int = 1,
        total_installments: int = 1,
    ) -> InvoiceItem:
        """Add a charge to an invoice.

        Args:
            invoice_id: Invoice the charge belongs to
            description: Charge description
            amount: Charge amount (must be positive)
            purchase_date: Date of purchase
            installment: Current installment number
            total_installments: Total number of installments

        Returns:
            Created InvoiceItem instance

        Raises:
            ValidationError: If the amount or installments are invalid
            NotFoundError: If the invoice does not exist
        """
        amount_cents = amount_to_cents(amount)
        if amount_cents <= 0:
            raise ValidationError(f"Item amount must be positive, got {amount}")
        if not 1 <= installment <= total_installments:
            raise ValidationError(
                f"Installment {installment} of {total_installments} is invalid"
            )

        with self.session() as session:  # type: Session
            if session.get(Invoice, invoice_id) is None:
                raise NotFoundError("Invoice", invoice_id)
            item = InvoiceItem(
                invoice_id=invoice_id,
                description=description,
                amount_cents=amount_cents,
                purchase_date=purchase_date,
                installment=installment,
                total_installments=total_installments,
            )
            session.add(item)
            session.flush()
            item_id = item.item_id

        return self._require_item(item_id)

    def get_invoice_item(self, item_id: int) -> InvoiceItem | None:
        """Load an item with its invoice, card and current shares."""
        with self.session() as session:  # type: Session
            item = (
                session.query(InvoiceItem)
                .options(*_item_options())
                .filter(InvoiceItem.item_id == item_id)
                .first()
            )
            return item

    def update_item_amount(self, item_id: int, amount: Decimal | int | str) -> InvoiceItem:
        """Change an item's amount. Existing share amounts are left untouched.

        Raises:
            ValidationError: If the new amount is not positive
            NotFoundError: If the item does not exist
        """
        amount_cents = amount_to_cents(amount)
        if amount_cents <= 0:
            raise ValidationError(
                f"Item amount must be positive, got {amount}", item_id=item_id
            )
        with self.session() as session:  # type: Session
            item = session.get(InvoiceItem, item_id)
            if item is None:
                raise NotFoundError("InvoiceItem", item_id)
            item.amount_cents = amount_cents

        return self._require_item(item_id)

    def _require_item(self, item_id: int) -> InvoiceItem:
        item = self.get_invoice_item(item_id)
        if item is None:
            raise NotFoundError("InvoiceItem", item_id)
        return item

    # ------------------------------------------------------------------
    # Shares
    # ------------------------------------------------------------------

    def get_share(self, share_id: int) -> ItemShare | None:
        with self.session() as session:  # type: Session
            share = (
                session.query(ItemShare)
                .options(*_share_options())
                .filter(ItemShare.share_id == share_id)
                .first()
            )
            return share

    def find_shares_by_item(self, item_id: int) -> list[ItemShare]:
        """Fetch an item's shares ordered by share ID."""
        with self.session() as session:  # type: Session
            return (
                session.query(ItemShare)
                .options(*_share_options())
                .filter(ItemShare.invoice_item_id == item_id)
                .order_by(ItemShare.share_id)
                .all()
            )

    def find_shares_by_user(
        self,
        user_id: int,
        *,
        month: date | None = None,
        unpaid_only: bool = False,
    ) -> list[ItemShare]:
        """Fetch shares held by a user.

        Args:
            user_id: User participant ID
            month: Restrict to invoices of this billing month
            unpaid_only: Only return shares not yet marked as paid

        Returns:
            Matching shares ordered by share ID
        """
        with self.session() as session:  # type: Session
            query = (
                session.query(ItemShare)
                .options(*_share_options())
                .filter(ItemShare.user_id == user_id)
            )
            if month is not None:
                query = (
                    query.join(
                        InvoiceItem, ItemShare.invoice_item_id == InvoiceItem.item_id
                    )
                    .join(Invoice, InvoiceItem.invoice_id == Invoice.invoice_id)
                    .filter(Invoice.month == month.replace(day=1))
                )
            if unpaid_only:
                query = query.filter(~ItemShare.paid)
            return query.order_by(ItemShare.share_id).all()

    def replace_item_shares(
        self,
        item_id: int,
        allocations: Sequence[ShareAllocation],
        *,
        expected_amount: Decimal | None = None,
    ) -> list[ItemShare]:
        """Delete an item's shares and insert a new set in one transaction.

        Args:
            item_id: Item whose share set is replaced
            allocations: New allocations, inserted in order
            expected_amount: Item amount the allocations were computed from

        Returns:
            The new shares ordered by share ID

        Raises:
            NotFoundError: If the item or a participant does not exist
            ValidationError: If a contact is not owned by the item's card owner
            ConflictError: If the item amount changed since allocation or the
                database rejects the new share set
        """
        with self.session() as session:  # type: Session
            item = (
                session.query(InvoiceItem)
                .options(joinedload(InvoiceItem.invoice).joinedload(Invoice.credit_card))
                .filter(InvoiceItem.item_id == item_id)
                .first()
            )
            if item is None:
                raise NotFoundError("InvoiceItem", item_id)
            if expected_amount is not None and item.amount != expected_amount:
                raise ConflictError(
                    item_id,
                    f"item amount changed from {expected_amount} to {item.amount}",
                )
            owner_user_id = item.invoice.owner_user_id

            new_shares: list[ItemShare] = []
            for allocation in allocations:
                share = ItemShare(
                    invoice_item_id=item_id,
                    percentage=allocation.percentage,
                    amount_cents=amount_to_cents(allocation.amount),
                    responsible=allocation.responsible,
                    paid=False,
                )
                participant = allocation.participant
                if isinstance(participant, UserRef):
                    if session.get(User, participant.user_id) is None:
                        raise NotFoundError("User", participant.user_id)
                    share.user_id = participant.user_id
                elif isinstance(participant, ContactRef):
                    contact = session.get(TrustedContact, participant.contact_id)
                    if contact is None:
                        raise NotFoundError("TrustedContact", participant.contact_id)
                    if contact.owner_user_id != owner_user_id:
                        raise ValidationError(
                            f"Contact {participant.contact_id} does not belong to "
                            f"the card owner of item {item_id}",
                            item_id=item_id,
                            participant=participant,
                        )
                    share.trusted_contact_id = contact.contact_id
                    share.contact_display_name = contact.name
                    share.contact_display_email = contact.email
                else:
                    raise TypeError(f"Unsupported participant: {participant!r}")
                new_shares.append(share)

            session.query(ItemShare).filter(
                ItemShare.invoice_item_id == item_id
            ).delete(synchronize_session=False)
            session.add_all(new_shares)
            try:
                session.flush()
            except IntegrityError as e:
                raise ConflictError(item_id, str(e.orig)) from e

            return (
                session.query(ItemShare)
                .options(*_share_options())
                .populate_existing()
                .filter(ItemShare.invoice_item_id == item_id)
                .order_by(ItemShare.share_id)
                .all()
            )

    def delete_shares_by_item(self, item_id: int) -> int:
        """Delete every share of an item.

        Returns:
            Number of shares deleted

        Raises:
            NotFoundError: If the item does not exist
        """
        with self.session() as session:  # type: Session
            if session.get(InvoiceItem, item_id) is None:
                raise NotFoundError("InvoiceItem", item_id)
            return (
                session.query(ItemShare)
                .filter(ItemShare.invoice_item_id == item_id)
                .delete(synchronize_session=False)
            )

    def update_shares(
        self,
        share_ids: Sequence[int],
        *,
        check: Callable[[ItemShare], None],
        update: Callable[[ItemShare], None],
    ) -> list[ItemShare]:
        """Apply ``update`` to each share after ``check`` passes, all or nothing.

        Duplicate IDs are processed once. Any exception raised by ``check`` or
        ``update`` rolls back every change made by this call.

        Args:
            share_ids: Shares to update, in order
            check: Raises to veto the update of a share
            update: Mutates a share in place

        Returns:
            Updated shares in the order of first appearance in ``share_ids``

        Raises:
            NotFoundError: If any share does not exist
        """
        unique_ids = list(dict.fromkeys(share_ids))
        if not unique_ids:
            return []

        with self.session() as session:  # type: Session
            shares = (
                session.query(ItemShare)
                .options(*_share_options())
                .filter(ItemShare.share_id.in_(unique_ids))
                .all()
            )
            share_map = {share.share_id: share for share in shares}

            updated: list[ItemShare] = []
            for share_id in unique_ids:
                share = share_map.get(share_id)
                if share is None:
                    raise NotFoundError("ItemShare", share_id)
                check(share)
                update(share)
                updated.append(share)

            session.flush()
            return updated

    def correct_share_amounts(
        self,
        plan: Callable[[Sequence[ShareAmountRow]], Sequence[ShareCorrection]],
    ) -> list[ShareCorrection]:
        """Snapshot every share, let ``plan`` derive corrections, and persist them.

        The snapshot is ordered by item, then share ID. Only ``amount_cents`` and
        ``updated_at`` are written.

        Returns:
            The corrections that were applied
        """
        with self.session() as session:  # type: Session
            rows = (
                session.query(
                    ItemShare.share_id,
                    ItemShare.invoice_item_id,
                    InvoiceItem.amount_cents,
                    ItemShare.percentage,
                    ItemShare.amount_cents,
                )
                .join(InvoiceItem, ItemShare.invoice_item_id == InvoiceItem.item_id)
                .order_by(ItemShare.invoice_item_id, ItemShare.share_id)
                .all()
            )
            snapshot = [
                ShareAmountRow(
                    share_id=share_id,
                    item_id=item_id,
                    item_amount=cents_to_amount(item_cents),
                    percentage=to_decimal(percentage),
                    amount=cents_to_amount(share_cents),
                )
                for share_id, item_id, item_cents, percentage, share_cents in rows
            ]

            corrections = list(plan(snapshot))
            now = datetime.now()
            for correction in corrections:
                session.query(ItemShare).filter(
                    ItemShare.share_id == correction.share_id
                ).update(
                    {
                        "amount_cents": amount_to_cents(correction.new_amount),
                        "updated_at": now,
                    },
                    synchronize_session=False,
                )
            return corrections
