from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    text,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)

from sharetrack.domain.money import ZERO, cents_to_amount
from sharetrack.domain.participants import ContactRef, Participant, UserRef


class ExactDecimal(TypeDecorator[Decimal]):
    """Decimal stored as text so percentages survive any backend unchanged."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value: Any, dialect: Dialect) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class User(Base):
    """Registered account holder."""

    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    credit_cards: Mapped[list[CreditCard]] = relationship(
        "CreditCard", back_populates="owner"
    )
    trusted_contacts: Mapped[list[TrustedContact]] = relationship(
        "TrustedContact", back_populates="owner"
    )


class TrustedContact(Base):
    """Non-member participant in a card owner's circle of trust."""

    __tablename__ = "trusted_contacts"
    __table_args__ = (
        UniqueConstraint(
            "owner_user_id", "email", name="uq_trusted_contacts_owner_email"
        ),
    )

    contact_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    owner_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    owner: Mapped[User] = relationship("User", back_populates="trusted_contacts")


class CreditCard(Base):
    """Credit card model; its owner bears every unshared remainder."""

    __tablename__ = "credit_cards"

    card_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_four_digits: Mapped[str | None] = mapped_column(String(4), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    owner: Mapped[User] = relationship("User", back_populates="credit_cards")
    invoices: Mapped[list[Invoice]] = relationship(
        "Invoice", back_populates="credit_card"
    )


class Invoice(Base):
    """One billing cycle of one credit card."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("card_id", "month", name="uq_invoices_card_month"),
    )

    invoice_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    card_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("credit_cards.card_id"), nullable=False
    )
    month: Mapped[date] = mapped_column(Date, nullable=False)  # first day of month
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    credit_card: Mapped[CreditCard] = relationship(
        "CreditCard", back_populates="invoices"
    )
    items: Mapped[list[InvoiceItem]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.item_id",
        cascade="all, delete-orphan",
    )

    @property
    def owner_user_id(self) -> int:
        return self.credit_card.owner_user_id

    @property
    def total_amount(self) -> Decimal:
        return sum((item.amount for item in self.items), ZERO)


class InvoiceItem(Base):
    """A single charge within an invoice."""

    __tablename__ = "invoice_items"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_invoice_items_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("invoices.invoice_id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    installment: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    total_installments: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    invoice: Mapped[Invoice] = relationship("Invoice", back_populates="items")
    shares: Mapped[list[ItemShare]] = relationship(
        "ItemShare",
        back_populates="invoice_item",
        order_by="ItemShare.share_id",
        cascade="all, delete-orphan",
    )

    @property
    def amount(self) -> Decimal:
        return cents_to_amount(self.amount_cents)

    @property
    def shared_amount(self) -> Decimal:
        return sum((share.amount for share in self.shares), ZERO)

    @property
    def unshared_amount(self) -> Decimal:
        return self.amount - self.shared_amount

    @property
    def is_fully_shared(self) -> bool:
        return self.shared_amount >= self.amount


class ItemShare(Base):
    """One participant's allocation of one invoice item.

    Exactly one of ``user_id`` / ``trusted_contact_id`` is set. Contact shares
    also keep a snapshot of the contact's name and email at creation time.
    """

    __tablename__ = "item_shares"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (trusted_contact_id IS NULL)",
            name="ck_item_shares_one_participant",
        ),
        UniqueConstraint("invoice_item_id", "user_id", name="uq_item_shares_user"),
        UniqueConstraint(
            "invoice_item_id", "trusted_contact_id", name="uq_item_shares_contact"
        ),
        # Share ids are handed to callers; never reuse a deleted one
        {"sqlite_autoincrement": True},
    )

    share_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    invoice_item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("invoice_items.item_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    trusted_contact_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("trusted_contacts.contact_id"), nullable=True
    )
    contact_display_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    contact_display_email: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    percentage: Mapped[Decimal] = mapped_column(ExactDecimal, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    responsible: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("FALSE")
    )
    paid: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("FALSE")
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    invoice_item: Mapped[InvoiceItem] = relationship(
        "InvoiceItem", back_populates="shares"
    )
    user: Mapped[User | None] = relationship("User")
    trusted_contact: Mapped[TrustedContact | None] = relationship("TrustedContact")

    @property
    def amount(self) -> Decimal:
        return cents_to_amount(self.amount_cents)

    @property
    def participant(self) -> Participant:
        if self.user_id is not None:
            return UserRef(self.user_id)
        if self.trusted_contact_id is not None:
            return ContactRef(self.trusted_contact_id)
        raise ValueError(f"Share {self.share_id} has no participant")

    @property
    def is_contact_share(self) -> bool:
        return self.trusted_contact_id is not None

    def mark_as_paid(self, payment_method: str, paid_at: datetime) -> None:
        self.paid = True
        self.payment_method = payment_method
        self.paid_at = paid_at
        self.updated_at = datetime.now()

    def mark_as_unpaid(self) -> None:
        self.paid = False
        self.payment_method = None
        self.paid_at = None
        self.updated_at = datetime.now()
