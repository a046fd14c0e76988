"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from sharetrack.adapters.db.facade import DB
from sharetrack.adapters.db.models import (
    CreditCard,
    Invoice,
    InvoiceItem,
    TrustedContact,
    User,
)
from sharetrack.calculation.service import InvoiceCalculationService
from sharetrack.sharing.service import ExpenseSharingService


@dataclass
class Ledger:
    """A card owner with one open invoice and a few people to split with."""

    db: DB
    owner: User
    bob: User
    carol: User
    bob_contact: TrustedContact
    dave_contact: TrustedContact
    carols_contact: TrustedContact
    card: CreditCard
    invoice: Invoice

    def add_item(
        self,
        amount: str,
        description: str = "Purchase",
        invoice: Invoice | None = None,
    ) -> InvoiceItem:
        target = invoice or self.invoice
        return self.db.add_invoice_item(
            invoice_id=target.invoice_id,
            description=description,
            amount=Decimal(amount),
            purchase_date=date(2024, 3, 5),
        )

    def reload_invoice(self, invoice: Invoice | None = None) -> Invoice:
        target = invoice or self.invoice
        loaded = self.db.get_invoice(target.invoice_id)
        assert loaded is not None
        return loaded


def create_db(tmp_path: Path) -> DB:
    """Create a test database."""
    db_path = tmp_path / "test.db"
    db = DB(f"sqlite:///{db_path}")
    db.create_schema()
    return db


@pytest.fixture
def db(tmp_path: Path) -> DB:
    return create_db(tmp_path)


@pytest.fixture
def ledger(db: DB) -> Ledger:
    owner = db.create_user(name="Alice Owner", email="alice@example.com")
    bob = db.create_user(name="Bob Account", email="bob@example.com")
    carol = db.create_user(name="Carol", email="carol@example.com")
    bob_contact = db.create_trusted_contact(
        owner_user_id=owner.user_id, name="Bobby", email="Bob@Example.com "
    )
    dave_contact = db.create_trusted_contact(
        owner_user_id=owner.user_id, name="Dave", email="dave@example.com"
    )
    carols_contact = db.create_trusted_contact(
        owner_user_id=carol.user_id, name="Erin", email="erin@example.com"
    )
    card = db.create_credit_card(
        owner_user_id=owner.user_id, name="Gold", last_four_digits="4242"
    )
    invoice = db.create_invoice(
        card_id=card.card_id, month=date(2024, 3, 1), due_date=date(2024, 4, 10)
    )
    return Ledger(
        db=db,
        owner=owner,
        bob=bob,
        carol=carol,
        bob_contact=bob_contact,
        dave_contact=dave_contact,
        carols_contact=carols_contact,
        card=card,
        invoice=invoice,
    )


@pytest.fixture
def sharing(db: DB) -> ExpenseSharingService:
    return ExpenseSharingService(db)


@pytest.fixture
def calculation(sharing: ExpenseSharingService) -> InvoiceCalculationService:
    return InvoiceCalculationService(sharing)
