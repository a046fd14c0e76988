from __future__ import annotations

from datetime import date
from decimal import Decimal

from sharetrack.adapters.db.models import ItemShare
from sharetrack.calculation.service import InvoiceCalculationService
from sharetrack.domain.participants import ContactRef, UserRef
from sharetrack.domain.types import ParticipantShare, ShareRequest
from sharetrack.sharing.service import ExpenseSharingService
from tests.conftest import Ledger


def split(
    sharing: ExpenseSharingService, item_id: int, *requests: ShareRequest
) -> None:
    sharing.create_shares_from_requests(item_id, list(requests))


class TestInvoiceTotals:
    def test_owner_and_others_add_up_to_invoice_total(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        # Input
        dinner = ledger.add_item("100.00", "Dinner")
        ledger.add_item("40.00", "Groceries")
        split(
            sharing,
            dinner.item_id,
            ShareRequest(UserRef(ledger.bob.user_id), Decimal("0.5")),
            ShareRequest(ContactRef(ledger.dave_contact.contact_id), Decimal("0.25")),
        )
        invoice = ledger.reload_invoice()
        owner_id = ledger.owner.user_id

        # Act
        owner_share = calculation.calculate_user_share(invoice, owner_id)
        others = calculation.calculate_other_participant_shares(invoice, owner_id)

        # Assert
        assert owner_share == Decimal("65.00")
        assert sum(p.total_amount for p in others) == Decimal("75.00")
        assert owner_share + sum(p.total_amount for p in others) == invoice.total_amount
        assert calculation.calculate_total_shared_amount(invoice) == Decimal("75.00")
        assert calculation.calculate_unshared_amount(invoice) == Decimal("65.00")
        assert calculation.calculate_shared_percentage(invoice) == Decimal("0.5357")
        per_participant = [
            calculation.calculate_user_share(invoice, owner_id),
            calculation.calculate_user_share(invoice, ledger.bob.user_id),
            calculation.calculate_participant_share(
                invoice, ContactRef(ledger.dave_contact.contact_id)
            ),
        ]
        assert per_participant == [Decimal("65.00"), Decimal("50.00"), Decimal("25.00")]
        assert sum(per_participant) == invoice.total_amount

    def test_owner_explicit_share_is_added_to_remainder(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        item = ledger.add_item("10.00")
        split(
            sharing,
            item.item_id,
            ShareRequest(UserRef(ledger.owner.user_id), Decimal("0.5")),
            ShareRequest(UserRef(ledger.bob.user_id), Decimal("0.25")),
        )
        invoice = ledger.reload_invoice()

        assert calculation.calculate_user_share(invoice, ledger.owner.user_id) == Decimal(
            "7.50"
        )
        assert calculation.calculate_user_share(invoice, ledger.bob.user_id) == Decimal(
            "2.50"
        )
        others = calculation.calculate_other_participant_shares(
            invoice, ledger.owner.user_id
        )
        assert [p.email for p in others] == ["bob@example.com"]

    def test_unshared_invoice_belongs_to_owner(
        self, ledger: Ledger, calculation: InvoiceCalculationService
    ) -> None:
        ledger.add_item("12.34")
        invoice = ledger.reload_invoice()

        assert calculation.calculate_user_share(invoice, ledger.owner.user_id) == Decimal(
            "12.34"
        )
        assert calculation.calculate_user_share(invoice, ledger.bob.user_id) == Decimal(
            "0.00"
        )
        assert calculation.calculate_other_participant_shares(
            invoice, ledger.owner.user_id
        ) == []

    def test_contact_participant_share(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        dave = ContactRef(ledger.dave_contact.contact_id)
        item = ledger.add_item("9.00")
        split(sharing, item.item_id, ShareRequest(dave, Decimal("0.3333")))
        invoice = ledger.reload_invoice()

        assert calculation.calculate_participant_share(invoice, dave) == Decimal("3.00")

    def test_empty_invoice_percentage(
        self, ledger: Ledger, calculation: InvoiceCalculationService
    ) -> None:
        invoice = ledger.reload_invoice()

        assert calculation.calculate_shared_percentage(invoice) == Decimal("0.0000")
        assert calculation.calculate_total_shared_amount(invoice) == Decimal("0.00")


class TestOtherParticipantShares:
    def test_user_and_contact_with_same_email_are_merged(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        # Input
        flight = ledger.add_item("100.00", "Flight")
        hotel = ledger.add_item("50.00", "Hotel")
        split(sharing, flight.item_id, ShareRequest(UserRef(ledger.bob.user_id), Decimal("1")))
        split(
            sharing,
            hotel.item_id,
            ShareRequest(ContactRef(ledger.bob_contact.contact_id), Decimal("1")),
        )
        invoice = ledger.reload_invoice()

        # Act
        others = calculation.calculate_other_participant_shares(
            invoice, ledger.owner.user_id
        )

        # Assert
        assert others == [
            ParticipantShare(
                name="Bob Account",
                email="bob@example.com",
                total_amount=Decimal("150.00"),
            )
        ]

    def test_first_seen_name_wins(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        hotel = ledger.add_item("50.00", "Hotel")
        flight = ledger.add_item("100.00", "Flight")
        split(
            sharing,
            hotel.item_id,
            ShareRequest(ContactRef(ledger.bob_contact.contact_id), Decimal("1")),
        )
        split(sharing, flight.item_id, ShareRequest(UserRef(ledger.bob.user_id), Decimal("1")))
        invoice = ledger.reload_invoice()

        [bob] = calculation.calculate_other_participant_shares(
            invoice, ledger.owner.user_id
        )

        assert bob.name == "Bobby"
        assert bob.total_amount == Decimal("150.00")

    def test_entries_keep_first_seen_order(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        item = ledger.add_item("30.00")
        split(
            sharing,
            item.item_id,
            ShareRequest(ContactRef(ledger.dave_contact.contact_id), Decimal("0.5")),
            ShareRequest(UserRef(ledger.carol.user_id), Decimal("0.5")),
        )
        invoice = ledger.reload_invoice()

        others = calculation.calculate_other_participant_shares(
            invoice, ledger.owner.user_id
        )

        assert [p.email for p in others] == ["dave@example.com", "carol@example.com"]

    def test_ignores_contacts_owned_by_someone_else(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        # Input
        item = ledger.add_item("20.00")
        split(sharing, item.item_id, ShareRequest(UserRef(ledger.bob.user_id), Decimal("0.5")))
        # Written directly, bypassing the ownership check done on split
        with ledger.db.session() as session:
            session.add(
                ItemShare(
                    invoice_item_id=item.item_id,
                    trusted_contact_id=ledger.carols_contact.contact_id,
                    contact_display_name="Erin",
                    contact_display_email="erin@example.com",
                    percentage=Decimal("0.5"),
                    amount_cents=1000,
                    responsible=False,
                    paid=False,
                )
            )
        invoice = ledger.reload_invoice()

        # Act
        others = calculation.calculate_other_participant_shares(
            invoice, ledger.owner.user_id
        )

        # Assert
        assert [p.email for p in others] == ["bob@example.com"]


class TestPerUserAndItemTotals:
    def test_total_for_user_in_month(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        bob = UserRef(ledger.bob.user_id)
        april = ledger.db.create_invoice(
            card_id=ledger.card.card_id,
            month=date(2024, 4, 1),
            due_date=date(2024, 5, 10),
        )
        first = ledger.add_item("10.00")
        second = ledger.add_item("5.00")
        later = ledger.add_item("80.00", invoice=april)
        for item in (first, second, later):
            split(sharing, item.item_id, ShareRequest(bob, Decimal("0.5")))

        march_total = calculation.calculate_total_for_user(
            ledger.bob.user_id, date(2024, 3, 1)
        )
        april_total = calculation.calculate_total_for_user(
            ledger.bob.user_id, date(2024, 4, 1)
        )

        assert march_total == Decimal("7.50")
        assert april_total == Decimal("40.00")
        assert calculation.calculate_total_for_user(
            ledger.carol.user_id, date(2024, 3, 1)
        ) == Decimal("0.00")

    def test_shares_for_item(
        self,
        ledger: Ledger,
        sharing: ExpenseSharingService,
        calculation: InvoiceCalculationService,
    ) -> None:
        bob = UserRef(ledger.bob.user_id)
        dave = ContactRef(ledger.dave_contact.contact_id)
        item = ledger.add_item("10.00")
        split(
            sharing,
            item.item_id,
            ShareRequest(bob, Decimal("0.3")),
            ShareRequest(dave, Decimal("0.7")),
        )
        loaded = ledger.db.get_invoice_item(item.item_id)
        assert loaded is not None

        assert calculation.calculate_shares_for_item(loaded) == {
            bob: Decimal("3.00"),
            dave: Decimal("7.00"),
        }
