from __future__ import annotations

from decimal import Decimal

import pytest

from sharetrack.domain.money import amount_to_cents, cents_to_amount, round_half_up, to_decimal
from sharetrack.domain.participants import (
    ContactRef,
    UserRef,
    normalize_email,
    parse_participant,
)


class TestParticipants:
    def test_parse(self) -> None:
        assert parse_participant("user:12") == UserRef(12)
        assert parse_participant(" contact:3 ") == ContactRef(3)

    @pytest.mark.parametrize("value", ["user", "user:", "user:x", "group:1", "7"])
    def test_parse_rejects_malformed(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_participant(value)

    def test_str_round_trips(self) -> None:
        assert parse_participant(str(ContactRef(8))) == ContactRef(8)

    def test_user_and_contact_with_same_id_differ(self) -> None:
        assert UserRef(1) != ContactRef(1)
        assert len({UserRef(1), ContactRef(1)}) == 2

    def test_normalize_email(self) -> None:
        assert normalize_email("  Bob@Example.COM ") == "bob@example.com"


class TestMoney:
    def test_round_half_up(self) -> None:
        assert round_half_up(Decimal("0.005")) == Decimal("0.01")
        assert round_half_up(Decimal("2.675")) == Decimal("2.68")
        assert round_half_up(Decimal("0.0049")) == Decimal("0.00")

    def test_float_input_keeps_written_digits(self) -> None:
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", ["abc", True])
    def test_to_decimal_rejects(self, value: object) -> None:
        with pytest.raises(ValueError):
            to_decimal(value)  # type: ignore[arg-type]

    def test_cents(self) -> None:
        assert amount_to_cents("19.99") == 1999
        assert amount_to_cents(Decimal("0.005")) == 1
        assert cents_to_amount(1999) == Decimal("19.99")
        assert cents_to_amount(5) == Decimal("0.05")
