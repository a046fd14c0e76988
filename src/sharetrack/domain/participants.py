"""Participant references: who a share is allocated to."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserRef:
    """A registered account holder."""

    user_id: int

    def __str__(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True, slots=True)
class ContactRef:
    """A trusted contact owned by a card owner (no account of their own)."""

    contact_id: int

    def __str__(self) -> str:
        return f"contact:{self.contact_id}"


Participant = UserRef | ContactRef


def parse_participant(value: str) -> Participant:
    """Parse ``user:<id>`` or ``contact:<id>`` into a participant reference."""
    kind, sep, raw_id = value.strip().partition(":")
    if not sep or not raw_id.isdigit():
        raise ValueError(f"Invalid participant reference: {value!r}")
    if kind == "user":
        return UserRef(int(raw_id))
    if kind == "contact":
        return ContactRef(int(raw_id))
    raise ValueError(f"Unknown participant kind: {kind!r}")


def normalize_email(email: str) -> str:
    """Canonical form used to merge identities across users and contacts."""
    return email.strip().lower()
