"""
Session filename codec.

A session record is named ``<date>-<slug>-<uuid>.tmp``:

    2025-06-01-session-0b7c5d2e-3f4a-4b6c-8d9e-0123456789ab.tmp
    2025-06-01-fix-login-redirect-0b7c5d2e-3f4a-4b6c-8d9e-0123456789ab.tmp

The UUID is the identity and never changes; the slug is a display name that
may be rewritten once. The slug may itself contain hyphens, so decoding
anchors on the fixed-width date at the front and the fixed-width UUID at the
back and takes whatever lies between as the slug. Nothing outside this
module builds or splits session filenames.
"""

import string
from dataclasses import dataclass
from typing import Optional
from uuid import NAMESPACE_URL, uuid5

SESSION_EXTENSION = ".tmp"
DEFAULT_SLUG = "session"

DATE_LENGTH = 10  # YYYY-MM-DD
UUID_LENGTH = 36  # 8-4-4-4-12
UUID_GROUPS = (8, 4, 4, 4, 12)

_HEX = frozenset(string.digits + "abcdef")


def is_date(value: str) -> bool:
    """True for ``YYYY-MM-DD`` shaped strings (digits only, not calendar-checked)."""
    if len(value) != DATE_LENGTH:
        return False
    year, month, day = value[0:4], value[5:7], value[8:10]
    return (
        value[4] == "-" and value[7] == "-"
        and year.isdigit() and month.isdigit() and day.isdigit()
        and year.isascii() and month.isascii() and day.isascii()
    )


def is_uuid(value: str) -> bool:
    """True for canonical lowercase hyphenated UUIDs."""
    if len(value) != UUID_LENGTH:
        return False
    groups = value.split("-")
    if tuple(len(g) for g in groups) != UUID_GROUPS:
        return False
    return all(c in _HEX for g in groups for c in g)


@dataclass(frozen=True)
class SessionName:
    """The parts encoded in a session filename."""

    date: str
    slug: str
    uuid: str

    def encode(self) -> str:
        """Build the filename for these parts."""
        return f"{self.date}-{self.slug}-{self.uuid}{SESSION_EXTENSION}"

    @classmethod
    def decode(cls, filename: str) -> Optional["SessionName"]:
        """
        Parse a session filename.

        Returns:
            The parsed SessionName, or None if the name does not follow the
            session filename format.
        """
        if not filename.endswith(SESSION_EXTENSION):
            return None
        stem = filename[: -len(SESSION_EXTENSION)]

        # date + "-" + at least one slug char + "-" + uuid
        if len(stem) < DATE_LENGTH + UUID_LENGTH + 3:
            return None

        date = stem[:DATE_LENGTH]
        uuid = stem[-UUID_LENGTH:]
        if stem[DATE_LENGTH] != "-" or stem[-UUID_LENGTH - 1] != "-":
            return None
        if not is_date(date) or not is_uuid(uuid):
            return None

        slug = stem[DATE_LENGTH + 1: -UUID_LENGTH - 1]
        if not slug:
            return None
        return cls(date=date, slug=slug, uuid=uuid)

    def with_slug(self, slug: str) -> "SessionName":
        return SessionName(date=self.date, slug=slug, uuid=self.uuid)

    @property
    def is_default(self) -> bool:
        return self.slug == DEFAULT_SLUG


def default_session_name(date: str, session_id: str) -> SessionName:
    """Name of a freshly created, not yet titled session record."""
    return SessionName(date=date, slug=DEFAULT_SLUG, uuid=session_id)


def normalize_session_id(raw: str) -> str:
    """
    Map a host conversation id onto the lowercase UUID used in filenames.

    UUIDs in any case are lowercased. Any other id is mapped to a name-based
    UUID, so every hook process of the conversation derives the same one.
    """
    value = raw.strip()
    if is_uuid(value.lower()):
        return value.lower()
    return str(uuid5(NAMESPACE_URL, value))
