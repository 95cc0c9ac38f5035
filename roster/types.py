"""
Data types for the member directory.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


# Built-in tag names. They are offered by every directory and never appear
# in the custom tag vocabulary.
DEFAULT_TAGS = (
    "Leader",
    "Prayer Warrior",
    "Volunteer",
    "Greeter",
    "Musician",
    "Teacher",
)

# Phone fields that carry only a country-code prefix are treated as empty
_EMPTY_PHONE_VALUES = frozenset({"", "+1"})

MAX_TAG_LENGTH = 128


class MemberStatus(str, enum.Enum):
    """Lifecycle status of a member. Closed set."""

    ACTIVE = "Active"
    AT_RISK = "AtRisk"
    CRITICAL = "Critical"
    INACTIVE = "Inactive"

    @classmethod
    def default(cls) -> "MemberStatus":
        return cls.ACTIVE

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MemberStatus"]:
        """Exact match on the stored value. Returns None for anything else."""
        if isinstance(value, MemberStatus):
            return value
        for status in cls:
            if status.value == value:
                return status
        return None

    @classmethod
    def parse_or_default(cls, value: Optional[str]) -> "MemberStatus":
        """Parse a stored status, falling back to Active for null or garbage.

        Construction and store load go through here so the enum is the
        only status type past that point.
        """
        status = cls.parse(value)
        return status if status is not None else cls.default()

    @classmethod
    def parse_strict(cls, value: Optional[str]) -> "MemberStatus":
        """Parse a caller-supplied status. Raises ValueError if unknown."""
        status = cls.parse(value)
        if status is None:
            valid = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown status {value!r}. Valid: {valid}")
        return status

    def __str__(self) -> str:
        return self.value


def utc_now() -> str:
    """Current UTC timestamp in canonical format with microseconds.

    Microseconds keep notes added in quick succession ordered.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")


def normalize_contact(value: Optional[str]) -> Optional[str]:
    """Strip a contact field; empty strings become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Like normalize_contact, but a bare '+1' prefix also counts as empty."""
    if value is None or value.strip() in _EMPTY_PHONE_VALUES:
        return None
    return value.strip()


def dedupe_tags(tags) -> list[str]:
    """Drop duplicate tags, keeping first-occurrence order."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags or ():
        if tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result


def validate_tag(tag: str) -> str:
    """Return the stripped tag, or raise ValueError if blank or too long."""
    if not isinstance(tag, str):
        raise ValueError(f"Tag must be a string: {tag!r}")
    tag = tag.strip()
    if not tag or len(tag) > MAX_TAG_LENGTH:
        raise ValueError(f"Tag must be 1-{MAX_TAG_LENGTH} characters: {tag!r}")
    return tag


def validate_birthday(month: Optional[int], day: Optional[int]) -> None:
    """Range-check birthday parts. Not validated against the calendar."""
    if month is not None and not 1 <= month <= 12:
        raise ValueError(f"Birthday month must be 1-12: {month!r}")
    if day is not None and not 1 <= day <= 31:
        raise ValueError(f"Birthday day must be 1-31: {day!r}")


@dataclass
class Member:
    """
    A tracked individual.

    `status` is always a MemberStatus. `raw_status` keeps whatever the
    backend held when the record was loaded (possibly None or garbage), so
    an invalid value can be detected and written back by the metrics pass.
    """
    id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    status: MemberStatus = MemberStatus.ACTIVE
    tags: list[str] = field(default_factory=list)
    birthday_month: Optional[int] = None
    birthday_day: Optional[int] = None
    joined_at: str = field(default_factory=utc_now)
    raw_status: Optional[str] = None

    def __post_init__(self):
        if self.raw_status is None:
            given = self.status
            self.raw_status = given.value if isinstance(given, MemberStatus) else given
        self.status = MemberStatus.parse_or_default(self.status)
        self.tags = dedupe_tags(self.tags)
        self.email = normalize_contact(self.email)
        self.phone = normalize_phone(self.phone)
        self.first_name = self.first_name or ""
        self.last_name = self.last_name or ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def needs_repair(self) -> bool:
        """True if the stored status was null or not in the enumeration."""
        return MemberStatus.parse(self.raw_status) is None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "status": self.status.value,
            "tags": list(self.tags),
            "birthday_month": self.birthday_month,
            "birthday_day": self.birthday_day,
            "joined_at": self.joined_at,
        }


@dataclass(frozen=True)
class Note:
    """A timestamped annotation owned by exactly one member."""
    id: int
    member_id: str
    content: str
    created_at: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "member_id": self.member_id,
            "content": self.content,
            "created_at": self.created_at,
        }


# Status -> member count. Every status is present, zero counts included.
StatusMetrics = dict[MemberStatus, int]


def empty_metrics() -> StatusMetrics:
    return {status: 0 for status in MemberStatus}
