"""
Member queries.

Filters are conjunctive; a filter left as None (or empty search text)
places no constraint. Results keep the base ordering, first name
ascending, and filtering only ever removes members from it.
"""

from typing import Iterable, Optional

from .types import Member, MemberStatus


def base_order(members: Iterable[Member]) -> list[Member]:
    """Sort by first name, case-insensitive. Stable, so ties keep join order."""
    return sorted(members, key=lambda m: m.first_name.casefold())


def matches(
    member: Member,
    status: Optional[MemberStatus] = None,
    tag: Optional[str] = None,
    search_text: Optional[str] = None,
) -> bool:
    if status is not None and member.status != status:
        return False
    if tag is not None and not member.has_tag(tag):
        return False
    if search_text:
        full_name = f"{member.first_name} {member.last_name}"
        if search_text.casefold() not in full_name.casefold():
            return False
    return True


def filter_members(
    members: Iterable[Member],
    status: Optional[MemberStatus] = None,
    tag: Optional[str] = None,
    search_text: Optional[str] = None,
) -> list[Member]:
    """Members passing every supplied filter, in base order."""
    return [m for m in base_order(members) if matches(m, status, tag, search_text)]


def filtered_emails(
    members: Iterable[Member],
    status: Optional[MemberStatus] = None,
    tag: Optional[str] = None,
) -> list[str]:
    """Email addresses of matching members that have one."""
    return [m.email for m in filter_members(members, status, tag) if m.email]


def filtered_phone_numbers(
    members: Iterable[Member],
    status: Optional[MemberStatus] = None,
    tag: Optional[str] = None,
) -> list[str]:
    """Phone numbers of matching members that have one."""
    return [m.phone for m in filter_members(members, status, tag) if m.phone]
