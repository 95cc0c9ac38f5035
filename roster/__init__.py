"""
Roster

A local member directory: member records with lifecycle status, tags and
notes, with status metrics and a custom tag vocabulary kept cheap to read.

Quick Start:
    from roster import Directory

    d = Directory()  # uses ~/.roster
    mid = d.add_member("Ada", "Lovelace", email="ada@example.org", tags=["Youth"])
    d.add_note(mid, "Joined the choir")
    d.filter_members(status="Active", tag="Youth")

CLI Usage:
    roster add Ada Lovelace --email ada@example.org -t Youth
    roster list --status Active --tag Youth
    roster metrics

Default Store:
    ~/.roster (created automatically).
    Override with ROSTER_STORE_PATH or an explicit path argument.

Environment Variables:
    ROSTER_STORE_PATH  - Override default store location
    ROSTER_VERBOSE     - Set to 1 for debug logging in the CLI
"""

from .api import Directory
from .errors import IntegrityError, PersistenceError, RosterError, WriteResult
from .types import DEFAULT_TAGS, Member, MemberStatus, Note, StatusMetrics

__version__ = "0.1.0"
__all__ = [
    "Directory",
    "Member",
    "MemberStatus",
    "Note",
    "StatusMetrics",
    "DEFAULT_TAGS",
    "WriteResult",
    "RosterError",
    "PersistenceError",
    "IntegrityError",
]
