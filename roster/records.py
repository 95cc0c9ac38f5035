"""
Record store: the in-memory member set with write-through persistence.

Every mutation is applied in memory first, then written to the backend
before the call returns. A backend failure is logged and handed back as a
WriteResult; the in-memory change is not rolled back, so the running
process keeps seeing what the caller asked for even if the disk did not.

Lookups never raise for unknown ids: reads return None or an empty list,
mutations return WriteResult(found=False).
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Callable, Iterable, Optional

from .errors import OK, PersistenceError, WriteResult
from .protocol import MemberStoreProtocol
from .types import (
    Member,
    MemberStatus,
    Note,
    dedupe_tags,
    utc_now,
    validate_birthday,
    validate_tag,
)

logger = logging.getLogger(__name__)

# Fields callers may change through update(). id and joined_at are fixed.
UPDATABLE_FIELDS = frozenset({
    "first_name",
    "last_name",
    "email",
    "phone",
    "status",
    "tags",
    "birthday_month",
    "birthday_day",
})


def _copy(member: Member) -> Member:
    copy = dataclasses.replace(member, tags=list(member.tags))
    # replace() re-derives a None raw_status from the repaired enum
    copy.raw_status = member.raw_status
    return copy


def _new_member_id() -> str:
    return uuid.uuid4().hex[:16]


class RecordStore:
    """
    Holder of Member and Note entities.

    Loads the full record set from the backend at construction. Returned
    members are copies; change them through update() and friends.
    """

    def __init__(
        self,
        backend: MemberStoreProtocol,
        *,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        """
        Args:
            backend: Durable member/note storage
            clock: Timestamp source for join and note times
        """
        self._backend = backend
        self._clock = clock
        self._members: dict[str, Member] = {}
        self._notes: dict[str, list[Note]] = {}
        self._next_note_id = 1
        self._delete_listeners: list[Callable[[str], None]] = []
        self.last_result: WriteResult = OK
        self._load()

    def _load(self) -> None:
        """Read every member and note from the backend."""
        for member in self._backend.load_members():
            self._members[member.id] = member
        for note in self._backend.load_notes():
            self._notes.setdefault(note.member_id, []).append(note)
            self._next_note_id = max(self._next_note_id, note.id + 1)
        logger.debug(
            "Loaded %d members, %d notes",
            len(self._members), sum(len(n) for n in self._notes.values()),
        )

    def _persist(self, operation: str, fn: Callable, *args) -> WriteResult:
        """Run one backend write; log and wrap any failure."""
        try:
            fn(*args)
        except Exception as e:
            error = PersistenceError(operation, e)
            logger.error("%s failed, keeping in-memory state: %s", operation, e,
                         exc_info=True)
            self.last_result = WriteResult.failed(error)
            return self.last_result
        self.last_result = OK
        return OK

    def _save(self, member: Member, operation: str) -> WriteResult:
        result = self._persist(operation, self._backend.upsert_member, member)
        if result.persisted:
            # What is on disk now is a valid status
            member.raw_status = member.status.value
        return result

    def add_delete_listener(self, listener: Callable[[str], None]) -> None:
        """Call listener(member_id) after a member is deleted."""
        self._delete_listeners.append(listener)

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def add(
        self,
        first_name: str = "",
        last_name: str = "",
        *,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        status: Optional[str | MemberStatus] = None,
        tags: Iterable[str] = (),
        birthday_month: Optional[int] = None,
        birthday_day: Optional[int] = None,
    ) -> str:
        """
        Create a member. join timestamp is now.

        Returns:
            The new member id. The persistence outcome is in last_result.

        Raises:
            ValueError: For an unknown status or an out-of-range field
        """
        validate_birthday(birthday_month, birthday_day)
        if status is not None:
            status = MemberStatus.parse_strict(status)
        member = Member(
            id=_new_member_id(),
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            status=status or MemberStatus.default(),
            tags=[validate_tag(t) for t in tags],
            birthday_month=birthday_month,
            birthday_day=birthday_day,
            joined_at=self._clock(),
        )
        self._members[member.id] = member
        self._notes[member.id] = []
        self._save(member, f"add member {member.id}")
        logger.info("Added member %s", member.id)
        return member.id

    def update(self, id: str, **fields) -> WriteResult:
        """
        Change one or more fields of a member.

        Raises:
            ValueError: For unknown or immutable field names, or bad values
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {sorted(unknown)}")

        member = self._members.get(id)
        if member is None:
            logger.debug("update: member %s not found", id)
            return WriteResult.not_found()

        month = fields.get("birthday_month", member.birthday_month)
        day = fields.get("birthday_day", member.birthday_day)
        validate_birthday(month, day)
        if "status" in fields:
            fields["status"] = MemberStatus.parse_strict(fields["status"])
        if "tags" in fields:
            fields["tags"] = dedupe_tags(validate_tag(t) for t in fields["tags"])

        # Rebuild so contact normalization runs on the new values
        updated = dataclasses.replace(member, **fields)
        if "status" in fields:
            # An explicit status supersedes whatever invalid value was loaded
            updated.raw_status = updated.status.value
        else:
            updated.raw_status = member.raw_status
        self._members[id] = updated
        return self._save(updated, f"update member {id}")

    def set_status(self, id: str, status: str | MemberStatus) -> WriteResult:
        return self.update(id, status=status)

    def add_tag(self, id: str, tag: str) -> WriteResult:
        """Attach a tag to one member. No-op if already present."""
        tag = validate_tag(tag)
        member = self._members.get(id)
        if member is None:
            return WriteResult.not_found()
        if tag in member.tags:
            return OK
        member.tags.append(tag)
        return self._save(member, f"tag member {id}")

    def remove_tag(self, id: str, tag: str) -> WriteResult:
        """Detach a tag from one member. No-op if absent."""
        member = self._members.get(id)
        if member is None:
            return WriteResult.not_found()
        if tag not in member.tags:
            return OK
        member.tags = [t for t in member.tags if t != tag]
        return self._save(member, f"untag member {id}")

    def strip_tag(self, tag: str) -> dict[str, WriteResult]:
        """
        Remove a tag from every member carrying it.

        Each affected member is persisted individually.

        Returns:
            member id -> WriteResult for each member that carried the tag
        """
        results = {}
        for member in self._members.values():
            if tag in member.tags:
                member.tags = [t for t in member.tags if t != tag]
                results[member.id] = self._save(member, f"strip tag from {member.id}")
        return results

    def repair_status(self, id: str) -> WriteResult:
        """Reset a member's status to the default and persist it."""
        member = self._members.get(id)
        if member is None:
            return WriteResult.not_found()
        member.status = MemberStatus.default()
        return self._save(member, f"repair status of {id}")

    def delete(self, id: str) -> WriteResult:
        """
        Delete a member and every note it owns.

        Delete listeners (cache eviction) run whether or not the backend
        write succeeds.
        """
        member = self._members.pop(id, None)
        if member is None:
            return WriteResult.not_found()
        dropped = self._notes.pop(id, [])

        result = self._persist(f"delete notes of {id}", self._backend.delete_notes, id)
        member_result = self._persist(f"delete member {id}", self._backend.delete_member, id)
        if result.persisted:
            result = member_result
        self.last_result = result

        for listener in self._delete_listeners:
            listener(id)
        logger.info("Deleted member %s (%d notes)", id, len(dropped))
        return result

    def get(self, id: str) -> Optional[Member]:
        member = self._members.get(id)
        return _copy(member) if member is not None else None

    def list(self) -> list[Member]:
        """All members in join order."""
        return [_copy(m) for m in self._members.values()]

    def find_by_name(self, first_name: str, last_name: str) -> Optional[Member]:
        """Most recently joined member with exactly this first and last name."""
        matches = [
            m for m in self._members.values()
            if m.first_name == first_name and m.last_name == last_name
        ]
        if not matches:
            return None
        return _copy(max(matches, key=lambda m: m.joined_at))

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, id: str) -> bool:
        return id in self._members

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def add_note(self, member_id: str, content: str) -> Optional[Note]:
        """
        Create a note owned by a member.

        Returns:
            The new Note, or None if the member does not exist
        """
        if member_id not in self._members:
            logger.debug("add_note: member %s not found", member_id)
            return None
        note = Note(
            id=self._next_note_id,
            member_id=member_id,
            content=content,
            created_at=self._clock(),
        )
        self._next_note_id += 1
        self._notes.setdefault(member_id, []).append(note)
        self._persist(f"add note to {member_id}", self._backend.insert_note, note)
        return note

    def notes_for(self, member_id: str) -> list[Note]:
        """Notes owned by a member, in creation order. Empty if unknown."""
        return list(self._notes.get(member_id, ()))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        self._backend.close()
