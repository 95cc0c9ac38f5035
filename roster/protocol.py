"""
Protocol definitions for roster storage backends.

- MemberStoreProtocol: members and the notes they own
- SettingsStoreProtocol: key-value settings (the global tag list)

Implementations raise on write failure; the record store turns that
into a logged WriteResult.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from .types import Member, Note


@runtime_checkable
class MemberStoreProtocol(Protocol):
    """Durable storage for members and notes with one-to-many ownership."""

    def upsert_member(self, member: Member) -> None: ...

    def delete_member(self, id: str) -> bool: ...

    def get_member(self, id: str) -> Optional[Member]: ...

    def load_members(self) -> list[Member]: ...

    def insert_note(self, note: Note) -> None: ...

    def load_notes(self) -> list[Note]: ...

    def notes_for(self, member_id: str) -> list[Note]: ...

    def delete_notes(self, member_id: str) -> int: ...

    def close(self) -> None: ...


@runtime_checkable
class SettingsStoreProtocol(Protocol):
    """Key-value settings storage."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def get_string_list(self, key: str) -> list[str]: ...

    def close(self) -> None: ...
