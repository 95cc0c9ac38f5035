"""
Caches for derived views.

- TimedCache: a value plus the time it was computed, served while fresh
- TagVocabularyCache: the custom tag vocabulary, invalidated on tag
  mutation and by age (member tags can change behind its back)
- NoteCache: per-member notes, invalidated only by writes
"""

import logging
import time
from typing import Callable, Generic, Iterable, Optional, TypeVar

from .errors import OK, PersistenceError, WriteResult
from .protocol import SettingsStoreProtocol
from .records import RecordStore
from .settings_store import CUSTOM_TAGS_KEY
from .types import DEFAULT_TAGS, Note, validate_tag

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimedCache(Generic[T]):
    """
    Holds (value, computed_at). get() recomputes when the value is missing
    or at least `ttl` seconds old.
    """

    def __init__(
        self,
        compute: Callable[[], T],
        ttl: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._compute = compute
        self.ttl = ttl
        self._clock = clock
        self._value: Optional[T] = None
        self._computed_at: Optional[float] = None
        self.recomputes = 0

    def is_fresh(self, now: Optional[float] = None) -> bool:
        if self._computed_at is None:
            return False
        if now is None:
            now = self._clock()
        return now - self._computed_at < self.ttl

    def get(self, now: Optional[float] = None) -> T:
        if now is None:
            now = self._clock()
        if self.is_fresh(now):
            return self._value
        self._value = self._compute()
        self._computed_at = now
        self.recomputes += 1
        return self._value

    def invalidate(self) -> None:
        self._value = None
        self._computed_at = None


class TagVocabularyCache:
    """
    Custom tag vocabulary: the persisted global tag list plus every tag on
    any member, minus the default tags, sorted.

    The global list is held in memory and written through to the settings
    store on each change.
    """

    def __init__(
        self,
        records: RecordStore,
        settings: SettingsStoreProtocol,
        *,
        defaults: Iterable[str] = DEFAULT_TAGS,
        ttl: float = 5.0,
        notify: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            notify: Called after every change to the vocabulary
        """
        self._records = records
        self._settings = settings
        self._defaults = frozenset(defaults)
        self._notify = notify
        self._global = settings.get_string_list(CUSTOM_TAGS_KEY)
        self._cache: TimedCache[list[str]] = TimedCache(self._compute, ttl, clock=clock)

    def _compute(self) -> list[str]:
        tags = set(self._global)
        for member in self._records.list():
            tags.update(member.tags)
        vocabulary = sorted(tags - self._defaults)
        logger.debug("Recomputed tag vocabulary: %d tags", len(vocabulary))
        return vocabulary

    def get_tags(self, now: Optional[float] = None) -> list[str]:
        """Sorted custom tags. Served from cache within the freshness window."""
        return list(self._cache.get(now))

    def global_tags(self) -> list[str]:
        """The persisted user-created tag list, in insertion order."""
        return list(self._global)

    def invalidate(self) -> None:
        self._cache.invalidate()

    def _save_global(self, operation: str) -> WriteResult:
        try:
            self._settings.set(CUSTOM_TAGS_KEY, self._global)
        except Exception as e:
            logger.error("%s failed, keeping in-memory tag list: %s", operation, e,
                         exc_info=True)
            return WriteResult.failed(PersistenceError(operation, e))
        return OK

    def _changed(self) -> None:
        self._cache.invalidate()
        if self._notify is not None:
            self._notify()

    def add_global_tag(self, tag: str) -> WriteResult:
        """Append a tag to the global list. No-op if already there."""
        tag = validate_tag(tag)
        if tag in self._global:
            return OK
        self._global.append(tag)
        result = self._save_global(f"add global tag {tag!r}")
        logger.info("Added global tag %r", tag)
        self._changed()
        return result

    def remove_global_tag(self, tag: str) -> WriteResult:
        """
        Remove a tag from the global list and from every member.

        Members carrying the tag are stripped even when the tag was never
        in the global list.

        Returns:
            The first persistence failure, if any; otherwise OK
        """
        result = OK
        if tag in self._global:
            self._global = [t for t in self._global if t != tag]
            result = self._save_global(f"remove global tag {tag!r}")

        member_results = self._records.strip_tag(tag)
        for member_result in member_results.values():
            if result.persisted and not member_result.persisted:
                result = member_result
        logger.info("Removed tag %r (stripped from %d members)", tag, len(member_results))
        self._changed()
        return result

    def count_members_with_tag(self, tag: str) -> int:
        return sum(1 for m in self._records.list() if m.has_tag(tag))


class NoteCache:
    """
    Per-member notes, newest first.

    No expiry: every write path goes through this cache or the record
    store's delete listener, so an entry is evicted exactly when it goes
    stale.
    """

    def __init__(
        self,
        records: RecordStore,
        *,
        notify: Optional[Callable[[], None]] = None,
    ) -> None:
        self._records = records
        self._notify = notify
        self._entries: dict[str, list[Note]] = {}
        self.misses = 0
        records.add_delete_listener(self.evict)

    def get_notes(self, member_id: str) -> list[Note]:
        cached = self._entries.get(member_id)
        if cached is not None:
            return list(cached)
        if member_id not in self._records:
            return []
        self.misses += 1
        notes = sorted(
            self._records.notes_for(member_id),
            key=lambda n: (n.created_at, n.id),
            reverse=True,
        )
        self._entries[member_id] = notes
        return list(notes)

    def add_note(self, member_id: str, content: str) -> Optional[Note]:
        note = self._records.add_note(member_id, content)
        if note is None:
            return None
        self.evict(member_id)
        if self._notify is not None:
            self._notify()
        return note

    def evict(self, member_id: str) -> None:
        self._entries.pop(member_id, None)

    def __contains__(self, member_id: str) -> bool:
        return member_id in self._entries
