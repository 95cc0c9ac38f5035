"""
Core API for the member directory.

Directory ties the pieces together:
- RecordStore: members and notes, written through to the backend
- metrics: status counts with integrity repair
- TagVocabularyCache / NoteCache: derived views
- query: status/tag/name filtering
- InvalidationBus: "tags changed" and "notes changed" signals for UIs

Every public method runs under one re-entrant lock, so all store work is
serialized through a single writer no matter which thread calls in.
"""

import functools
import logging
import threading
import time
from concurrent.futures import Executor
from pathlib import Path
from typing import Callable, Iterable, Optional

from .caches import NoteCache, TagVocabularyCache
from .config import StoreConfig, load_or_create_config
from .errors import WriteResult
from .events import InvalidationBus
from .metrics import refresh_metrics
from .protocol import MemberStoreProtocol, SettingsStoreProtocol
from .query import filter_members, filtered_emails, filtered_phone_numbers
from .records import RecordStore
from .types import Member, MemberStatus, Note, StatusMetrics, utc_now

logger = logging.getLogger(__name__)


def _serialized(method):
    """
    Run the method under the directory's writer lock.

    Change signals raised during the call are published once the
    outermost call has released the lock, so subscribers may read back
    from any thread.
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        signals = ()
        try:
            with self._lock:
                self._depth += 1
                try:
                    return method(self, *args, **kwargs)
                finally:
                    self._depth -= 1
                    if self._depth == 0:
                        signals, self._pending_signals = self._pending_signals, []
        finally:
            for bus in signals:
                bus.publish()
    return wrapper


def _status_filter(status: Optional[str | MemberStatus]) -> Optional[MemberStatus]:
    """Strict parse for query input: unknown statuses are an error, not Active."""
    if status is None:
        return None
    return MemberStatus.parse_strict(status)


class Directory:
    """
    Member directory - records, tags, notes and derived views.

    Subscribers to tags_changed and notes_changed are called after the
    writer lock is released.

    Example:
        with Directory("~/.roster") as d:
            mid = d.add_member("Ada", "Lovelace", tags=["Youth"])
            d.add_note(mid, "Called about the retreat")
            d.filter_members(tag="Youth")
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        member_store: Optional[MemberStoreProtocol] = None,
        settings_store: Optional[SettingsStoreProtocol] = None,
        clock: Callable[[], str] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
    ) -> None:
        """
        Open or create a directory store.

        Args:
            store_path: Store directory. Uses ROSTER_STORE_PATH or ~/.roster
                if not specified.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            member_store: Injected member backend (skips backend creation).
            settings_store: Injected settings backend (skips backend creation).
            clock: Timestamp source for join dates and notes.
            monotonic: Time source for the tag cache freshness window.
            executor: If given, change notifications are delivered on it.
        """
        self._lock = threading.RLock()
        self._depth = 0
        self._pending_signals: list[InvalidationBus] = []

        # --- Config resolution ---
        if config is not None:
            self._config = config
        else:
            path = Path(store_path).expanduser().resolve() if store_path is not None else None
            self._config = load_or_create_config(path)
        self._store_path = self._config.path

        # --- Persistent operations log ---
        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._store_path)

        # --- Storage backends (injected or factory-created) ---
        if member_store is not None and settings_store is not None:
            self._member_store = member_store
            self._settings_store = settings_store
        else:
            from .backend import create_stores
            bundle = create_stores(self._config)
            self._member_store = member_store or bundle.member_store
            self._settings_store = settings_store or bundle.settings_store

        self.tags_changed = InvalidationBus("tags changed", executor)
        self.notes_changed = InvalidationBus("notes changed", executor)

        self._records = RecordStore(self._member_store, clock=clock)
        self._tag_cache = TagVocabularyCache(
            self._records,
            self._settings_store,
            defaults=self._config.tags.defaults,
            ttl=self._config.tags.cache_ttl_seconds,
            notify=functools.partial(self._signal, self.tags_changed),
            clock=monotonic,
        )
        self._note_cache = NoteCache(
            self._records,
            notify=functools.partial(self._signal, self.notes_changed),
        )

        self._metrics: StatusMetrics = refresh_metrics(self._records)
        self._metrics_stale = False
        logger.info("Opened directory at %s (%d members)", self._store_path, len(self._records))

    def _signal(self, bus: InvalidationBus) -> None:
        """Queue a change signal for publication when the lock is released."""
        if bus not in self._pending_signals:
            self._pending_signals.append(bus)

    def _members_changed(self, *, tags: bool = False) -> None:
        self._metrics_stale = True
        if tags:
            self._tag_cache.invalidate()

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    @_serialized
    def add_member(
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
        Add a member. Status defaults to Active.

        Returns:
            The new member's id

        Raises:
            ValueError: If status is not a known status
        """
        tags = list(tags)
        id = self._records.add(
            first_name,
            last_name,
            email=email,
            phone=phone,
            status=status,
            tags=tags,
            birthday_month=birthday_month,
            birthday_day=birthday_day,
        )
        self._members_changed(tags=bool(tags))
        return id

    @_serialized
    def update_member(self, id: str, **fields) -> WriteResult:
        """
        Update member fields (first_name, last_name, email, phone, status,
        tags, birthday_month, birthday_day).
        """
        result = self._records.update(id, **fields)
        if result.found:
            self._members_changed(tags="tags" in fields)
        return result

    @_serialized
    def set_status(self, id: str, status: str | MemberStatus) -> WriteResult:
        """Set a member's status. Unknown statuses raise ValueError."""
        result = self._records.set_status(id, status)
        if result.found:
            self._members_changed()
        return result

    @_serialized
    def delete_member(self, id: str) -> WriteResult:
        """Delete a member, its notes, and its cached derivations."""
        result = self._records.delete(id)
        if result.found:
            self._members_changed(tags=True)
        return result

    @_serialized
    def get_member(self, id: str) -> Optional[Member]:
        return self._records.get(id)

    @_serialized
    def list_members(self) -> list[Member]:
        """All members in base order (first name ascending)."""
        return filter_members(self._records.list())

    @_serialized
    def find_member_by_name(self, first_name: str, last_name: str) -> Optional[Member]:
        return self._records.find_by_name(first_name, last_name)

    @_serialized
    def count(self) -> int:
        return len(self._records)

    @property
    def last_result(self) -> WriteResult:
        """Persistence outcome of the most recent member/note write."""
        return self._records.last_result

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    @_serialized
    def add_tag(self, id: str, tag: str) -> WriteResult:
        """Attach a tag to one member."""
        result = self._records.add_tag(id, tag)
        if result.found:
            self._tag_cache.invalidate()
        return result

    @_serialized
    def remove_tag(self, id: str, tag: str) -> WriteResult:
        """Detach a tag from one member."""
        result = self._records.remove_tag(id, tag)
        if result.found:
            self._tag_cache.invalidate()
        return result

    @_serialized
    def add_global_tag(self, tag: str) -> WriteResult:
        return self._tag_cache.add_global_tag(tag)

    @_serialized
    def remove_global_tag(self, tag: str) -> WriteResult:
        """Remove a tag everywhere: the global list and every member."""
        return self._tag_cache.remove_global_tag(tag)

    @_serialized
    def get_tags(self) -> list[str]:
        """Custom tag vocabulary, sorted, default tags excluded."""
        return self._tag_cache.get_tags()

    @_serialized
    def global_tags(self) -> list[str]:
        return self._tag_cache.global_tags()

    @property
    def default_tags(self) -> list[str]:
        return list(self._config.tags.defaults)

    @_serialized
    def count_members_with_tag(self, tag: str) -> int:
        return self._tag_cache.count_members_with_tag(tag)

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    @_serialized
    def add_note(self, member_id: str, content: str) -> Optional[Note]:
        """
        Add a note to a member.

        Returns:
            The new Note, or None if the member does not exist
        """
        return self._note_cache.add_note(member_id, content)

    @_serialized
    def get_notes(self, member_id: str) -> list[Note]:
        """A member's notes, newest first. Empty for unknown members."""
        return self._note_cache.get_notes(member_id)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @_serialized
    def refresh_metrics(self) -> StatusMetrics:
        """Repair invalid statuses and recount members per status."""
        self._metrics = refresh_metrics(self._records)
        self._metrics_stale = False
        return dict(self._metrics)

    @property
    @_serialized
    def metrics(self) -> StatusMetrics:
        """Status counts, refreshed first if members changed since the last pass."""
        if self._metrics_stale:
            return self.refresh_metrics()
        return dict(self._metrics)

    @_serialized
    def filter_members(
        self,
        status: Optional[str | MemberStatus] = None,
        tag: Optional[str] = None,
        search_text: Optional[str] = None,
    ) -> list[Member]:
        """
        Members matching every supplied filter, first name ascending.

        Raises:
            ValueError: If status is not a known status
        """
        return filter_members(self._records.list(), _status_filter(status), tag, search_text)

    @_serialized
    def filtered_emails(
        self,
        status: Optional[str | MemberStatus] = None,
        tag: Optional[str] = None,
    ) -> list[str]:
        return filtered_emails(self._records.list(), _status_filter(status), tag)

    @_serialized
    def filtered_phone_numbers(
        self,
        status: Optional[str | MemberStatus] = None,
        tag: Optional[str] = None,
    ) -> list[str]:
        return filtered_phone_numbers(self._records.list(), _status_filter(status), tag)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Be told when the tag vocabulary changes. No payload: re-read
        get_tags() in the callback.

        Returns:
            An unsubscribe function
        """
        return self.tags_changed.subscribe(callback)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def config(self) -> StoreConfig:
        """Public access to store configuration."""
        return self._config

    @property
    def store_path(self) -> Path:
        return self._store_path

    def close(self) -> None:
        """Close backends and detach the ops log."""
        with self._lock:
            if getattr(self, "_records", None) is not None:
                self._records.close()
                self._records = None
            if getattr(self, "_settings_store", None) is not None:
                self._settings_store.close()
                self._settings_store = None

            # Remove ops log handler to avoid handler accumulation
            if getattr(self, "_ops_log_handler", None):
                logging.getLogger("roster").removeHandler(self._ops_log_handler)
                self._ops_log_handler.close()
                self._ops_log_handler = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close resources."""
        self.close()
        return False

    def __del__(self):
        """Cleanup on deletion."""
        try:
            self.close()
        except Exception:
            pass  # Suppress errors during garbage collection
