"""Tests for the SQLite member and settings stores."""

import sqlite3

import pytest

from roster.member_store import MemberStore
from roster.settings_store import CUSTOM_TAGS_KEY, SettingsStore
from roster.types import Member, MemberStatus, Note


@pytest.fixture
def store(tmp_path):
    s = MemberStore(tmp_path / "members.db")
    yield s
    s.close()


class TestMembers:

    def test_upsert_and_get(self, store):
        store.upsert_member(Member(
            id="m1", first_name="Ada", last_name="Lovelace",
            email="ada@example.org", tags=["Youth", "Choir"],
            birthday_month=12, birthday_day=10, joined_at="2026-01-01T00:00:00.000000",
        ))
        m = store.get_member("m1")
        assert m.first_name == "Ada"
        assert m.tags == ["Youth", "Choir"]
        assert m.birthday_month == 12
        assert m.status is MemberStatus.ACTIVE
        assert not m.needs_repair

    def test_get_missing(self, store):
        assert store.get_member("nope") is None

    def test_upsert_keeps_joined_at(self, store):
        """joined_at is set once; later upserts don't move it."""
        store.upsert_member(Member(id="m1", joined_at="2026-01-01T00:00:00.000000"))
        store.upsert_member(Member(id="m1", first_name="Ada", joined_at="2027-01-01T00:00:00.000000"))
        m = store.get_member("m1")
        assert m.first_name == "Ada"
        assert m.joined_at == "2026-01-01T00:00:00.000000"

    def test_load_members_in_join_order(self, store):
        store.upsert_member(Member(id="b", joined_at="2026-01-02T00:00:00.000000"))
        store.upsert_member(Member(id="a", joined_at="2026-01-01T00:00:00.000000"))
        assert [m.id for m in store.load_members()] == ["a", "b"]

    def test_garbage_status_on_disk_survives_load(self, store):
        """Rows written by other tools may carry invalid statuses."""
        store.upsert_member(Member(id="m1", joined_at="2026-01-01T00:00:00.000000"))
        store._conn.execute("UPDATE members SET status = 'Zombie' WHERE id = 'm1'")
        store._conn.execute(
            "INSERT INTO members (id, status, joined_at) VALUES ('m2', NULL, '2026-01-02')"
        )
        store._conn.commit()
        loaded = {m.id: m for m in store.load_members()}
        assert loaded["m1"].raw_status == "Zombie"
        assert loaded["m1"].needs_repair
        assert loaded["m2"].needs_repair
        assert loaded["m2"].status is MemberStatus.ACTIVE


class TestNotes:

    def test_insert_and_read_newest_first(self, store):
        store.upsert_member(Member(id="m1"))
        store.insert_note(Note(1, "m1", "first", "2026-01-01T00:00:00.000000"))
        store.insert_note(Note(2, "m1", "second", "2026-01-02T00:00:00.000000"))
        assert [n.content for n in store.notes_for("m1")] == ["second", "first"]
        assert [n.content for n in store.load_notes()] == ["first", "second"]

    def test_delete_member_cascades_to_notes(self, store):
        store.upsert_member(Member(id="m1"))
        store.insert_note(Note(1, "m1", "hello", "2026-01-01T00:00:00.000000"))
        assert store.delete_member("m1") is True
        assert store.notes_for("m1") == []
        assert store.load_notes() == []

    def test_note_requires_member(self, store):
        with pytest.raises(sqlite3.IntegrityError):
            store.insert_note(Note(1, "ghost", "hello", "2026-01-01T00:00:00.000000"))

    def test_delete_notes(self, store):
        store.upsert_member(Member(id="m1"))
        store.insert_note(Note(1, "m1", "a", "2026-01-01T00:00:00.000000"))
        store.insert_note(Note(2, "m1", "b", "2026-01-01T00:00:01.000000"))
        assert store.delete_notes("m1") == 2
        assert store.delete_member("m1") is True
        assert store.delete_member("m1") is False


class TestSettingsStore:

    def test_roundtrip_and_default(self, tmp_path):
        with SettingsStore(tmp_path / "settings.db") as s:
            assert s.get(CUSTOM_TAGS_KEY) is None
            assert s.get_string_list(CUSTOM_TAGS_KEY) == []
            s.set(CUSTOM_TAGS_KEY, ["Youth", "Choir"])
            assert s.get_string_list(CUSTOM_TAGS_KEY) == ["Youth", "Choir"]

    def test_survives_reopen(self, tmp_path):
        with SettingsStore(tmp_path / "settings.db") as s:
            s.set("k", {"a": 1})
        with SettingsStore(tmp_path / "settings.db") as s:
            assert s.get("k") == {"a": 1}
            assert s.get("missing", "gone") == "gone"

    def test_string_list_ignores_junk(self, tmp_path):
        with SettingsStore(tmp_path / "settings.db") as s:
            s.set("tags", ["ok", 3, None])
            assert s.get_string_list("tags") == ["ok"]
            s.set("tags", "not a list")
            assert s.get_string_list("tags") == []
