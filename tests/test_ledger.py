"""Tests for storage/ledger.py: the per-post revision chain."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from letterman_sync.errors import NotFoundError, NotLatestVersionError
from letterman_sync.storage import Database, VersionLedger
from letterman_sync.storage.ids import SnowflakeIdGenerator, compute_version
from letterman_sync.sync.models import (
    NO_PARENT,
    Platform,
    SyncOperation,
    SyncRecord,
)


def _heads(db, post_id):
    with db.read() as conn:
        return conn.execute(
            "SELECT COUNT(*) FROM post_versions WHERE post_id = ? AND head = 1",
            (post_id,),
        ).fetchone()[0]


class TestCreate:
    def test_first_revision_is_head(self, ledger):
        post = ledger.create("Hello", {"tags": "a"}, "body")
        assert post.post_id == 1
        assert post.head is True
        assert post.prev_version == NO_PARENT
        assert post.version == compute_version(
            1, NO_PARENT, "Hello", {"tags": "a"}, "body"
        )
        assert post.create_time == post.update_time

    def test_posts_get_distinct_ids(self, ledger):
        a = ledger.create("A", {}, "a")
        b = ledger.create("B", {}, "b")
        assert a.post_id != b.post_id

    def test_round_trips_through_storage(self, ledger):
        created = ledger.create("Hello", {"k": "v"}, "body")
        assert ledger.get_head(created.post_id) == created


class TestUpdate:
    def test_appends_and_moves_head(self, ledger, db):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")

        assert v2.post_id == v1.post_id
        assert v2.prev_version == v1.version
        assert ledger.get_head(v1.post_id).version == v2.version
        assert ledger.get_by_version(v1.post_id, v1.version).head is False
        assert _heads(db, v1.post_id) == 1

    def test_identical_content_gets_new_version(self, ledger):
        v1 = ledger.create("T", {}, "same")
        v2 = ledger.update(v1.version, "T", {}, "same")
        assert v2.version != v1.version

    def test_stale_base_rejected(self, ledger):
        v1 = ledger.create("T", {}, "one")
        ledger.update(v1.version, "T", {}, "two")

        with pytest.raises(NotLatestVersionError) as exc_info:
            ledger.update(v1.version, "T", {}, "three")
        assert exc_info.value.version == v1.version

    def test_stale_base_leaves_ledger_unchanged(self, ledger, db):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")
        with pytest.raises(NotLatestVersionError):
            ledger.update(v1.version, "T", {}, "three")

        assert ledger.get_head(v1.post_id).version == v2.version
        assert len(ledger.list_versions(v1.post_id)) == 2
        assert _heads(db, v1.post_id) == 1

    def test_concurrent_updates_from_one_base(self, tmp_path):
        """Only one of many racing updates from the same base wins."""
        db = Database(tmp_path / "ledger.db")
        db.connect()
        try:
            ledger = VersionLedger(db, SnowflakeIdGenerator())
            base = ledger.create("T", {}, "base")
            barrier = threading.Barrier(16)

            def attempt(n):
                barrier.wait()
                try:
                    return ledger.update(base.version, "T", {}, f"edit {n}")
                except NotLatestVersionError:
                    return None

            with ThreadPoolExecutor(max_workers=16) as pool:
                results = list(pool.map(attempt, range(16)))

            winners = [post for post in results if post is not None]
            assert len(winners) == 1
            assert results.count(None) == 15
            assert ledger.get_head(base.post_id) == winners[0]
            assert len(ledger.list_versions(base.post_id)) == 2
            assert _heads(db, base.post_id) == 1
        finally:
            db.close()

    def test_unknown_base(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.update("missing", "T", {}, "x")


class TestRevert:
    def test_restores_and_truncates(self, ledger, db):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")
        v3 = ledger.update(v2.version, "T", {}, "three")

        restored = ledger.revert(v1.version)

        assert restored.version == v1.version
        assert restored.head is True
        assert ledger.get_head(v1.post_id).version == v1.version
        assert [p.version for p in ledger.list_versions(v1.post_id)] == [
            v1.version
        ]
        for gone in (v2.version, v3.version):
            with pytest.raises(NotFoundError):
                ledger.get_by_version(v1.post_id, gone)
        assert _heads(db, v1.post_id) == 1

    def test_revert_to_head_is_noop(self, ledger):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")

        restored = ledger.revert(v2.version)

        assert restored.version == v2.version
        assert len(ledger.list_versions(v1.post_id)) == 2

    def test_update_after_revert(self, ledger):
        v1 = ledger.create("T", {}, "one")
        ledger.update(v1.version, "T", {}, "two")
        ledger.revert(v1.version)

        v3 = ledger.update(v1.version, "T", {}, "three")
        assert v3.prev_version == v1.version

    def test_other_posts_untouched(self, ledger):
        a1 = ledger.create("A", {}, "a")
        b1 = ledger.create("B", {}, "b")
        ledger.update(a1.version, "A", {}, "a2")
        ledger.revert(a1.version)
        assert ledger.get_head(b1.post_id) == b1

    def test_unknown_version(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.revert("missing")


class TestDelete:
    def test_removes_whole_chain(self, ledger, db):
        v1 = ledger.create("T", {}, "one")
        ledger.update(v1.version, "T", {}, "two")
        other = ledger.create("Other", {}, "x")

        assert ledger.delete(v1.post_id) == 2

        with pytest.raises(NotFoundError):
            ledger.get_head(v1.post_id)
        with pytest.raises(NotFoundError):
            ledger.get_by_version(v1.post_id, v1.version)
        with pytest.raises(NotFoundError):
            ledger.list_versions(v1.post_id)
        assert ledger.get_head(other.post_id) == other

    def test_keeps_sync_records(self, ledger, records, clock):
        post = ledger.create("T", {}, "one")
        records.append(
            SyncRecord(
                post_id=post.post_id,
                platform=Platform.GITHUB,
                version=post.version,
                action=SyncOperation.PUSH_CREATE,
                path="a.md",
                sha="abc",
                repository="org/repo",
                create_time=clock(),
            )
        )

        ledger.delete(post.post_id)

        assert len(records.list(post.post_id, Platform.GITHUB)) == 1

    def test_unknown_post(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.delete(999)


class TestReads:
    def test_get_head_unknown(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.get_head(999)

    def test_get_by_version_wrong_post(self, ledger):
        a = ledger.create("A", {}, "a")
        b = ledger.create("B", {}, "b")
        with pytest.raises(NotFoundError):
            ledger.get_by_version(b.post_id, a.version)

    def test_list_versions_newest_first(self, ledger):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")
        versions = ledger.list_versions(v1.post_id)
        assert [p.version for p in versions] == [v2.version, v1.version]

    def test_list_versions_unknown(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.list_versions(999)

    def test_get_heads_batch(self, ledger):
        a = ledger.create("A", {}, "a")
        b = ledger.create("B", {}, "b")
        heads = ledger.get_heads([a.post_id, b.post_id, 999])
        assert set(heads) == {a.post_id, b.post_id}
        assert ledger.get_heads([]) == {}

    def test_get_by_versions_batch(self, ledger):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")
        found = ledger.get_by_versions(v1.post_id, [v1.version, v2.version, "x"])
        assert set(found) == {v1.version, v2.version}
        assert found[v2.version].head is True

    def test_list_heads_paged(self, ledger):
        posts = [ledger.create(f"P{i}", {}, str(i)) for i in range(3)]

        first = ledger.list_heads(page=1, page_size=2)
        assert first.total == 3
        assert first.prev == 0
        assert first.next == 2
        assert [p.post_id for p in first.data] == [
            posts[2].post_id,
            posts[1].post_id,
        ]

        second = ledger.list_heads(page=2, page_size=2)
        assert second.next == 0
        assert [p.post_id for p in second.data] == [posts[0].post_id]

    def test_list_heads_rejects_bad_page(self, ledger):
        with pytest.raises(ValueError):
            ledger.list_heads(page=0)


class TestIsAncestor:
    def test_linear_chain(self, ledger):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")
        v3 = ledger.update(v2.version, "T", {}, "three")
        pid = v1.post_id

        assert ledger.is_ancestor(pid, v1.version, v3.version)
        assert ledger.is_ancestor(pid, v2.version, v3.version)
        assert not ledger.is_ancestor(pid, v3.version, v1.version)
        assert not ledger.is_ancestor(pid, v2.version, v2.version)

    def test_reverted_version_is_not_ancestor(self, ledger):
        v1 = ledger.create("T", {}, "one")
        v2 = ledger.update(v1.version, "T", {}, "two")
        ledger.revert(v1.version)
        v3 = ledger.update(v1.version, "T", {}, "three")

        assert not ledger.is_ancestor(v1.post_id, v2.version, v3.version)
        assert ledger.is_ancestor(v1.post_id, v1.version, v3.version)

    def test_unknown_versions(self, ledger):
        v1 = ledger.create("T", {}, "one")
        assert not ledger.is_ancestor(v1.post_id, "missing", v1.version)
