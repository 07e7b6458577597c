"""Tests for storage/records.py: append-only sync log."""

from datetime import datetime, timedelta, timezone

import pytest

from letterman_sync.sync.models import Platform, SyncOperation, SyncRecord

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _record(post_id=1, version="v1", sha="s1", minutes=0, **kwargs):
    fields = dict(
        post_id=post_id,
        platform=Platform.GITHUB,
        version=version,
        action=SyncOperation.PUSH_CREATE,
        path="posts/hello.md",
        sha=sha,
        repository="org/repo",
        url="https://github.com/org/repo/blob/main/posts/hello.md",
        create_time=_BASE + timedelta(minutes=minutes),
    )
    fields.update(kwargs)
    return SyncRecord(**fields)


class TestAppend:
    def test_assigns_id(self, records):
        stored = records.append(_record())
        assert stored.id is not None
        assert records.list(1, Platform.GITHUB) == [stored]

    def test_original_record_unchanged(self, records):
        record = _record()
        records.append(record)
        assert record.id is None


class TestList:
    def test_newest_first(self, records):
        old = records.append(_record(version="v1", minutes=0))
        new = records.append(_record(version="v2", minutes=5))
        assert [r.id for r in records.list(1, Platform.GITHUB)] == [
            new.id,
            old.id,
        ]

    def test_ties_broken_by_insertion_order(self, records):
        first = records.append(_record(version="v1"))
        second = records.append(_record(version="v2"))
        assert records.list(1, Platform.GITHUB)[0].id == second.id
        assert records.list(1, Platform.GITHUB)[1].id == first.id

    def test_scoped_to_post(self, records):
        records.append(_record(post_id=1))
        records.append(_record(post_id=2))
        assert len(records.list(1, Platform.GITHUB)) == 1
        assert records.list(3, Platform.GITHUB) == []


class TestLatestPerPlatform:
    def test_latest(self, records):
        records.append(_record(version="v1", minutes=0))
        latest = records.append(_record(version="v2", minutes=1))
        assert records.latest_per_platform(1) == {Platform.GITHUB: latest}

    def test_no_records(self, records):
        assert records.latest_per_platform(1) == {}


class TestPage:
    def test_paging(self, records):
        stored = [records.append(_record(minutes=i)) for i in range(5)]

        page1 = records.page(1, Platform.GITHUB, page=1, page_size=2)
        assert page1.total == 5
        assert (page1.prev, page1.next) == (0, 2)
        assert [r.id for r in page1.data] == [stored[4].id, stored[3].id]

        page3 = records.page(1, Platform.GITHUB, page=3, page_size=2)
        assert page3.next == 0
        assert [r.id for r in page3.data] == [stored[0].id]

    def test_past_the_end(self, records):
        records.append(_record())
        page = records.page(1, Platform.GITHUB, page=4, page_size=2)
        assert page.total == 1
        assert page.data == []
        assert page.next == 0

    def test_rejects_bad_page(self, records):
        with pytest.raises(ValueError):
            records.page(1, Platform.GITHUB, page=0)
