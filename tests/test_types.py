"""Tests for daysync/types.py and the error types in daysync/protocols.py."""

import pytest

from daysync.protocols import NoActivePeriodError, RemoteError, RemoteErrorKind
from daysync.types import (
    CacheKey,
    FetchOutcome,
    FlushResult,
    ResourceKind,
    is_newer,
    parse_datetime,
    utc_now,
)


class TestCacheKey:
    def test_raw_key_format(self):
        key = CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")
        assert key.raw_key() == "daysync_journal_cache_u1_2024-05-01"
        assert key.raw_key("yurutto") == "yurutto_journal_cache_u1_2024-05-01"

    def test_document_path_uses_collection(self):
        assert (
            CacheKey("u1", ResourceKind.MONTHLY_TASKS, "2024-05").document_path
            == "users/u1/monthlyTasks/2024-05"
        )
        assert CacheKey("u1", ResourceKind.GRAPH, "2024-05").document_path == "users/u1/graph/2024-05"

    def test_str_is_document_path(self):
        key = CacheKey("u1", ResourceKind.TRACKER, "2024-05")
        assert str(key) == "users/u1/tracker/2024-05"

    def test_kind_coerced_from_string(self):
        key = CacheKey("u1", "tracker", "2024-05")
        assert key.kind is ResourceKind.TRACKER

    def test_equal_keys_hash_equal(self):
        a = CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")
        b = CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")
        assert a == b
        assert {a: 1}[b] == 1

    def test_slot_ignores_period(self):
        may = CacheKey("u1", ResourceKind.TRACKER, "2024-05")
        june = CacheKey("u1", ResourceKind.TRACKER, "2024-06")
        graph = CacheKey("u1", ResourceKind.GRAPH, "2024-05")
        assert may.slot == june.slot
        assert may.slot != graph.slot

    def test_journal_requires_day_period(self):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            CacheKey("u1", ResourceKind.JOURNAL, "2024-05")

    def test_monthly_kind_requires_month_period(self):
        with pytest.raises(ValueError, match="YYYY-MM"):
            CacheKey("u1", ResourceKind.GRAPH, "2024-05-01")

    def test_empty_user_rejected(self):
        with pytest.raises(ValueError):
            CacheKey("", ResourceKind.JOURNAL, "2024-05-01")

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            CacheKey("u1", "calendar", "2024-05")


class TestRecency:
    def test_parse_datetime_accepts_z_suffix(self):
        parsed = parse_datetime("2024-05-01T10:00:00Z")
        assert parsed is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_parse_datetime_invalid_returns_none(self):
        assert parse_datetime("yesterday") is None
        assert parse_datetime(None) is None
        assert parse_datetime(12) is None

    def test_utc_now_is_parseable(self):
        assert parse_datetime(utc_now()) is not None

    def test_is_newer(self):
        old = {"updatedAt": "2024-05-01T10:00:00Z"}
        new = {"updatedAt": "2024-05-01T10:00:01Z"}
        assert is_newer(new, old)
        assert not is_newer(old, new)
        assert not is_newer(old, old)

    def test_missing_timestamps(self):
        stamped = {"updatedAt": "2024-05-01T10:00:00Z"}
        assert is_newer(stamped, {"diary": "a"})
        assert not is_newer({"diary": "a"}, stamped)
        assert is_newer(stamped, None)
        assert not is_newer(None, stamped)


class TestRemoteError:
    @pytest.mark.parametrize(
        "kind,ignorable",
        [
            (RemoteErrorKind.TIMEOUT, True),
            (RemoteErrorKind.OFFLINE, True),
            (RemoteErrorKind.PERMISSION_DENIED, False),
            (RemoteErrorKind.INVALID_DOCUMENT, False),
            (RemoteErrorKind.UNKNOWN, False),
        ],
    )
    def test_ignorable_by_kind(self, kind, ignorable):
        assert RemoteError("x", kind).ignorable is ignorable

    def test_message_does_not_decide_kind(self):
        assert not RemoteError("client is offline").ignorable

    def test_wrap_generic_exception(self):
        wrapped = RemoteError.wrap(ValueError("bad"), "users/u1/journal/2024-05-01")
        assert wrapped.kind is RemoteErrorKind.UNKNOWN
        assert wrapped.path == "users/u1/journal/2024-05-01"
        assert isinstance(wrapped.__cause__, ValueError)

    def test_wrap_keeps_remote_error(self):
        original = RemoteError("gone", RemoteErrorKind.OFFLINE)
        assert RemoteError.wrap(original, "p") is original
        assert original.path == "p"

    def test_timeout_factory(self):
        error = RemoteError.timeout("p", 3.0)
        assert error.kind is RemoteErrorKind.TIMEOUT
        assert "3.000" in str(error)

    def test_no_active_period_message(self):
        key = CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")
        assert "users/u1/journal/2024-05-01" in str(NoActivePeriodError(key))


class TestOutcomes:
    def test_fetch_outcome_resolved(self):
        outcome = FetchOutcome(record={"a": 1}, server_hit=True)
        assert outcome.resolved
        assert not outcome.ignorable

    def test_fetch_outcome_ignorable_error(self):
        outcome = FetchOutcome(error=RemoteError.timeout())
        assert not outcome.resolved
        assert outcome.ignorable

    def test_flush_result_ok(self):
        key = CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")
        assert FlushResult(key, {}).ok
        assert not FlushResult(key, {}, RemoteError("x")).ok
