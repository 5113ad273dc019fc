"""Tests for API and cache (de)serialization of the data models."""

from datetime import datetime, timezone

from models import (
    AccountSnapshot,
    Cache,
    Config,
    Running,
    Stopped,
    TimeEntry,
    format_timestamp,
    parse_timestamp,
)

STOPPED_ENTRY = {
    "id": 42,
    "description": "coding",
    "project_id": 7,
    "tags": ["billable", "billable", "remote"],
    "start": "2026-10-14T08:00:00Z",
    "stop": "2026-10-14T09:30:00Z",
    "duration": 5400,
    "workspace_id": 1,
}

RUNNING_ENTRY = {
    "id": 43,
    "description": "email",
    "start": "2026-10-14T10:00:00Z",
    "duration": -1,
    "workspace_id": 1,
}


class TestTimestamps:

    def test_parse_utc_suffix(self):
        assert parse_timestamp("2026-10-14T08:00:00Z") == datetime(
            2026, 10, 14, 8, tzinfo=timezone.utc
        )

    def test_parse_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_format_drops_microseconds(self):
        moment = datetime(2026, 10, 14, 8, 0, 0, 123456, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2026-10-14T08:00:00Z"


class TestTimeEntry:

    def test_stopped_from_api(self):
        entry = TimeEntry.from_api(STOPPED_ENTRY)
        assert entry.state == Stopped(5400)
        assert not entry.is_running
        assert entry.project_id == 7
        assert entry.tags == ("billable", "remote")

    def test_running_from_api(self):
        entry = TimeEntry.from_api(RUNNING_ENTRY)
        assert entry.is_running
        assert entry.state == Running(parse_timestamp("2026-10-14T10:00:00Z"))
        assert entry.project_id is None
        assert entry.tags == ()

    def test_running_from_legacy_negative_epoch(self):
        started = datetime(2026, 10, 14, 10, tzinfo=timezone.utc)
        entry = TimeEntry.from_api({"id": 1, "duration": -int(started.timestamp())})
        assert entry.state == Running(started)
        assert entry.start == started

    def test_elapsed_seconds(self):
        started = datetime(2026, 10, 14, 10, tzinfo=timezone.utc)
        entry = TimeEntry(id=1, start=started, state=Running(started))
        assert entry.elapsed_seconds(datetime(2026, 10, 14, 10, 10, tzinfo=timezone.utc)) == 600
        # Clock skew never yields a negative duration
        assert entry.elapsed_seconds(datetime(2026, 10, 14, 9, 59, tzinfo=timezone.utc)) == 0
        assert TimeEntry(id=2, state=Stopped(90)).elapsed_seconds(started) == 90

    def test_running_to_api_sends_negative_duration(self):
        data = TimeEntry.from_api(RUNNING_ENTRY).to_api()
        assert data["duration"] == -1
        assert data["stop"] is None
        assert data["id"] == 43

    def test_new_entry_to_api_has_no_id(self):
        assert "id" not in TimeEntry(id=0, description="new").to_api()

    def test_tags(self):
        entry = TimeEntry(id=1, tags=("a",))
        assert entry.with_tag("a") is entry
        assert entry.with_tag("b").tags == ("a", "b")
        assert entry.without_tag("a").tags == ()


class TestCache:

    def test_cache_file_layout(self):
        data = {
            "workspace": 1,
            "time": "2026-10-14T12:00:00Z",
            "account": {
                "time_entries": [STOPPED_ENTRY, RUNNING_ENTRY],
                "projects": [{"id": 7, "name": "Alpha", "workspace_id": 1}],
                "tags": [{"id": 3, "name": "billable", "workspace_id": 1}],
                "workspaces": [{"id": 1, "name": "Home"}],
            },
        }
        cache = Cache.from_dict(data)
        assert cache.workspace_id == 1
        assert cache.last_sync == parse_timestamp("2026-10-14T12:00:00Z")
        assert [e.id for e in cache.account.time_entries] == [42, 43]
        assert cache.account.projects[0].name == "Alpha"

        again = Cache.from_dict(cache.to_dict())
        assert again == cache

    def test_empty_cache(self):
        cache = Cache.from_dict({})
        assert cache.account == AccountSnapshot()
        assert cache.workspace_id == 0
        assert cache.last_sync is None


class TestConfig:

    def test_unknown_keys_are_ignored(self):
        config = Config.from_dict({"api_key": "k", "rounding": 15, "theme": "dark"})
        assert config.api_key == "k"
        assert config.rounding == 15
        assert not config.duration_only

    def test_defaults(self):
        assert Config.from_dict({}) == Config()
        assert Config().rounding == 0
