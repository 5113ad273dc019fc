"""Tests for persistence, validation and date helpers."""

import logging
from datetime import datetime, timedelta

import pytest

from conftest import NOW
from models import Cache, Config
from utils import (
    data_paths,
    is_date_after,
    is_date_before,
    is_same_week,
    load_cache,
    load_config,
    save_cache,
    save_config,
    shift_clock_time,
    to_human_date_string,
    validate_config,
)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestDataPaths:

    def test_uses_environment_directory(self, tmp_path):
        config_path, cache_path = data_paths()
        assert config_path == str(tmp_path / "data" / "config.json")
        assert cache_path == str(tmp_path / "data" / "cache.json")

    def test_explicit_directory_wins(self, tmp_path):
        assert data_paths(str(tmp_path))[0] == str(tmp_path / "config.json")


class TestConfigFile:

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "config.json")) == Config()

    def test_save_and_load(self, tmp_path):
        path = str(tmp_path / "nested" / "config.json")
        config = Config(api_key="k", rounding=15, hours_minutes=True)
        save_config(path, config)
        assert load_config(path) == config

    def test_broken_file_gives_defaults(self, tmp_path, caplog):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with caplog.at_level(logging.WARNING):
            assert load_config(str(path)) == Config()
        assert "Ignoring unreadable config" in caplog.text

    @pytest.mark.parametrize(
        "content",
        [
            '{"api_key": "k", "rounding": "15"}',
            '{"api_key": "k", "rounding": null}',
            '{"api_key": 42}',
            '{"duration_only": "yes"}',
        ],
    )
    def test_wrong_typed_values_give_defaults(self, tmp_path, caplog, content):
        path = tmp_path / "config.json"
        path.write_text(content)
        with caplog.at_level(logging.WARNING):
            assert load_config(str(path)) == Config()
        assert "Ignoring invalid config" in caplog.text


class TestCacheFile:

    def test_missing_file_gives_empty_cache(self, tmp_path):
        assert load_cache(str(tmp_path / "cache.json")) == Cache()

    def test_save_and_load(self, tmp_path, account):
        path = str(tmp_path / "cache.json")
        cache = Cache(account=account, workspace_id=1, last_sync=NOW)
        save_cache(path, cache)

        loaded = load_cache(path)
        assert loaded.workspace_id == 1
        assert loaded.last_sync == NOW
        assert [e.id for e in loaded.account.time_entries] == [1, 2, 3, 4]
        assert loaded.account.time_entries[1].tags == ("billable",)

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[]",
            '{"account": {"projects": [{"name": "no id"}]}}',
        ],
    )
    def test_broken_file_gives_empty_cache(self, tmp_path, caplog, content):
        path = tmp_path / "cache.json"
        path.write_text(content)
        with caplog.at_level(logging.WARNING):
            assert load_cache(str(path)) == Cache()
        assert "Ignoring unreadable cache" in caplog.text


# ---------------------------------------------------------------------------
# validate_config
# ---------------------------------------------------------------------------

class TestValidateConfig:

    def test_defaults_are_valid(self):
        assert validate_config(Config()) == []

    @pytest.mark.parametrize("rounding", [0, 1, 15, 60])
    def test_rounding_in_range(self, rounding):
        assert validate_config(Config(rounding=rounding)) == []

    @pytest.mark.parametrize("rounding", [-1, 61, 7.5, "15", True])
    def test_rounding_out_of_range(self, rounding):
        errors = validate_config(Config(rounding=rounding))
        assert len(errors) == 1
        assert "rounding" in errors[0]

    def test_negative_default_project(self):
        assert validate_config(Config(default_project_id=-3)) == [
            "default_project_id must be a project ID or 0"
        ]

    def test_flags_must_be_booleans(self):
        errors = validate_config(Config(duration_only="yes", test_mode=1))
        assert errors == [
            "duration_only must be true or false",
            "test_mode must be true or false",
        ]


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

class TestDateComparisons:

    def test_before_and_after_compare_across_years(self):
        earlier = datetime(2025, 12, 31, 23).astimezone()
        later = datetime(2026, 1, 1, 1).astimezone()
        assert is_date_before(earlier, later)
        assert not is_date_before(later, earlier)
        assert is_date_after(later, earlier)
        assert not is_date_after(earlier, later)

    def test_same_day_is_neither_before_nor_after(self):
        morning = NOW.replace(hour=8)
        assert not is_date_before(morning, NOW)
        assert not is_date_after(NOW, morning)

    def test_same_week(self):
        assert is_same_week(NOW, NOW - timedelta(days=2))
        assert not is_same_week(NOW, NOW - timedelta(days=7))


class TestHumanDates:

    @pytest.mark.parametrize(
        "days_ago, expected",
        [
            (0, "today"),
            (1, "yesterday"),
            # Monday of the same ISO week
            (2, "Monday"),
            (4, "last Saturday"),
            (6, "last Thursday"),
            (7, "2026-10-07"),
            (30, "2026-09-14"),
        ],
    )
    def test_relative_to_reference(self, days_ago, expected):
        assert to_human_date_string(NOW - timedelta(days=days_ago), NOW) == expected


class TestShiftClockTime:

    def test_moves_to_wall_clock_time(self):
        shifted = shift_clock_time(NOW, "09:30")
        assert (shifted.hour, shifted.minute) == (9, 30)
        assert shifted.date() == NOW.date()

    def test_keeps_seconds(self):
        original = NOW.replace(second=42)
        assert shift_clock_time(original, "16:00").second == 42

    @pytest.mark.parametrize("clock", ["24:00", "9:60", "noon", "930"])
    def test_rejects_invalid_time(self, clock):
        with pytest.raises(ValueError):
            shift_clock_time(NOW, clock)

