"""Utility functions for the Toggl mirror."""

import json
import logging
import os
from datetime import date, datetime, time, timedelta

from models import Cache, Config
from patterns import Patterns

logger = logging.getLogger(__name__)

# File paths
DATA_DIR_ENV = "TOGGL_MIRROR_DIR"
CONFIG_FILE = "config.json"
CACHE_FILE = "cache.json"


def data_paths(data_dir: str | None = None) -> tuple[str, str]:
    """Return (config path, cache path) inside the data directory."""
    data_dir = data_dir or os.environ.get(DATA_DIR_ENV, ".")
    return os.path.join(data_dir, CONFIG_FILE), os.path.join(data_dir, CACHE_FILE)


def _load_json(path: str) -> dict | None:
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return json.load(f)


def _save_json(path: str, data: dict) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_config(path: str) -> Config:
    """Load config.json, falling back to defaults if it is missing or broken."""
    try:
        data = _load_json(path)
        if data is None:
            logger.debug("No config at %s, using defaults", path)
            return Config()
        config = Config.from_dict(data)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return Config()

    errors = validate_config(config)
    if errors:
        logger.warning("Ignoring invalid config %s: %s", path, "; ".join(errors))
        return Config()

    logger.debug("Loaded config from %s", path)
    return config


def save_config(path: str, config: Config) -> None:
    """Save config.json."""
    _save_json(path, config.to_dict())
    logger.debug("Saved config to %s", path)


def load_cache(path: str) -> Cache:
    """Load cache.json, falling back to an empty cache if it is missing or broken.

    A broken cache is not fatal: the next refresh rewrites it.
    """
    try:
        data = _load_json(path)
        if data is None:
            logger.debug("No cache at %s, starting empty", path)
            return Cache()
        cache = Cache.from_dict(data)
    except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
        logger.warning("Ignoring unreadable cache %s: %s", path, e)
        return Cache()

    logger.debug("Loaded cache from %s", path)
    return cache


def save_cache(path: str, cache: Cache) -> None:
    """Save cache.json."""
    _save_json(path, cache.to_dict())
    logger.debug("Saved cache to %s", path)


def validate_config(config: Config) -> list[str]:
    """Validate option values and return list of error messages.

    Returns:
        Empty list if valid, otherwise list of error messages.
    """
    errors = []

    if not isinstance(config.api_key, str):
        errors.append("api_key must be a string")

    if not isinstance(config.rounding, int) or isinstance(config.rounding, bool):
        errors.append("rounding must be a whole number of minutes")
    elif not 0 <= config.rounding <= 60:
        errors.append("rounding must be between 0 and 60 minutes")

    if not isinstance(config.default_project_id, int) or config.default_project_id < 0:
        errors.append("default_project_id must be a project ID or 0")

    for name in ("duration_only", "hours_minutes", "ask_for_project", "test_mode"):
        if not isinstance(getattr(config, name), bool):
            errors.append(f"{name} must be true or false")

    return errors


def now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def to_day_start(moment: datetime) -> datetime:
    """Local midnight on the day of ``moment``."""
    return datetime.combine(moment.astimezone().date(), time.min).astimezone()


def to_day_end(moment: datetime) -> datetime:
    """Last representable local instant on the day of ``moment``."""
    return datetime.combine(moment.astimezone().date(), time.max).astimezone()


def local_date(moment: datetime) -> date:
    return moment.astimezone().date()


def is_date_before(date1: datetime, date2: datetime) -> bool:
    """Is date1's calendar date earlier than date2's?"""
    return local_date(date1) < local_date(date2)


def is_date_after(date1: datetime, date2: datetime) -> bool:
    """Is date1's calendar date later than date2's?"""
    return local_date(date1) > local_date(date2)


def is_same_date(date1: datetime, date2: datetime) -> bool:
    return local_date(date1) == local_date(date2)


def is_same_week(date1: datetime, date2: datetime) -> bool:
    return local_date(date1).isocalendar()[:2] == local_date(date2).isocalendar()[:2]


def to_iso_date_string(moment: datetime) -> str:
    return local_date(moment).isoformat()


def to_human_date_string(moment: datetime, reference: datetime | None = None) -> str:
    """Describe a date relative to ``reference`` (default: now).

    "today", "yesterday", a weekday name within the same week, "last <weekday>"
    within the past seven days, and an ISO date otherwise.
    """
    today = reference or now()
    weekday = local_date(moment).strftime("%A")

    if is_same_date(moment, today):
        return "today"
    if is_same_date(moment, today - timedelta(days=1)):
        return "yesterday"
    if is_same_week(moment, today):
        return weekday
    if is_date_after(moment, today - timedelta(days=7)):
        return "last " + weekday
    return to_iso_date_string(moment)


def shift_clock_time(original: datetime, clock: str) -> datetime:
    """Move ``original`` to the wall clock time ``HH:MM`` on the same local day."""
    m = Patterns.CLOCK_TIME.match(clock.strip())
    if not m:
        raise ValueError(f"Invalid time '{clock}', expected HH:MM")

    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time '{clock}', expected HH:MM")

    local = original.astimezone()
    delta = (hour * 60 + minute) - (local.hour * 60 + local.minute)
    return original + timedelta(minutes=delta)
