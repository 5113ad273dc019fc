"""Data models for the Toggl mirror."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as sent by the API (``Z`` suffix allowed)."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


def format_timestamp(value: datetime | None) -> str | None:
    """Format a timestamp the way the API expects it (UTC, second precision)."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class EntityKind(Enum):
    """Entity lists held by an account snapshot."""

    TIME_ENTRY = "time_entries"
    PROJECT = "projects"
    TAG = "tags"
    WORKSPACE = "workspaces"

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", " ")


@dataclass(frozen=True)
class Running:
    """A timer that is still ticking."""

    started_at: datetime


@dataclass(frozen=True)
class Stopped:
    """A finished timer with a fixed duration."""

    seconds: int


@dataclass(frozen=True)
class TimeEntry:
    """A time entry from Toggl."""

    id: int
    description: str = ""
    project_id: int | None = None
    tags: tuple[str, ...] = ()
    start: datetime | None = None
    stop: datetime | None = None
    state: Running | Stopped = Stopped(0)
    workspace_id: int | None = None
    duration_only: bool = False

    @property
    def is_running(self) -> bool:
        return isinstance(self.state, Running)

    def elapsed_seconds(self, now: datetime) -> int:
        """Seconds tracked so far; running entries are measured up to ``now``."""
        if isinstance(self.state, Running):
            return max(0, int((now - self.state.started_at).total_seconds()))
        return self.state.seconds

    def has_tag(self, name: str) -> bool:
        return name in self.tags

    def with_tag(self, name: str) -> "TimeEntry":
        if self.has_tag(name):
            return self
        return replace(self, tags=self.tags + (name,))

    def without_tag(self, name: str) -> "TimeEntry":
        return replace(self, tags=tuple(t for t in self.tags if t != name))

    @classmethod
    def from_api(cls, data: dict) -> "TimeEntry":
        start = parse_timestamp(data.get("start"))
        duration = int(data.get("duration") or 0)

        if duration < 0:
            # Old API versions sent -epoch_seconds instead of a start time
            started_at = start or datetime.fromtimestamp(-duration, tz=timezone.utc)
            state: Running | Stopped = Running(started_at)
            start = started_at
        else:
            state = Stopped(duration)

        return cls(
            id=int(data["id"]),
            description=data.get("description") or "",
            project_id=data.get("project_id") or data.get("pid") or None,
            tags=tuple(dict.fromkeys(data.get("tags") or ())),
            start=start,
            stop=parse_timestamp(data.get("stop")),
            state=state,
            workspace_id=data.get("workspace_id") or data.get("wid"),
            duration_only=bool(data.get("duronly", False)),
        )

    def to_api(self) -> dict:
        if isinstance(self.state, Running):
            duration = -1
        else:
            duration = self.state.seconds

        data = {
            "description": self.description,
            "project_id": self.project_id,
            "tags": list(self.tags),
            "start": format_timestamp(self.start),
            "stop": None if self.is_running else format_timestamp(self.stop),
            "duration": duration,
            "workspace_id": self.workspace_id,
            "duronly": self.duration_only,
        }
        if self.id:
            data["id"] = self.id
        return data


@dataclass(frozen=True)
class Project:
    """A Toggl project."""

    id: int
    name: str
    workspace_id: int | None = None
    active: bool = True

    @classmethod
    def from_api(cls, data: dict) -> "Project":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            workspace_id=data.get("workspace_id") or data.get("wid"),
            active=bool(data.get("active", True)),
        )

    def to_api(self) -> dict:
        data = {"name": self.name, "workspace_id": self.workspace_id, "active": self.active}
        if self.id:
            data["id"] = self.id
        return data


@dataclass(frozen=True)
class Tag:
    """A Toggl tag. Time entries refer to tags by name, not id."""

    id: int
    name: str
    workspace_id: int | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Tag":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            workspace_id=data.get("workspace_id") or data.get("wid"),
        )

    def to_api(self) -> dict:
        data = {"name": self.name, "workspace_id": self.workspace_id}
        if self.id:
            data["id"] = self.id
        return data


@dataclass(frozen=True)
class Workspace:
    """A Toggl workspace."""

    id: int
    name: str = ""
    premium: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Workspace":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            premium=bool(data.get("premium", False)),
        )

    def to_api(self) -> dict:
        return {"id": self.id, "name": self.name, "premium": self.premium}


_FROM_API = {
    EntityKind.TIME_ENTRY: TimeEntry.from_api,
    EntityKind.PROJECT: Project.from_api,
    EntityKind.TAG: Tag.from_api,
    EntityKind.WORKSPACE: Workspace.from_api,
}


@dataclass
class AccountSnapshot:
    """Everything fetched from the account in one go."""

    projects: list[Project] = field(default_factory=list)
    time_entries: list[TimeEntry] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    workspaces: list[Workspace] = field(default_factory=list)

    def entities(self, kind: EntityKind) -> list:
        return getattr(self, kind.value)

    @classmethod
    def from_api(cls, data: dict) -> "AccountSnapshot":
        """Build a snapshot from a ``/me?with_related_data=true`` payload.

        The cache file uses the same layout, so this also loads the cache.
        """
        lists = {
            kind.value: [_FROM_API[kind](item) for item in data.get(kind.value) or []]
            for kind in EntityKind
        }
        return cls(**lists)

    def to_dict(self) -> dict:
        return {
            kind.value: [entity.to_api() for entity in self.entities(kind)]
            for kind in EntityKind
        }


@dataclass
class Cache:
    """The local mirror as persisted between invocations."""

    account: AccountSnapshot = field(default_factory=AccountSnapshot)
    workspace_id: int = 0
    last_sync: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Cache":
        return cls(
            account=AccountSnapshot.from_api(data.get("account") or {}),
            workspace_id=int(data.get("workspace") or 0),
            last_sync=parse_timestamp(data.get("time")),
        )

    def to_dict(self) -> dict:
        return {
            "workspace": self.workspace_id,
            "account": self.account.to_dict(),
            "time": format_timestamp(self.last_sync),
        }


@dataclass
class Config:
    """User options, stored in config.json."""

    api_key: str = ""
    rounding: int = 0  # minutes, 0 = no rounding
    default_project_id: int = 0
    duration_only: bool = False
    hours_minutes: bool = False
    ask_for_project: bool = False
    test_mode: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}
