"""Shared pytest fixtures for the Toggl mirror tests."""

import itertools
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from models import (
    AccountSnapshot,
    Cache,
    Config,
    EntityKind,
    Project,
    Running,
    Stopped,
    Tag,
    TimeEntry,
    Workspace,
)
from sync import Session
from utils import is_same_date

# A Wednesday afternoon, local time
NOW = datetime(2026, 10, 14, 15, 0).astimezone()

WORKSPACE_ID = 1
PROJECT_A = 10
PROJECT_B = 20


def stopped_entry(entry_id, description, hours_ago, seconds, project_id=None, tags=()):
    start = NOW - timedelta(hours=hours_ago)
    return TimeEntry(
        id=entry_id,
        description=description,
        project_id=project_id,
        tags=tuple(tags),
        start=start,
        stop=start + timedelta(seconds=seconds),
        state=Stopped(seconds),
        workspace_id=WORKSPACE_ID,
    )


def running_entry(entry_id, description, minutes_ago, project_id=None, tags=()):
    start = NOW - timedelta(minutes=minutes_ago)
    return TimeEntry(
        id=entry_id,
        description=description,
        project_id=project_id,
        tags=tuple(tags),
        start=start,
        state=Running(start),
        workspace_id=WORKSPACE_ID,
    )


def copy_account(account: AccountSnapshot) -> AccountSnapshot:
    return AccountSnapshot(
        projects=list(account.projects),
        time_entries=list(account.time_entries),
        tags=list(account.tags),
        workspaces=list(account.workspaces),
    )


class FakeToggl:
    """In-memory stand-in for TogglClient.

    Like the real service, starting or continuing a timer stops whichever
    timer was running, without saying so in the result.
    """

    def __init__(self, account: AccountSnapshot, clock=lambda: NOW):
        self.account = copy_account(account)
        self.clock = clock
        self.ids = itertools.count(9000)
        self.calls: list[str] = []
        self.fail: Exception | None = None

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.fail is not None:
            raise self.fail

    def _store(self, kind: EntityKind, value) -> None:
        entities = self.account.entities(kind)
        for i, entity in enumerate(entities):
            if entity.id == value.id:
                entities[i] = value
                return
        entities.append(value)

    def _remove(self, kind: EntityKind, entity_id: int) -> None:
        entities = self.account.entities(kind)
        entities[:] = [e for e in entities if e.id != entity_id]

    def _stop_running(self) -> None:
        now = self.clock()
        for i, entry in enumerate(self.account.time_entries):
            if entry.is_running:
                self.account.time_entries[i] = replace(
                    entry, stop=now, state=Stopped(entry.elapsed_seconds(now))
                )

    def _find_entry(self, entry_id: int) -> TimeEntry:
        return next(e for e in self.account.time_entries if e.id == entry_id)

    def fetch_account(self) -> AccountSnapshot:
        self._call("fetch_account")
        return copy_account(self.account)

    def create_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self._call("create_time_entry")
        if entry.is_running:
            self._stop_running()
        created = replace(entry, id=next(self.ids))
        self._store(EntityKind.TIME_ENTRY, created)
        return created

    def start_time_entry(self, description, workspace_id, project_id=None, tags=()):
        now = self.clock()
        return self.create_time_entry(
            TimeEntry(
                id=0,
                description=description,
                project_id=project_id,
                tags=tuple(tags),
                start=now,
                state=Running(now),
                workspace_id=workspace_id,
            )
        )

    def continue_time_entry(self, entry: TimeEntry, duration_only: bool) -> TimeEntry:
        now = self.clock()
        if duration_only and entry.start is not None and is_same_date(entry.start, now):
            # Resumed in place: same id, start moved back by the time already tracked
            self._call("update_time_entry")
            self._stop_running()
            current = self._find_entry(entry.id)
            started = now - timedelta(seconds=current.elapsed_seconds(now))
            resumed = replace(current, start=started, stop=None, state=Running(started))
            self._store(EntityKind.TIME_ENTRY, resumed)
            return resumed
        return self.create_time_entry(
            replace(entry, id=0, start=now, stop=None, state=Running(now))
        )

    def stop_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self._call("stop_time_entry")
        now = self.clock()
        current = self._find_entry(entry.id)
        stopped = replace(current, stop=now, state=Stopped(current.elapsed_seconds(now)))
        self._store(EntityKind.TIME_ENTRY, stopped)
        return stopped

    def update_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self._call("update_time_entry")
        self._store(EntityKind.TIME_ENTRY, entry)
        return entry

    def delete_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self._call("delete_time_entry")
        self._remove(EntityKind.TIME_ENTRY, entry.id)
        return entry

    def create_project(self, project: Project) -> Project:
        self._call("create_project")
        created = replace(project, id=next(self.ids))
        self._store(EntityKind.PROJECT, created)
        return created

    def update_project(self, project: Project) -> Project:
        self._call("update_project")
        self._store(EntityKind.PROJECT, project)
        return project

    def delete_project(self, project: Project) -> Project:
        self._call("delete_project")
        self._remove(EntityKind.PROJECT, project.id)
        return project

    def create_tag(self, tag: Tag) -> Tag:
        self._call("create_tag")
        created = replace(tag, id=next(self.ids))
        self._store(EntityKind.TAG, created)
        return created

    def update_tag(self, tag: Tag) -> Tag:
        self._call("update_tag")
        old = next(t for t in self.account.tags if t.id == tag.id)
        self._store(EntityKind.TAG, tag)
        for i, entry in enumerate(self.account.time_entries):
            if entry.has_tag(old.name):
                self.account.time_entries[i] = entry.without_tag(old.name).with_tag(tag.name)
        return tag

    def delete_tag(self, tag: Tag) -> Tag:
        self._call("delete_tag")
        self._remove(EntityKind.TAG, tag.id)
        for i, entry in enumerate(self.account.time_entries):
            self.account.time_entries[i] = entry.without_tag(tag.name)
        return tag


@pytest.fixture(autouse=True)
def isolate_data_dir(tmp_path, monkeypatch) -> None:
    """Keep tests away from a real config.json / cache.json."""
    monkeypatch.setenv("TOGGL_MIRROR_DIR", str(tmp_path / "data"))


@pytest.fixture
def account() -> AccountSnapshot:
    return AccountSnapshot(
        projects=[
            Project(id=PROJECT_A, name="Alpha", workspace_id=WORKSPACE_ID),
            Project(id=PROJECT_B, name="Beta", workspace_id=WORKSPACE_ID),
        ],
        time_entries=[
            stopped_entry(1, "coding", hours_ago=6, seconds=2 * 3600, project_id=PROJECT_A),
            stopped_entry(2, "coding", hours_ago=3, seconds=3600, project_id=PROJECT_A,
                          tags=["billable"]),
            stopped_entry(3, "email", hours_ago=1, seconds=1800, project_id=PROJECT_B),
            stopped_entry(4, "planning", hours_ago=30, seconds=900),
        ],
        tags=[Tag(id=100, name="billable", workspace_id=WORKSPACE_ID)],
        workspaces=[Workspace(id=WORKSPACE_ID, name="Home")],
    )


@pytest.fixture
def fake_toggl(account) -> FakeToggl:
    return FakeToggl(account)


@pytest.fixture
def session(tmp_path, account, fake_toggl) -> Session:
    """A logged-in session with a fresh mirror that matches the fake service."""
    cache = Cache(account=copy_account(account), workspace_id=WORKSPACE_ID, last_sync=NOW)
    return Session(
        Config(api_key="secret"),
        cache,
        config_path=str(tmp_path / "config.json"),
        cache_path=str(tmp_path / "cache.json"),
        client=fake_toggl,
        clock=lambda: NOW,
    )
