"""Local mirror of the Toggl account.

Lookups are linear scans; accounts hold a few hundred entries at most.
Entities are frozen, so every change replaces a whole value in its slot.
"""

from models import Cache, EntityKind, Project, Tag, TimeEntry, Workspace


class UnknownEntityError(LookupError):
    """Reference to an id or name the mirror does not know."""

    def __init__(self, kind: EntityKind, key: int | str, message: str | None = None):
        if message is None:
            if isinstance(key, int):
                message = f"Invalid {kind.label} ID {key}"
            else:
                message = f"Invalid {kind.label} '{key}'"
        super().__init__(message)
        self.kind = kind
        self.key = key


def newest_first(entries: list[TimeEntry]) -> list[TimeEntry]:
    dated = [e for e in entries if e.start is not None]
    undated = [e for e in entries if e.start is None]
    return sorted(dated, key=lambda e: e.start, reverse=True) + undated


class Mirror:
    """Read and patch access to the cached account snapshot."""

    def __init__(self, cache: Cache):
        self.cache = cache

    @property
    def account(self):
        return self.cache.account

    # ------------------------------------------------------------------
    # Positional primitives
    # ------------------------------------------------------------------

    def index_of(self, kind: EntityKind, entity_id: int) -> int | None:
        for i, entity in enumerate(self.account.entities(kind)):
            if entity.id == entity_id:
                return i
        return None

    def replace_at(self, kind: EntityKind, index: int, value) -> None:
        self.account.entities(kind)[index] = value

    def append(self, kind: EntityKind, value) -> None:
        self.account.entities(kind).append(value)

    def remove_at(self, kind: EntityKind, index: int) -> None:
        """Remove by swapping the last element into ``index``; order is not kept."""
        entities = self.account.entities(kind)
        entities[index] = entities[-1]
        entities.pop()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find(self, kind: EntityKind, entity_id: int):
        index = self.index_of(kind, entity_id)
        if index is None:
            return None
        return self.account.entities(kind)[index]

    def require(self, kind: EntityKind, entity_id: int):
        entity = self.find(kind, entity_id)
        if entity is None:
            raise UnknownEntityError(kind, entity_id)
        return entity

    def find_time_entry(self, entry_id: int) -> TimeEntry | None:
        return self.find(EntityKind.TIME_ENTRY, entry_id)

    def find_project(self, project_id: int) -> Project | None:
        return self.find(EntityKind.PROJECT, project_id)

    def find_tag(self, tag_id: int) -> Tag | None:
        return self.find(EntityKind.TAG, tag_id)

    def find_workspace(self, workspace_id: int) -> Workspace | None:
        return self.find(EntityKind.WORKSPACE, workspace_id)

    def find_project_by_name(self, name: str) -> Project | None:
        for project in self.account.projects:
            if project.name == name:
                return project
        return None

    def find_tag_by_name(self, name: str) -> Tag | None:
        for tag in self.account.tags:
            if tag.name == name:
                return tag
        return None

    def projects_by_id(self) -> dict[int, Project]:
        return {project.id: project for project in self.account.projects}

    def running_entry(self) -> TimeEntry | None:
        """The entry whose timer is ticking, if any."""
        for entry in self.account.time_entries:
            if entry.is_running:
                return entry
        return None

    def entries_matching(self, query: str) -> list[TimeEntry]:
        """Entries whose description contains ``query`` (case-insensitive), newest first."""
        needle = query.lower()
        return newest_first(
            [e for e in self.account.time_entries if needle in e.description.lower()]
        )

    def latest_entries_for_project(self, project_id: int) -> list[TimeEntry]:
        """Most recent entry per description for a project, newest first."""
        latest: dict[str, TimeEntry] = {}
        for entry in self.account.time_entries:
            if entry.project_id != project_id:
                continue
            seen = latest.get(entry.description)
            if seen is None or (
                entry.start is not None and seen.start is not None and entry.start > seen.start
            ):
                latest[entry.description] = entry
        return newest_first(list(latest.values()))

    def entries_for_tag(self, name: str) -> list[TimeEntry]:
        return newest_first([e for e in self.account.time_entries if e.has_tag(name)])

    def project_has_time_entries(self, project_id: int) -> bool:
        return any(e.project_id == project_id for e in self.account.time_entries)

    def tag_has_time_entries(self, name: str) -> bool:
        return any(e.has_tag(name) for e in self.account.time_entries)
