"""Keep the local mirror in step with Toggl.

A Session is everything one invocation works with: options, the cached
account, and a client for the remote service. Reads come from the mirror.
Every successful remote mutation is folded back into the mirror. That is a
cheap in-place patch when the mutation's result tells the whole story. It is
a full refresh when the remote service may have changed other entities as a
side effect.
"""

import logging
import os
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from clients import ApiError, TogglClient
from mirror import Mirror, UnknownEntityError
from models import Cache, Config, EntityKind, Project, Tag, TimeEntry
from report import Report, generate_report
from spans import Span
from utils import data_paths, load_cache, load_config, now, save_cache, save_config, validate_config

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(minutes=5)


class Session:
    """One invocation's view of the account."""

    def __init__(
        self,
        config: Config,
        cache: Cache,
        config_path: str,
        cache_path: str,
        client: TogglClient | None = None,
        clock: Callable[[], datetime] = now,
    ):
        self.config = config
        self.cache = cache
        self.mirror = Mirror(cache)
        self.config_path = config_path
        self.cache_path = cache_path
        self.clock = clock
        self._client = client

    @classmethod
    def open(cls, data_dir: str | None = None, **kwargs) -> "Session":
        """Load config and cache from the data directory."""
        config_path, cache_path = data_paths(data_dir)
        logger.debug("Using config file %s", config_path)
        logger.debug("Using cache file %s", cache_path)
        return cls(load_config(config_path), load_cache(cache_path), config_path, cache_path, **kwargs)

    @property
    def client(self) -> TogglClient:
        if self._client is None:
            if not self.config.api_key:
                raise ApiError("Toggl: Not logged in. Run 'login' or 'token' first!")
            self._client = TogglClient(self.config.api_key)
        return self._client

    @property
    def is_logged_in(self) -> bool:
        return bool(self.config.api_key)

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------

    def is_stale(self) -> bool:
        last_sync = self.cache.last_sync
        return last_sync is None or self.clock() - last_sync >= STALE_AFTER

    def ensure_fresh(self) -> bool:
        """Refresh the mirror if it is older than STALE_AFTER.

        Returns:
            True if a refresh happened.

        Raises:
            ApiError: If the refresh failed. The stale mirror is left intact
                and can still be read.
        """
        if self.config.test_mode:
            logger.info("Test mode is active; not auto-refreshing")
            return False

        if not self.is_stale():
            return False

        logger.info("Refreshing cache...")
        self.full_refresh()
        return True

    def full_refresh(self) -> None:
        """Replace the whole mirror with a fresh copy of the account."""
        account = self.client.fetch_account()
        logger.debug(
            "Fetched account: %d entries, %d projects, %d tags, %d workspaces",
            len(account.time_entries),
            len(account.projects),
            len(account.tags),
            len(account.workspaces),
        )

        self.cache.account = account
        self.cache.last_sync = self.clock()
        self.cache.workspace_id = account.workspaces[0].id if account.workspaces else 0
        self.save()

    def save(self) -> None:
        save_cache(self.cache_path, self.cache)

    # ------------------------------------------------------------------
    # Patching
    # ------------------------------------------------------------------

    def apply_patch(self, kind: EntityKind, entity_id: int, value=None) -> None:
        """Fold one remote mutation result into the mirror and persist it.

        ``value`` replaces the entity with ``entity_id``, or is appended if
        there is none. ``None`` removes the entity.
        """
        index = self.mirror.index_of(kind, entity_id)

        if value is None:
            if index is None:
                raise UnknownEntityError(kind, entity_id)
            logger.debug("Removing %s %d from mirror", kind.label, entity_id)
            self.mirror.remove_at(kind, index)
        elif index is None:
            logger.debug("Appending %s %d to mirror", kind.label, entity_id)
            self.mirror.append(kind, value)
        else:
            logger.debug("Replacing %s %d in mirror", kind.label, entity_id)
            self.mirror.replace_at(kind, index, value)

        self.save()

    def _settle_timer(self, previously_running: TimeEntry | None, result: TimeEntry) -> None:
        # Starting a timer stops whatever else was running on the remote side,
        # and that change is not part of the result. Refetch instead of patching.
        if previously_running is not None and previously_running.id != result.id:
            logger.debug(
                "Timer %d was running before %d started; refreshing", previously_running.id, result.id
            )
            self.full_refresh()
        else:
            self.apply_patch(EntityKind.TIME_ENTRY, result.id, result)

    def apply_toggle(self, entry_id: int) -> TimeEntry:
        """Stop the entry if it is running, otherwise continue it."""
        entry = self.mirror.require(EntityKind.TIME_ENTRY, entry_id)
        running = self.mirror.running_entry()

        if entry.is_running:
            result = self.client.stop_time_entry(entry)
        else:
            result = self.client.continue_time_entry(entry, self.config.duration_only)

        self._settle_timer(running, result)
        return result

    # ------------------------------------------------------------------
    # Time entries
    # ------------------------------------------------------------------

    def _workspace_id(self, workspace_id: int | None = None) -> int:
        workspace_id = workspace_id or self.cache.workspace_id
        if not workspace_id:
            raise UnknownEntityError(
                EntityKind.WORKSPACE, 0, "No workspace known yet. Run 'sync' first."
            )
        return workspace_id

    def start_time_entry(
        self, description: str, project_id: int | None = None, tags: tuple[str, ...] = ()
    ) -> TimeEntry:
        """Start a new timer, using the default project if none is given."""
        if project_id is None and self.config.default_project_id:
            project_id = self.config.default_project_id
        if project_id:
            self.mirror.require(EntityKind.PROJECT, project_id)

        running = self.mirror.running_entry()
        result = self.client.start_time_entry(
            description, self._workspace_id(), project_id=project_id or None, tags=tags
        )
        logger.debug("Started entry %d", result.id)
        self._settle_timer(running, result)
        return result

    def stop_time_entry(self, entry_id: int) -> TimeEntry:
        entry = self.mirror.require(EntityKind.TIME_ENTRY, entry_id)
        if not entry.is_running:
            raise ValueError(f"Time entry '{entry.description}' is not running")
        return self.apply_toggle(entry_id)

    def continue_time_entry(self, entry_id: int) -> TimeEntry:
        entry = self.mirror.require(EntityKind.TIME_ENTRY, entry_id)
        if entry.is_running:
            raise ValueError(f"Time entry '{entry.description}' is already running")
        return self.apply_toggle(entry_id)

    def update_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self.mirror.require(EntityKind.TIME_ENTRY, entry.id)
        if entry.project_id:
            self.mirror.require(EntityKind.PROJECT, entry.project_id)
        for name in entry.tags:
            if self.mirror.find_tag_by_name(name) is None:
                raise UnknownEntityError(EntityKind.TAG, name)

        result = self.client.update_time_entry(entry)
        self.apply_patch(EntityKind.TIME_ENTRY, result.id, result)
        return result

    def delete_time_entry(self, entry_id: int) -> TimeEntry:
        entry = self.mirror.require(EntityKind.TIME_ENTRY, entry_id)
        self.client.delete_time_entry(entry)
        self.apply_patch(EntityKind.TIME_ENTRY, entry_id, None)
        return entry

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, name: str, workspace_id: int | None = None) -> Project:
        project = Project(id=0, name=name, workspace_id=self._workspace_id(workspace_id))
        result = self.client.create_project(project)
        self.apply_patch(EntityKind.PROJECT, result.id, result)
        return result

    def update_project(self, project: Project) -> Project:
        self.mirror.require(EntityKind.PROJECT, project.id)
        result = self.client.update_project(project)
        self.apply_patch(EntityKind.PROJECT, result.id, result)
        return result

    def rename_project(self, project_id: int, name: str) -> Project:
        project = self.mirror.require(EntityKind.PROJECT, project_id)
        return self.update_project(replace(project, name=name))

    def delete_project(self, project_id: int) -> Project:
        project = self.mirror.require(EntityKind.PROJECT, project_id)
        self.client.delete_project(project)
        self.apply_patch(EntityKind.PROJECT, project_id, None)
        if self.config.default_project_id == project_id:
            self.update_options(default_project_id=0)
        return project

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def create_tag(self, name: str, workspace_id: int | None = None) -> Tag:
        tag = Tag(id=0, name=name, workspace_id=self._workspace_id(workspace_id))
        result = self.client.create_tag(tag)
        self.apply_patch(EntityKind.TAG, result.id, result)
        return result

    def update_tag(self, tag: Tag) -> Tag:
        """Update a tag, then refetch everything.

        Entries refer to tags by name, so a rename can touch any number of
        them.
        """
        self.mirror.require(EntityKind.TAG, tag.id)
        result = self.client.update_tag(tag)
        self.full_refresh()
        return result

    def rename_tag(self, tag_id: int, name: str) -> Tag:
        tag = self.mirror.require(EntityKind.TAG, tag_id)
        return self.update_tag(replace(tag, name=name))

    def delete_tag(self, tag_id: int) -> Tag:
        tag = self.mirror.require(EntityKind.TAG, tag_id)
        self.client.delete_tag(tag)
        # Same fan-out as a rename: entries lose the tag by name
        self.full_refresh()
        return tag

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def report(
        self, span: Span, project_id: int | None = None, description: str | None = None
    ) -> Report:
        return generate_report(
            self.mirror,
            span,
            rounding=self.config.rounding,
            now=self.clock(),
            project_id=project_id,
            description=description,
        )

    # ------------------------------------------------------------------
    # Options and account
    # ------------------------------------------------------------------

    def update_options(self, **changes) -> Config:
        """Change options and save them.

        Raises:
            ValueError: If the new options do not validate.
        """
        config = replace(self.config, **changes)
        errors = validate_config(config)
        if errors:
            raise ValueError("; ".join(errors))

        self.config = config
        save_config(self.config_path, config)
        return config

    def set_default_project(self, project_id: int) -> Project:
        project = self.mirror.require(EntityKind.PROJECT, project_id)
        self.update_options(default_project_id=project_id)
        return project

    def login(self, email: str, password: str) -> None:
        token = TogglClient.fetch_api_token(email, password)
        self.set_token(token)

    def set_token(self, token: str) -> None:
        self.update_options(api_key=token)
        self._client = None

    def logout(self) -> None:
        self.update_options(api_key="")
        self._client = None

    def reset(self) -> list[str]:
        """Delete the config and cache files. Returns the paths that could not be removed."""
        failed = []
        for path in (self.config_path, self.cache_path):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
                failed.append(path)

        self.config = Config()
        self.cache = Cache()
        self.mirror = Mirror(self.cache)
        self._client = None
        return failed
