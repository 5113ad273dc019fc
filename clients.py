"""API client for Toggl Track."""

import logging
from dataclasses import replace
from datetime import timedelta

import requests

from models import AccountSnapshot, Project, Running, Tag, TimeEntry
from utils import is_same_date, now

logger = logging.getLogger(__name__)

BASE_URL = "https://api.track.toggl.com/api/v9"
APP_NAME = "toggl-mirror"


class ApiError(Exception):
    """User-friendly API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _handle_api_error(response: requests.Response, service: str) -> str:
    """Convert HTTP errors to user-friendly messages."""
    status = response.status_code

    messages = {
        400: f"{service}: Request rejected: {response.text.strip()[:200]}",
        401: f"{service}: Authentication failed. Check your API token!",
        403: f"{service}: Access denied. Check your permissions or API token!",
        404: f"{service}: Resource not found. It may have been deleted elsewhere.",
        429: f"{service}: Too many requests. Wait a moment and try again.",
        500: f"{service}: Server error. The service may be temporarily unavailable.",
        502: f"{service}: Bad gateway. The service may be temporarily unavailable.",
        503: f"{service}: Service unavailable. Try again later.",
    }

    return messages.get(status, f"{service}: HTTP {status} - {response.reason}")


class TogglClient:
    """Client for the Toggl Track REST API."""

    def __init__(self, api_key: str, base_url: str = BASE_URL):
        self.api_key = api_key
        self.base_url = base_url

    def _request(self, method: str, path: str, payload: dict | None = None, auth=None):
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            r = requests.request(
                method,
                url,
                auth=auth or (self.api_key, "api_token"),
                headers={"Accept": "application/json"},
                json=payload,
                timeout=10,
            )
        except requests.exceptions.ConnectionError:
            raise ApiError("Toggl: Cannot connect to api.track.toggl.com. Check your network!")
        except requests.exceptions.Timeout:
            raise ApiError("Toggl: Connection timed out. The server may be slow.")

        if not r.ok:
            raise ApiError(_handle_api_error(r, "Toggl"), r.status_code)
        if not r.content:
            return None
        return r.json()

    @classmethod
    def fetch_api_token(cls, email: str, password: str, base_url: str = BASE_URL) -> str:
        """Exchange login credentials for the account's API token."""
        client = cls("", base_url)
        data = client._request("GET", "/me", auth=(email, password))
        return data["api_token"]

    def fetch_account(self) -> AccountSnapshot:
        """Fetch the user with projects, tags, workspaces and recent time entries."""
        data = self._request("GET", "/me?with_related_data=true")
        return AccountSnapshot.from_api(data or {})

    # ------------------------------------------------------------------
    # Time entries
    # ------------------------------------------------------------------

    @staticmethod
    def _entry_path(entry: TimeEntry) -> str:
        if not entry.workspace_id:
            raise ApiError(f"Toggl: Time entry '{entry.description}' has no workspace.")
        return f"/workspaces/{entry.workspace_id}/time_entries"

    def create_time_entry(self, entry: TimeEntry) -> TimeEntry:
        payload = entry.to_api()
        payload["created_with"] = APP_NAME
        data = self._request("POST", self._entry_path(entry), payload)
        return TimeEntry.from_api(data)

    def update_time_entry(self, entry: TimeEntry) -> TimeEntry:
        data = self._request("PUT", f"{self._entry_path(entry)}/{entry.id}", entry.to_api())
        return TimeEntry.from_api(data)

    def delete_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self._request("DELETE", f"{self._entry_path(entry)}/{entry.id}")
        return entry

    def stop_time_entry(self, entry: TimeEntry) -> TimeEntry:
        data = self._request("PATCH", f"{self._entry_path(entry)}/{entry.id}/stop")
        return TimeEntry.from_api(data)

    def start_time_entry(
        self,
        description: str,
        workspace_id: int,
        project_id: int | None = None,
        tags: tuple[str, ...] = (),
    ) -> TimeEntry:
        started = now()
        entry = TimeEntry(
            id=0,
            description=description,
            project_id=project_id,
            tags=tags,
            start=started,
            state=Running(started),
            workspace_id=workspace_id,
        )
        return self.create_time_entry(entry)

    def continue_time_entry(self, entry: TimeEntry, duration_only: bool) -> TimeEntry:
        """Start tracking an entry's task again.

        With ``duration_only`` an entry from today is resumed in place: its
        start moves back by the time already tracked, so the id stays the
        same. Otherwise a new entry is created with the same details.
        """
        current = now()

        if duration_only and entry.start is not None and is_same_date(entry.start, current):
            started = current - timedelta(seconds=entry.elapsed_seconds(current))
            resumed = replace(entry, start=started, stop=None, state=Running(started))
            return self.update_time_entry(resumed)

        fresh = replace(
            entry, id=0, start=current, stop=None, state=Running(current),
            duration_only=duration_only,
        )
        return self.create_time_entry(fresh)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> Project:
        data = self._request("POST", f"/workspaces/{project.workspace_id}/projects", project.to_api())
        return Project.from_api(data)

    def update_project(self, project: Project) -> Project:
        data = self._request(
            "PUT", f"/workspaces/{project.workspace_id}/projects/{project.id}", project.to_api()
        )
        return Project.from_api(data)

    def delete_project(self, project: Project) -> Project:
        self._request("DELETE", f"/workspaces/{project.workspace_id}/projects/{project.id}")
        return project

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def create_tag(self, tag: Tag) -> Tag:
        data = self._request("POST", f"/workspaces/{tag.workspace_id}/tags", tag.to_api())
        return Tag.from_api(data)

    def update_tag(self, tag: Tag) -> Tag:
        data = self._request("PUT", f"/workspaces/{tag.workspace_id}/tags/{tag.id}", tag.to_api())
        return Tag.from_api(data)

    def delete_tag(self, tag: Tag) -> Tag:
        self._request("DELETE", f"/workspaces/{tag.workspace_id}/tags/{tag.id}")
        return tag
