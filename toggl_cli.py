"""
Query and update Toggl time tracking from the command line.

Reads come from a local mirror of the account (cache.json) that is refreshed
at most every five minutes. Changes go to Toggl and are folded back into the
mirror.

Usage:
    # Show the running timer and today's total
    python toggl_cli.py status

    # Report for this week, then drill into a project
    python toggl_cli.py report week
    python toggl_cli.py report week --project 1234

    # Start, toggle and edit timers
    python toggl_cli.py start "Write docs" --project 1234
    python toggl_cli.py toggle 987654
    python toggl_cli.py edit 987654 --start 9:15
"""

import argparse
import getpass
import logging
import shlex
from dataclasses import replace
from datetime import timedelta

from clients import ApiError
from durations import CEIL, format_duration, parse_duration, round_duration
from mirror import UnknownEntityError
from models import EntityKind, Running, Stopped, TimeEntry
from report import GROUP_BY_DAY, GROUP_BY_PROJECT, NO_PROJECT_ID, ReportQuery, build_report_view
from spans import get_span
from sync import Session
from utils import shift_clock_time, to_human_date_string

logger = logging.getLogger(__name__)


# ============================================================================
# Helpers
# ============================================================================


def refresh_if_stale(session: Session) -> None:
    """Refresh before listing; a failed refresh leaves the old data usable."""
    try:
        if session.ensure_fresh():
            print("[*] Refreshed from Toggl")
    except ApiError as e:
        logger.warning("Error refreshing cache: %s", e)
        print(f"[!] Could not refresh, showing cached data: {e}")


def confirm(prompt: str) -> bool:
    print(f"  {prompt} [y/N]: ", end="")
    try:
        answer = input().strip().lower()
    except EOFError:
        return False
    return answer in ("y", "yes")


def ask_for_project(session: Session) -> int | None:
    """Interactively pick a project for a new timer."""
    projects = sorted(session.mirror.account.projects, key=lambda p: p.name.lower())
    if not projects:
        return None

    print()
    for i, project in enumerate(projects, 1):
        print(f"  {i:>3}. {project.name}")
    print()
    print("  Choose a project number or press ENTER for none: ", end="")

    choice = input().strip()
    if not choice:
        return None
    if not choice.isdigit() or not 1 <= int(choice) <= len(projects):
        print(f"  [!] Invalid choice '{choice}', starting without a project")
        return None
    return projects[int(choice) - 1].id


def describe_entry(session: Session, entry: TimeEntry) -> str:
    """One-line summary of a time entry."""
    current = session.clock()
    hours = round_duration(entry.elapsed_seconds(current), session.config.rounding, CEIL)
    line = f"{format_duration(hours, session.config.hours_minutes)}"

    if entry.start is not None:
        start = entry.start.astimezone()
        line += f", {to_human_date_string(start, current)} from {start.strftime('%H:%M')} to "
        if entry.is_running:
            line += "now"
        elif entry.stop is not None:
            line += entry.stop.astimezone().strftime("%H:%M")

    project = session.mirror.find_project(entry.project_id) if entry.project_id else None
    if project is not None:
        line = f"[{project.name}] {line}"
    if entry.tags:
        line += f" #{' #'.join(entry.tags)}"
    return line


def print_entries(session: Session, entries: list[TimeEntry]) -> None:
    if not entries:
        print("    No time entries")
        return
    for entry in entries:
        marker = ">" if entry.is_running else " "
        print(f"  {marker} {entry.id:>12}  {entry.description or '(no description)'}")
        print(f"                  {describe_entry(session, entry)}")


def resolve_project(session: Session, value: str | None) -> int | None:
    """Turn a project ID or name into an ID; '0' stands for no project."""
    if value is None:
        return None
    if value.isdigit():
        project_id = int(value)
        if project_id != NO_PROJECT_ID:
            session.mirror.require(EntityKind.PROJECT, project_id)
        return project_id
    project = session.mirror.find_project_by_name(value)
    if project is None:
        raise UnknownEntityError(EntityKind.PROJECT, value)
    return project.id


def query_command(query: ReportQuery) -> str:
    """The report command line that shows ``query``."""
    parts = ["report"]
    if query.span is not None:
        parts.append(shlex.quote(query.span.name if query.span.name != "this week" else "week"))
    if query.project_id is not None:
        parts += ["--project", str(query.project_id)]
    if query.description is not None:
        parts += ["--description", shlex.quote(query.description)]
    if query.grouping == GROUP_BY_DAY:
        parts.append("--by-day")
    return " ".join(parts)


# ============================================================================
# Commands
# ============================================================================


def cmd_login(session: Session, args) -> int:
    print("  Email address: ", end="")
    email = input().strip()
    password = getpass.getpass("  Password: ")
    session.login(email, password)
    print("[+] Login successful!")
    session.full_refresh()
    return 0


def cmd_token(session: Session, args) -> int:
    token = args.token or getpass.getpass("  API token: ").strip()
    if not token:
        print("[!] No token entered")
        return 1
    session.set_token(token)
    print("[+] Token saved!")
    return 0


def cmd_logout(session: Session, args) -> int:
    session.logout()
    print("[+] You are now logged out of Toggl")
    return 0


def cmd_reset(session: Session, args) -> int:
    if not args.yes and not confirm("Erase all local data?"):
        return 0
    failed = session.reset()
    if failed:
        print("[!] One or more data files could not be removed")
        return 1
    print("[+] Local data cleared")
    return 0


def cmd_sync(session: Session, args) -> int:
    session.full_refresh()
    print("[+] Synchronized!")
    return 0


def cmd_status(session: Session, args) -> int:
    refresh_if_stale(session)

    entry = session.mirror.running_entry()
    if entry is None:
        print("[*] No timers currently running")
    else:
        print(f"[*] Running: {entry.description or '(no description)'} ({entry.id})")
        print(f"    {describe_entry(session, entry)}")

    report = session.report(get_span("today", session.clock()))
    print(
        f"[*] Total time for today: "
        f"{format_duration(report.total, session.config.hours_minutes)}"
    )
    return 0


def cmd_timers(session: Session, args) -> int:
    refresh_if_stale(session)

    if args.project is not None:
        entries = session.mirror.latest_entries_for_project(resolve_project(session, args.project) or None)
    elif args.tag is not None:
        if session.mirror.find_tag_by_name(args.tag) is None:
            raise UnknownEntityError(EntityKind.TAG, args.tag)
        entries = session.mirror.entries_for_tag(args.tag)
    else:
        entries = session.mirror.entries_matching(args.query or "")

    print_entries(session, entries[: args.limit])
    return 0


def cmd_start(session: Session, args) -> int:
    project_id = resolve_project(session, args.project)
    if (
        project_id is None
        and session.config.ask_for_project
        and not session.config.default_project_id
    ):
        project_id = ask_for_project(session)

    entry = session.start_time_entry(args.description, project_id, tuple(args.tag))
    print(f"[+] Started '{entry.description}' ({entry.id})")
    return 0


def cmd_toggle(session: Session, args) -> int:
    before = session.mirror.require(EntityKind.TIME_ENTRY, args.id)
    entry = session.apply_toggle(args.id)
    verb = "Stopped" if before.is_running else "Started"
    print(f"[+] {verb} '{entry.description}' ({entry.id})")
    return 0


def cmd_stop(session: Session, args) -> int:
    running = session.mirror.running_entry()
    if running is None:
        print("[*] No timers currently running")
        return 0
    entry = session.stop_time_entry(running.id)
    print(f"[+] Stopped '{entry.description}'")
    return 0


def edited_entry(entry: TimeEntry, args, project_id: int | None = None) -> TimeEntry:
    """Apply the edit options to a copy of ``entry``."""
    updated = entry

    if args.description is not None:
        updated = replace(updated, description=args.description)

    if project_id is not None:
        updated = replace(updated, project_id=project_id or None)

    for name in args.tag:
        updated = updated.with_tag(name)
    for name in args.untag:
        updated = updated.without_tag(name)

    if args.start is not None:
        if updated.start is None:
            raise ValueError("Entry has no start time to change")
        new_start = shift_clock_time(updated.start, args.start)
        if isinstance(updated.state, Running):
            updated = replace(updated, start=new_start, state=Running(new_start))
        else:
            # Keep the duration; the stop time moves along
            seconds = updated.state.seconds
            updated = replace(updated, start=new_start, stop=new_start + timedelta(seconds=seconds))

    if args.stop is not None or args.duration is not None:
        if updated.is_running:
            raise ValueError("Stop the timer before changing its stop time or duration")
        if updated.start is None:
            raise ValueError("Entry has no start time")

        if args.stop is not None:
            reference = updated.stop or updated.start
            new_stop = shift_clock_time(reference, args.stop)
            seconds = int((new_stop - updated.start).total_seconds())
        else:
            seconds = parse_duration(args.duration) * 36

        if seconds < 0:
            raise ValueError("Stop time must not be before start time")
        updated = replace(
            updated,
            stop=updated.start + timedelta(seconds=seconds),
            state=Stopped(seconds),
        )

    return updated


def cmd_edit(session: Session, args) -> int:
    entry = session.mirror.require(EntityKind.TIME_ENTRY, args.id)
    updated = edited_entry(entry, args, resolve_project(session, args.project))
    if updated == entry:
        print("[*] Nothing to change")
        return 0

    result = session.update_time_entry(updated)
    print(f"[+] Updated time entry '{result.description}'")
    print(f"    {describe_entry(session, result)}")
    return 0


def cmd_delete(session: Session, args) -> int:
    kind = {"timer": EntityKind.TIME_ENTRY, "project": EntityKind.PROJECT, "tag": EntityKind.TAG}[
        args.kind
    ]
    entity = session.mirror.require(kind, args.id)
    name = entity.description if kind == EntityKind.TIME_ENTRY else entity.name

    if not args.yes and not confirm(f"Are you sure you want to delete {kind.label} '{name}'?"):
        return 0

    if kind == EntityKind.TIME_ENTRY:
        session.delete_time_entry(args.id)
    elif kind == EntityKind.PROJECT:
        session.delete_project(args.id)
    else:
        session.delete_tag(args.id)

    print(f"[+] Deleted {name}")
    return 0


def cmd_projects(session: Session, args) -> int:
    if args.create:
        project = session.create_project(args.create)
        print(f'[+] Created project "{project.name}" ({project.id})')
        return 0

    if args.rename:
        project_id, name = args.rename
        project = session.rename_project(int(project_id), name)
        print(f'[+] Updated project "{project.name}"')
        return 0

    if args.default is not None:
        project = session.set_default_project(args.default)
        print(f'[+] Default project is now "{project.name}"')
        return 0

    refresh_if_stale(session)
    running = session.mirror.running_entry()
    needle = (args.query or "").lower()
    projects = [p for p in session.mirror.account.projects if needle in p.name.lower()]

    if not projects:
        print("    No matching projects")
        return 0

    for project in sorted(projects, key=lambda p: p.name.lower()):
        marker = ">" if running is not None and running.project_id == project.id else " "
        default = " (default)" if project.id == session.config.default_project_id else ""
        unused = "" if session.mirror.project_has_time_entries(project.id) else " (unused)"
        print(f"  {marker} {project.id:>12}  {project.name}{default}{unused}")
    return 0


def cmd_tags(session: Session, args) -> int:
    if args.create:
        tag = session.create_tag(args.create)
        print(f"[+] Created tag '{tag.name}' ({tag.id})")
        return 0

    if args.rename:
        tag_id, name = args.rename
        tag = session.rename_tag(int(tag_id), name)
        print(f"[+] Updated '{tag.name}'")
        return 0

    refresh_if_stale(session)
    needle = (args.query or "").lower()
    tags = [t for t in session.mirror.account.tags if needle in t.name.lower()]

    if not tags:
        print("    No matching tags")
        return 0

    for tag in sorted(tags, key=lambda t: t.name.lower()):
        used = "" if session.mirror.tag_has_time_entries(tag.name) else " (unused)"
        print(f"    {tag.id:>12}  {tag.name}{used}")
    return 0


def cmd_report(session: Session, args) -> int:
    refresh_if_stale(session)

    current = session.clock()
    if args.span is None:
        query = ReportQuery()
    else:
        query = ReportQuery(
            span=get_span(args.span, current),
            project_id=resolve_project(session, args.project),
            description=args.description,
            grouping=GROUP_BY_DAY if args.by_day else GROUP_BY_PROJECT,
        )

    view = build_report_view(
        session.mirror, query, rounding=session.config.rounding, now=current, typed=args.span or ""
    )
    fmt = session.config.hours_minutes

    print()
    if view.total is None or view.empty:
        print(f"[*] {view.title}")
    else:
        print(f"[*] {view.title}: {format_duration(view.total, fmt)}")
    print()

    for row in view.rows:
        running = " (running)" if row.running else ""
        total = format_duration(row.total, fmt) if row.total is not None else ""
        print(f"    {row.title:<40} {total:>8}{running}")
        if row.drill is not None:
            print(f"        -> {query_command(row.drill)}")
        if row.alternate is not None:
            print(f"        -> {query_command(row.alternate)}")

    if view.back is not None:
        print()
        print(f"    [..] {query_command(view.back)}")
    return 0


OPTION_HELP = {
    "rounding": "Round durations to this many minutes (0 = no rounding)",
    "default_project_id": "Project for new timers (0 = none)",
    "duration_only": "Continue today's entries instead of creating new ones",
    "hours_minutes": "Show durations as H:MM instead of decimal hours",
    "ask_for_project": "Ask for a project when starting a timer",
    "test_mode": "Never refresh automatically",
}


def cmd_options(session: Session, args) -> int:
    if args.name is None:
        for name, help_text in OPTION_HELP.items():
            print(f"    {name:<20} {getattr(session.config, name)!s:<8} {help_text}")
        return 0

    if args.name not in OPTION_HELP:
        print(f"[!] Unknown option '{args.name}'. Choose from: {', '.join(OPTION_HELP)}")
        return 1

    current = getattr(session.config, args.name)
    if isinstance(current, bool):
        if args.value is None:
            value = not current
        else:
            value = args.value.lower() in ("1", "true", "yes", "on")
    else:
        if args.value is None:
            print(f"    {args.name}: {current}")
            return 0
        if not args.value.isdigit():
            print(f"[!] {args.name} must be a whole number")
            return 1
        value = int(args.value)

    session.update_options(**{args.name: value})
    print(f"[+] {args.name} = {value}")
    return 0


# ============================================================================
# CLI
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query and update Toggl time tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Report for a date range, grouped by day
    python toggl_cli.py report 10/1..10/15 --by-day

    # Change how durations are rounded
    python toggl_cli.py options rounding 15
        """,
    )
    parser.add_argument("--data-dir", help="Directory for config.json and cache.json")
    parser.add_argument("--debug", action="store_true", help="Log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("login", help="Log in with email and password").set_defaults(func=cmd_login)

    p = sub.add_parser("token", help="Enter an API token manually")
    p.add_argument("token", nargs="?")
    p.set_defaults(func=cmd_token)

    sub.add_parser("logout", help="Forget the API token").set_defaults(func=cmd_logout)

    p = sub.add_parser("reset", help="Erase all local data")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(func=cmd_reset)

    sub.add_parser("sync", help="Refresh the local mirror now").set_defaults(func=cmd_sync)
    sub.add_parser("status", help="Show the running timer").set_defaults(func=cmd_status)

    p = sub.add_parser("timers", help="List recent time entries")
    p.add_argument("query", nargs="?", help="Filter by description")
    p.add_argument("--project", help="Latest entries for a project (ID or name)")
    p.add_argument("--tag", help="Entries with a tag")
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(func=cmd_timers)

    p = sub.add_parser("start", help="Start a new timer")
    p.add_argument("description")
    p.add_argument("--project", help="Project ID or name")
    p.add_argument("--tag", action="append", default=[], help="Tag name (repeatable)")
    p.set_defaults(func=cmd_start)

    p = sub.add_parser("toggle", help="Stop a running timer or continue a stopped one")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_toggle)

    sub.add_parser("stop", help="Stop the running timer").set_defaults(func=cmd_stop)

    p = sub.add_parser("edit", help="Change a time entry")
    p.add_argument("id", type=int)
    p.add_argument("--description")
    p.add_argument("--project", help="Project ID or name, 0 for none")
    p.add_argument("--tag", action="append", default=[], help="Add a tag")
    p.add_argument("--untag", action="append", default=[], help="Remove a tag")
    p.add_argument("--start", help="New start time HH:MM (duration is kept)")
    p.add_argument("--stop", help="New stop time HH:MM")
    p.add_argument("--duration", help="New duration as H:MM or decimal hours")
    p.set_defaults(func=cmd_edit)

    p = sub.add_parser("delete", help="Delete a timer, project or tag")
    p.add_argument("kind", choices=["timer", "project", "tag"])
    p.add_argument("id", type=int)
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("projects", help="List and manage projects")
    p.add_argument("query", nargs="?")
    p.add_argument("--create", metavar="NAME")
    p.add_argument("--rename", nargs=2, metavar=("ID", "NAME"))
    p.add_argument("--default", type=int, metavar="ID")
    p.set_defaults(func=cmd_projects)

    p = sub.add_parser("tags", help="List and manage tags")
    p.add_argument("query", nargs="?")
    p.add_argument("--create", metavar="NAME")
    p.add_argument("--rename", nargs=2, metavar=("ID", "NAME"))
    p.set_defaults(func=cmd_tags)

    p = sub.add_parser("report", help="Summary report for a span")
    p.add_argument("span", nargs="?", help="today, yesterday, week, M/D, YYYY-M-D or A..B")
    p.add_argument("--project", help=f"Project ID or name ({NO_PROJECT_ID} = no project)")
    p.add_argument("--description", help="Only entries with exactly this description")
    p.add_argument("--by-day", action="store_true", help="Group by day instead of project")
    p.set_defaults(func=cmd_report)

    p = sub.add_parser("options", help="Show or change options")
    p.add_argument("name", nargs="?")
    p.add_argument("value", nargs="?")
    p.set_defaults(func=cmd_options)

    return parser


def main(argv: list[str] | None = None, session: Session | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if session is None:
        session = Session.open(args.data_dir)

    try:
        return args.func(session, args)
    except (ApiError, UnknownEntityError, ValueError, OSError) as e:
        print(f"[!] {e}")
        return 1


if __name__ == "__main__":
    exit(main())
