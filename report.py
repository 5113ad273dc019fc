"""Summary reports over the mirrored time entries.

A report walks the entries once and adds each entry's quantized duration to
a per-project bucket and a per-day bucket. Each bucket also keeps
per-description sub-totals. Every quantity is added at each level, so a
parent total always equals the sum of its children.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from durations import CEIL, round_duration
from mirror import Mirror
from models import TimeEntry
from spans import NAMED_SPANS, Span, SpanError, get_span

logger = logging.getLogger(__name__)

NO_PROJECT_NAME = "<No project>"
NO_PROJECT_ID = 0

GROUP_BY_PROJECT = "project"
GROUP_BY_DAY = "day"


@dataclass
class DescriptionTotal:
    """Time tracked under one description."""

    description: str
    total: int = 0
    running: bool = False


@dataclass
class Bucket:
    """Time tracked in one project or on one day, split by description."""

    name: str
    total: int = 0
    running: bool = False
    entries: dict[str, DescriptionTotal] = field(default_factory=dict)

    def add(self, description: str, amount: int, running: bool) -> None:
        item = self.entries.get(description)
        if item is None:
            item = self.entries[description] = DescriptionTotal(description)
        item.total += amount
        item.running = item.running or running
        self.total += amount
        self.running = self.running or running


@dataclass
class ProjectTotal(Bucket):
    project_id: int = NO_PROJECT_ID


@dataclass
class DateTotal(Bucket):
    day: date | None = None


@dataclass
class Report:
    """Totals for a span, grouped by project and by day."""

    span: Span
    total: int = 0
    projects: dict[str, ProjectTotal] = field(default_factory=dict)
    dates: dict[date, DateTotal] = field(default_factory=dict)
    entries: list[TimeEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries


def _project_of(entry: TimeEntry, projects: dict) -> tuple[str, int]:
    project = projects.get(entry.project_id) if entry.project_id else None
    if project is None:
        return NO_PROJECT_NAME, NO_PROJECT_ID
    return project.name, project.id


def generate_report(
    mirror: Mirror,
    span: Span,
    *,
    rounding: int,
    now: datetime,
    project_id: int | None = None,
    description: str | None = None,
) -> Report:
    """Summarize the entries that started within ``span``.

    Args:
        mirror: Source of time entries and project names.
        span: Entries whose start lies in [span.start, span.end] are included.
        rounding: Rounding increment in minutes (see round_duration).
        now: Reference time for running entries.
        project_id: Only include this project; NO_PROJECT_ID selects entries
            without a (known) project.
        description: Only include entries with exactly this description.
    """
    logger.debug(
        "Generating report from %s to %s for project %s", span.start, span.end, project_id
    )

    report = Report(span=span)
    projects = mirror.projects_by_id()

    for entry in mirror.account.time_entries:
        if entry.start is None or not span.contains(entry.start):
            continue

        name, pid = _project_of(entry, projects)
        if project_id is not None and pid != project_id:
            continue
        if description is not None and entry.description != description:
            continue

        amount = round_duration(entry.elapsed_seconds(now), rounding, CEIL)
        running = entry.is_running

        project = report.projects.get(name)
        if project is None:
            project = report.projects[name] = ProjectTotal(name=name, project_id=pid)
        project.add(entry.description, amount, running)

        day = entry.start.astimezone().date()
        bucket = report.dates.get(day)
        if bucket is None:
            bucket = report.dates[day] = DateTotal(name=day.isoformat(), day=day)
        bucket.add(entry.description, amount, running)

        report.total += amount
        report.entries.append(entry)

    return report


# ----------------------------------------------------------------------
# Drill-down navigation: span -> project (or day) -> description -> entries
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ReportQuery:
    """Where the user is in the report drill-down.

    No span means the span menu. A project narrows to its descriptions. A
    description narrows further to individual entries, which is the leaf.
    """

    span: Span | None = None
    project_id: int | None = None
    description: str | None = None
    grouping: str = GROUP_BY_PROJECT
    parent: "ReportQuery | None" = field(default=None, compare=False, repr=False)

    @property
    def is_leaf(self) -> bool:
        return self.description is not None

    def drill(self, **changes) -> "ReportQuery":
        return replace(self, parent=self, **changes)

    def up(self) -> "ReportQuery | None":
        """The query one level up, or None at the top or at a leaf."""
        if self.span is None or self.is_leaf:
            return None
        if self.parent is not None:
            return self.parent
        if self.project_id is not None:
            return replace(self, project_id=None)
        return ReportQuery()


@dataclass
class ReportRow:
    title: str
    total: int | None = None
    running: bool = False
    drill: ReportQuery | None = None
    alternate: ReportQuery | None = None


@dataclass
class ReportView:
    """One screen of a report: a heading, rows, and the way back up."""

    title: str
    total: int | None
    rows: list[ReportRow]
    back: ReportQuery | None = None
    empty: bool = False


def _span_menu(typed: str, now: datetime) -> ReportView:
    rows = []
    choices = [name for name in NAMED_SPANS if name.startswith(typed.strip())]
    if typed.strip() and typed.strip() not in NAMED_SPANS:
        choices.append(typed.strip())

    for text in choices:
        try:
            span = get_span(text, now)
        except SpanError:
            continue
        query = ReportQuery(span=span)
        rows.append(
            ReportRow(
                title=span.name,
                drill=query,
                alternate=replace(query, grouping=GROUP_BY_DAY) if span.multi_day else None,
            )
        )

    if not rows:
        return ReportView(title="Enter a valid date or range", total=None, rows=[], empty=True)
    return ReportView(title="Generate a report", total=None, rows=rows)


def build_report_view(
    mirror: Mirror,
    query: ReportQuery,
    *,
    rounding: int,
    now: datetime,
    typed: str = "",
) -> ReportView:
    """Render the drill-down level described by ``query``.

    ``typed`` is span text entered at the span menu.
    """
    if query.span is None:
        return _span_menu(typed, now)

    span = query.span
    report = generate_report(
        mirror,
        span,
        rounding=rounding,
        now=now,
        project_id=query.project_id,
        description=query.description,
    )
    back = query.up()

    if report.is_empty:
        return ReportView(
            title=f"No time entries for {span.name}", total=0, rows=[], back=back, empty=True
        )

    rows: list[ReportRow] = []

    if query.description is not None:
        title = f"Total hours for {span.name}: {query.description}"
        if query.project_id is not None:
            project = next(iter(report.projects.values()))
            title = f"Total hours for {span.name} for {project.name}: {query.description}"
        for entry in sorted(report.entries, key=lambda e: e.start):
            rows.append(
                ReportRow(
                    title=entry.start.astimezone().strftime("%Y-%m-%d %H:%M"),
                    total=round_duration(entry.elapsed_seconds(now), rounding, CEIL),
                    running=entry.is_running,
                )
            )
    elif query.project_id is not None:
        project = next(iter(report.projects.values()))
        title = f"Total hours for {span.name} for {project.name}"
        for item in sorted(project.entries.values(), key=lambda d: d.description):
            rows.append(
                ReportRow(
                    title=item.description,
                    total=item.total,
                    running=item.running,
                    drill=query.drill(description=item.description),
                )
            )
    elif query.grouping == GROUP_BY_DAY:
        title = f"Total hours for {span.name}"
        for day in sorted(report.dates):
            bucket = report.dates[day]
            rows.append(
                ReportRow(
                    title=bucket.name,
                    total=bucket.total,
                    running=bucket.running,
                    drill=query.drill(span=get_span(bucket.name, now), grouping=GROUP_BY_PROJECT),
                )
            )
    else:
        title = f"Total hours for {span.name}"
        for name in sorted(report.projects):
            project = report.projects[name]
            rows.append(
                ReportRow(
                    title=name,
                    total=project.total,
                    running=project.running,
                    drill=query.drill(project_id=project.project_id),
                )
            )

    return ReportView(title=title, total=report.total, rows=rows, back=back)
