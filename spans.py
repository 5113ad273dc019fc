"""Resolve textual date expressions into concrete report spans."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from patterns import Patterns
from utils import now as local_now
from utils import to_day_end, to_day_start

NAMED_SPANS = ("today", "yesterday", "week")


class SpanError(ValueError):
    """Span text that does not describe a date or range."""

    def __init__(self, text: str):
        super().__init__(f"unable to parse span '{text}'")
        self.text = text


@dataclass(frozen=True)
class Span:
    """A closed interval of local time with a display name."""

    name: str
    start: datetime
    end: datetime
    multi_day: bool = False

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def _two_digit_year(value: int) -> int:
    # Same pivot as strptime's %y
    return 2000 + value if value < 69 else 1900 + value


def _parse_date(text: str, today: date) -> date | None:
    """Parse one of the supported literal date layouts, or return None."""
    if m := Patterns.MONTH_DAY.match(text):
        year, month, day = today.year, int(m.group(1)), int(m.group(2))
    elif m := Patterns.MONTH_DAY_SHORT_YEAR.match(text):
        year, month, day = _two_digit_year(int(m.group(3))), int(m.group(1)), int(m.group(2))
    elif m := Patterns.MONTH_DAY_YEAR.match(text):
        year, month, day = int(m.group(3)), int(m.group(1)), int(m.group(2))
    elif m := Patterns.ISO_DATE.match(text):
        year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))
    else:
        return None

    try:
        return date(year, month, day)
    except ValueError:
        raise SpanError(text) from None


def _day_span(name: str, moment: datetime) -> Span:
    start = to_day_start(moment)
    return Span(name=name, start=start, end=to_day_end(start))


def get_span(text: str, now: datetime | None = None) -> Span:
    """Turn "today", "yesterday", "week", a date, or "a..b" into a Span.

    Raises:
        SpanError: If the text cannot be resolved.
    """
    text = text.strip()
    current = now or local_now()

    if text == "today":
        return _day_span(text, current)

    if text == "yesterday":
        return _day_span(text, current - timedelta(days=1))

    if text == "week":
        # Weeks start on Sunday
        days_since_sunday = (current.astimezone().weekday() + 1) % 7
        start = to_day_start(current - timedelta(days=days_since_sunday))
        return Span(name="this week", start=start, end=current, multi_day=True)

    m = Patterns.SPAN_RANGE.match(text)
    if m:
        left = get_span(m.group(1), current)
        right = get_span(m.group(2), current)
        return Span(name=text, start=left.start, end=right.end, multi_day=True)

    day = _parse_date(text, current.astimezone().date())
    if day is None:
        raise SpanError(text)

    return _day_span(text, datetime.combine(day, datetime.min.time()).astimezone())
