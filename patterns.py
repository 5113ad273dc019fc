"""Centralized regex patterns for span and time parsing."""

import re


class Patterns:
    """Regex patterns used when reading user-typed dates and times."""

    # Span range: "<left>..<right>", split at the first ".."
    SPAN_RANGE = re.compile(r"^(.+?)\.\.(.+)$")

    # Month/day in the current year: 1/2, 12/31
    MONTH_DAY = re.compile(r"^(\d\d?)/(\d\d?)$")

    # Month/day/two-digit year: 1/2/06
    MONTH_DAY_SHORT_YEAR = re.compile(r"^(\d\d?)/(\d\d?)/(\d\d)$")

    # Month/day/year: 1/2/2006
    MONTH_DAY_YEAR = re.compile(r"^(\d\d?)/(\d\d?)/(\d{4})$")

    # ISO-ish date: 2006-1-2, 2006-01-02
    ISO_DATE = re.compile(r"^(\d{4})-(\d\d?)-(\d\d?)$")

    # Wall clock time: 9:05, 17:30
    CLOCK_TIME = re.compile(r"^(\d\d?):(\d\d)$")

    # Hours and minutes as displayed: 1:05, 12:30
    HOURS_MINUTES = re.compile(r"^(\d+):(\d\d)$")
