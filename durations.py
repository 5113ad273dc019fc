"""Duration quantization and display.

Durations are carried around as "hours times 100" integers, so 1.25 hours is
125. Keeping them integral means report totals add up exactly.
"""

from patterns import Patterns

CEIL = "ceil"
FLOOR = "floor"


def round_duration(seconds: int, rounding: int, flavor: str = CEIL) -> int:
    """Convert seconds to hours*100, quantized to ``rounding`` minute increments.

    Args:
        seconds: Elapsed seconds, never negative. Callers resolve running
            timers to real elapsed time first.
        rounding: Increment in minutes; 0 disables quantization.
        flavor: CEIL rounds partial increments up, FLOOR rounds them down.

    Returns:
        Duration in hundredths of an hour.
    """
    if seconds < 0:
        raise ValueError(f"duration must not be negative, got {seconds}")
    if flavor not in (CEIL, FLOOR):
        raise ValueError(f"unknown rounding flavor '{flavor}'")

    if rounding == 0:
        return seconds * 100 // 3600

    increment = rounding * 60
    if flavor == CEIL:
        units = -(-seconds // increment)
    else:
        units = seconds // increment

    return units * 100 * rounding // 60


def format_duration(hours100: int, hours_minutes: bool = False) -> str:
    """Render hours*100 as ``H:MM`` or as fractional hours with two decimals."""
    if hours_minutes:
        hours = hours100 // 100
        minutes = round((hours100 / 100 - hours) * 60)
        return f"{hours}:{minutes:02d}"
    return f"{hours100 / 100:.2f}"


def parse_duration(text: str) -> int:
    """Parse ``H:MM`` or fractional hours back into hours*100."""
    text = text.strip()
    m = Patterns.HOURS_MINUTES.match(text)
    if m:
        return int(m.group(1)) * 100 + round(int(m.group(2)) * 100 / 60)
    return round(float(text) * 100)
