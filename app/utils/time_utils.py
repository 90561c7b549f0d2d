"""
Time Utilities for Lap Timing

Formats the millisecond lap times reported by the simulator for reports and
provides the timezone-aware clock used to stamp them.
"""

from datetime import datetime, timezone
from typing import Optional


# Simulators report a missing lap time as int32 max
NO_LAP_TIME_MS = 2**31 - 1


def format_lap_time_ms(milliseconds: Optional[int]) -> str:
    """
    Format a lap time in milliseconds as 'M:SS.mmm'.

    Args:
        milliseconds: Lap time in milliseconds, None or the sentinel for no time

    Returns:
        Formatted lap time, or 'N/A' when no time is available
    """
    if milliseconds is None or milliseconds >= NO_LAP_TIME_MS or milliseconds < 0:
        return "N/A"

    milliseconds = int(milliseconds)
    total_seconds = milliseconds // 1000
    minutes = total_seconds // 60
    seconds = total_seconds % 60
    ms = milliseconds % 1000

    return f"{minutes}:{seconds:02d}.{ms:03d}"


def utc_now() -> datetime:
    """Timezone-aware current UTC time used to stamp reports."""
    return datetime.now(timezone.utc)
