"""
Utilities Module - Shared helper functions for the shift-point engine
"""

from app.utils.logger import get_logger, setup_logging, bind_session_id
from app.utils.time_utils import NO_LAP_TIME_MS, format_lap_time_ms, utc_now
from app.utils.validators import (
    is_finite_number,
    validate_gear,
    validate_rpm,
    validate_throttle,
    validate_speed,
    validate_lap_time_ms,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "bind_session_id",
    "NO_LAP_TIME_MS",
    "format_lap_time_ms",
    "utc_now",
    "is_finite_number",
    "validate_gear",
    "validate_rpm",
    "validate_throttle",
    "validate_speed",
    "validate_lap_time_ms",
]
