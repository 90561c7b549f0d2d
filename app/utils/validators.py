"""
Data Validation Utilities for Telemetry Quality Checks

Provides validation functions for gears, engine speed, pedal inputs and lap
timing values coming from the telemetry acquisition layer.
"""

from typing import Any, Optional, Tuple
import math
import numbers

from app.utils.time_utils import NO_LAP_TIME_MS


# Forward gears analysed by the shift engine (neutral/reverse excluded upstream)
MIN_FORWARD_GEAR = 1
MAX_FORWARD_GEAR = 8


def is_finite_number(value: Any) -> bool:
    """
    Check that a value is a real, finite number.

    Args:
        value: Value to check

    Returns:
        True for real numbers (numpy scalars included) that are neither
        NaN nor infinite
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def validate_gear(gear: int, max_gear: int = MAX_FORWARD_GEAR) -> bool:
    """
    Validate a forward gear number.

    Args:
        gear: Gear number as reported by telemetry
        max_gear: Highest gear accepted

    Returns:
        True if 1 <= gear <= max_gear
    """
    if isinstance(gear, bool) or not isinstance(gear, numbers.Integral):
        return False
    return MIN_FORWARD_GEAR <= gear <= max_gear


def validate_rpm(rpm: float) -> Tuple[bool, Optional[str]]:
    """
    Validate engine speed.

    Args:
        rpm: Engine speed in revolutions per minute

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not is_finite_number(rpm):
        return False, f"RPM must be a finite number, got {rpm!r}"

    if rpm < 0:
        return False, f"RPM cannot be negative: {rpm}"

    return True, None


def validate_throttle(throttle: float) -> Tuple[bool, Optional[str]]:
    """
    Validate throttle pedal position (0.0-1.0).

    Args:
        throttle: Normalised throttle position

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not is_finite_number(throttle):
        return False, f"Throttle must be a finite number, got {throttle!r}"

    if throttle < 0.0 or throttle > 1.0:
        return False, f"Throttle must be between 0 and 1, got {throttle}"

    return True, None


def validate_speed(speed_kmh: float) -> Tuple[bool, Optional[str]]:
    """
    Validate road speed.

    Args:
        speed_kmh: Speed in km/h

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not is_finite_number(speed_kmh):
        return False, f"Speed must be a finite number, got {speed_kmh!r}"

    if speed_kmh < 0.0:
        return False, f"Speed cannot be negative: {speed_kmh} km/h"

    return True, None


def validate_lap_time_ms(lap_time_ms: Optional[float]) -> bool:
    """
    Validate a completed lap time reported in milliseconds.

    Simulators report "no time" as a sentinel (int32 max) or as missing;
    both are rejected together with zero and negative values.

    Args:
        lap_time_ms: Lap time in milliseconds

    Returns:
        True if the lap time is finite and positive
    """
    if lap_time_ms is None or not is_finite_number(lap_time_ms):
        return False
    return 0 < lap_time_ms < NO_LAP_TIME_MS

