"""
Shift-Point Optimization Engine - Core Application Package
"""

__version__ = "0.1.0"
__author__ = "Shift Engine Team"

# Package-level imports for common utilities
from app.utils.logger import get_logger
from app.utils.time_utils import format_lap_time_ms
from app.utils.validators import validate_gear, validate_rpm

__all__ = [
    "get_logger",
    "format_lap_time_ms",
    "validate_gear",
    "validate_rpm",
]
