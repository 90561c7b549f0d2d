"""
Telemetry Data Schema - Per-tick car telemetry and lap timing

Defines the boundary schemas delivered by the telemetry acquisition layer at
roughly 20 Hz: engine speed, pedal input, road speed, gear, track position,
off-track state and lap timing.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional


LAP_TIMING_EXAMPLE = {
    "completed_laps": 4,
    "current_lap_time_ms": 35412,
    "last_lap_time_ms": 107934,
    "best_lap_time_ms": 107512,
    "is_current_lap_valid": True,
}


class LapTimingData(BaseModel):
    """
    Lap timing block sampled with every telemetry tick.

    ``completed_laps`` is a monotonic counter; its increment marks a lap
    boundary. ``is_current_lap_valid`` is the simulator's own validity flag
    for the lap in progress (reliable in practice/qualifying, less so in
    races).
    """

    completed_laps: int = Field(ge=0, description="Number of laps completed in the session")
    current_lap_time_ms: int = Field(default=0, ge=0, description="Running time of the lap in progress")
    last_lap_time_ms: int = Field(default=0, description="Time of the last completed lap (ms)")
    best_lap_time_ms: Optional[int] = Field(default=None, description="Best lap of the session (ms)")
    is_current_lap_valid: bool = Field(default=True, description="Simulator validity flag for the lap in progress")

    class Config:
        json_schema_extra = {
            "example": LAP_TIMING_EXAMPLE
        }


class TelemetryTick(BaseModel):
    """
    Single telemetry tick captured by the acquisition layer.

    Represents instantaneous car state; the shift engine consumes one tick
    per polling cycle.
    """

    timestamp: Optional[float] = Field(
        default=None,
        description="Monotonic capture time in seconds (None = engine clock)"
    )
    gear: int = Field(ge=-1, le=10, description="Current gear (-1=reverse, 0=neutral, 1+=forward)")
    rpm: int = Field(ge=0, le=25000, description="Engine RPM")
    throttle: float = Field(ge=0.0, le=1.0, description="Throttle position (0-1)")
    speed_kmh: float = Field(ge=0.0, le=500.0, description="Road speed in km/h")
    track_position: float = Field(default=0.0, ge=0.0, le=1.0, description="Normalised spline position")
    off_track: bool = Field(default=False, description="All four wheels outside track limits")
    lap_timing: Optional[LapTimingData] = Field(default=None, description="Lap timing block")

    @field_validator("speed_kmh", "throttle")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        """Reject NaN and infinite readings."""
        if v != v or v in (float("inf"), float("-inf")):
            raise ValueError("Telemetry readings must be finite")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": 1234.55,
                "gear": 3,
                "rpm": 6850,
                "throttle": 1.0,
                "speed_kmh": 148.2,
                "track_position": 0.412,
                "off_track": False,
                "lap_timing": LAP_TIMING_EXAMPLE,
            }
        }
