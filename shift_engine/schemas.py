"""Records and report schemas for the shift-point engine.

Per-tick records (samples, shift events, lap outcomes) are frozen
dataclasses: they are created at telemetry rate and never mutated. Everything
handed to consumers (recommendations and diagnostic reports) is a pydantic
model so the reporting collaborator can serialise it with ``model_dump``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.utils.time_utils import format_lap_time_ms, utc_now


# ---------------------------------------------------------------------------
# Session records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TelemetrySample:
    """A full-throttle sample retained for acceleration analysis."""
    timestamp: float
    rpm: int
    throttle: float
    speed_kmh: float
    gear: int


@dataclass(frozen=True)
class ShiftEvent:
    """A gear change detected in the live stream."""
    from_gear: int
    to_gear: int
    from_rpm: int
    to_rpm: int
    from_speed: float
    to_speed: float
    track_position: float
    throttle_at_shift: float
    lap_number: int
    is_upshift: bool
    timestamp: float = 0.0


@dataclass(frozen=True)
class LapPerformance:
    """Outcome of a completed lap."""
    lap_number: int
    lap_time_ms: int
    off_track_seconds: float
    off_track_count: int
    is_valid_by_vendor_flag: bool
    is_valid_by_metrics: bool
    completed_at: float = 0.0

    @property
    def is_valid(self) -> bool:
        """A lap counts for learning only when both checks pass."""
        return self.is_valid_by_vendor_flag and self.is_valid_by_metrics


@dataclass(frozen=True)
class ShiftPerformance:
    """An upshift paired with the outcome of the lap it happened on."""
    shift: ShiftEvent
    lap: LapPerformance


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RecommendationSource(str, Enum):
    """Which estimator produced a shift point."""
    BLENDED = "blended"
    PHYSICS = "physics"
    PERFORMANCE = "performance"
    NONE = "none"


class ShiftDirection(str, Enum):
    """Suggested adjustment to the driver's current shift point."""
    OPTIMAL = "optimal"
    EARLIER = "earlier"
    LATER = "later"
    UNKNOWN = "unknown"


class LearningPhase(str, Enum):
    """How far the blend has moved from physics towards lap outcomes."""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


# ---------------------------------------------------------------------------
# Acceleration analysis outputs
# ---------------------------------------------------------------------------

class ConfidenceAssessment(BaseModel):
    """Data confidence for a gear's physics estimate."""
    score: float = Field(ge=0.0, le=1.0)
    reason: str
    sample_count: int = Field(ge=0)


class GearRPMConfig(BaseModel):
    """Upshift threshold table consumed by the audio feedback layer."""
    gear_rpm_thresholds: Dict[int, int] = Field(default_factory=dict)

    @classmethod
    def create_default(cls) -> "GearRPMConfig":
        """Reasonable thresholds used before any data has been collected."""
        return cls(gear_rpm_thresholds={
            1: 6000, 2: 6500, 3: 7000, 4: 7000,
            5: 7000, 6: 7000, 7: 7000, 8: 7000,
        })

    def get_rpm_for_gear(self, gear: int) -> int:
        return self.gear_rpm_thresholds.get(gear, 0)

    def set_rpm_for_gear(self, gear: int, rpm: int) -> None:
        self.gear_rpm_thresholds[gear] = rpm


class OptimalShiftConfig(BaseModel):
    """Physics-derived shift configuration with supporting curves."""
    optimal_upshift_rpm: Dict[int, int] = Field(default_factory=dict)
    data_confidence: Dict[int, float] = Field(default_factory=dict)
    gear_ratios: Dict[int, float] = Field(
        default_factory=dict, description="Gear N -> RPM ratio to gear N+1"
    )
    acceleration_curves: Dict[int, Dict[int, float]] = Field(
        default_factory=dict, description="Gear -> (RPM bucket -> km/h/s)"
    )
    rpm_per_kmh: Dict[int, float] = Field(default_factory=dict)
    total_data_points: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=utc_now)

    def to_gear_rpm_config(self) -> GearRPMConfig:
        """Convert to the threshold table used by the feedback layer."""
        config = GearRPMConfig()
        for gear, rpm in self.optimal_upshift_rpm.items():
            config.set_rpm_for_gear(gear, rpm)
        return config


class GearAnalysis(BaseModel):
    """Data collection analysis for one gear."""
    gear: int = Field(ge=1)
    total_data_points: int = Field(default=0, ge=0)
    full_throttle_data_points: int = Field(default=0, ge=0)
    min_rpm: int = 0
    max_rpm: int = 0
    min_speed: float = 0.0
    max_speed: float = 0.0
    optimal_shift_rpm: Optional[int] = None
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence_reason: str = ""
    passed_confidence_threshold: bool = False
    rpm_distribution: Dict[int, int] = Field(
        default_factory=dict, description="100-rpm bucket -> sample count"
    )


class DataCollectionReport(BaseModel):
    """Outcome of a data collection session for automatic configuration."""
    session_start: datetime
    session_end: datetime
    vehicle_name: str = ""
    total_data_points: int = Field(default=0, ge=0)
    gear_analyses: List[GearAnalysis] = Field(default_factory=list)
    overall_success: bool = False
    recommendations: List[str] = Field(default_factory=list)
    session_summary: str = ""


# ---------------------------------------------------------------------------
# Lap outcome outputs
# ---------------------------------------------------------------------------

class RPMBucketPerformance(BaseModel):
    """Lap outcomes of upshifts taken within one 200-rpm bucket."""
    rpm: int
    shift_count: int = Field(ge=0)
    mean_lap_time_ms: float
    mean_off_track_seconds: float = Field(ge=0.0)
    composite_score: float = Field(description="Lower is better")


class GearShiftReport(BaseModel):
    """Upshift statistics for one gear across valid laps."""
    gear: int = Field(ge=1)
    total_shifts: int = Field(ge=0)
    min_shift_rpm: int
    max_shift_rpm: int
    avg_shift_rpm: int
    optimal_rpm: Optional[int] = None
    rpm_buckets: List[RPMBucketPerformance] = Field(default_factory=list)


class ShiftPatternReport(BaseModel):
    """How shift behaviour correlates with lap times over the session."""
    total_shifts: int = Field(default=0, ge=0)
    total_laps: int = Field(default=0, ge=0)
    valid_laps: int = Field(default=0, ge=0)
    best_lap_time_ms: Optional[int] = None
    average_lap_time_ms: Optional[int] = None
    total_off_track_events: int = Field(default=0, ge=0)
    gear_reports: List[GearShiftReport] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)

    @property
    def best_lap_time(self) -> str:
        return format_lap_time_ms(self.best_lap_time_ms)

    @property
    def average_lap_time(self) -> str:
        return format_lap_time_ms(self.average_lap_time_ms)


# ---------------------------------------------------------------------------
# Blending outputs
# ---------------------------------------------------------------------------

class ShiftRecommendation(BaseModel):
    """Final per-gear recommendation handed to consumers."""
    gear: int = Field(ge=1)
    physics_rpm: Optional[int] = None
    performance_rpm: Optional[int] = None
    blended_rpm: Optional[int] = None
    source: RecommendationSource = RecommendationSource.NONE
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    interpretation: str = ""


class ShiftPointRecommendation(BaseModel):
    """Live comparison between the driver's threshold and the learned one."""
    gear: int = Field(ge=1)
    current_rpm: int
    recommended_rpm: Optional[int] = None
    difference: int = Field(default=0, description="Current minus recommended")
    has_recommendation: bool = False
    direction: ShiftDirection = ShiftDirection.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    message: str = ""


class GearLearningReport(BaseModel):
    """Physics vs performance comparison for one gear."""
    gear: int = Field(ge=1)
    physics_based_rpm: Optional[int] = None
    performance_based_rpm: Optional[int] = None
    blended_rpm: Optional[int] = None
    difference: int = Field(default=0, description="Performance minus physics")
    interpretation: str = ""


class LearningReport(BaseModel):
    """Diagnostic snapshot of the adaptive blend."""
    learning_rate: float = Field(ge=0.0, le=1.0)
    learning_phase: LearningPhase
    total_laps: int = Field(ge=0)
    valid_laps: int = Field(ge=0)
    total_shifts: int = Field(ge=0)
    gear_reports: List[GearLearningReport] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)
