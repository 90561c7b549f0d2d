"""
Centralized Settings Module - Environment-based configuration

Uses Pydantic BaseSettings for type-safe configuration of the shift-point
engine. Defaults come from the tuned constants in ``config.constants``;
every threshold can be overridden through the environment or a YAML file.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import Any, Dict, Optional
from functools import lru_cache
from pathlib import Path

import yaml

from app.utils.logger import get_logger

from config import constants as C

logger = get_logger(__name__)


DEFAULT_CONFIG_PATH = Path(__file__).parent / "shift_engine.yaml"


class CollectorSettings(BaseSettings):
    """Sample collection and filtering thresholds."""

    full_throttle_threshold: float = Field(
        default=C.FULL_THROTTLE_THRESHOLD, ge=0.0, le=1.0,
        description="Minimum throttle for a representative sample"
    )
    standing_start_speed_kmh: float = Field(
        default=C.STANDING_START_SPEED_KMH, ge=0.0,
        description="Samples at or below this speed are standing starts"
    )
    pit_limiter_min_kmh: float = Field(default=C.PIT_LIMITER_MIN_KMH, ge=0.0)
    pit_limiter_max_kmh: float = Field(default=C.PIT_LIMITER_MAX_KMH, ge=0.0)
    min_rpm_rise_rate: float = Field(
        default=C.MIN_RPM_RISE_RATE,
        description="Minimum RPM climb (rpm/s) for a sample to count"
    )
    min_sample_interval_s: float = Field(default=C.MIN_SAMPLE_INTERVAL_S, gt=0.0)
    max_sample_interval_s: float = Field(default=C.MAX_SAMPLE_INTERVAL_S, gt=0.0)
    samples_per_gear_capacity: int = Field(
        default=C.SAMPLES_PER_GEAR_CAPACITY, ge=1,
        description="Per-gear sample arena size"
    )
    max_tracked_gear: int = Field(default=C.MAX_TRACKED_GEAR, ge=1, le=10)

    @model_validator(mode="after")
    def validate_windows(self):
        """Validate the pit limiter band and sample interval window."""
        if self.pit_limiter_min_kmh > self.pit_limiter_max_kmh:
            raise ValueError("pit_limiter_min_kmh must not exceed pit_limiter_max_kmh")
        if self.min_sample_interval_s >= self.max_sample_interval_s:
            raise ValueError("min_sample_interval_s must be below max_sample_interval_s")
        return self

    class Config:
        env_prefix = "SHIFT_COLLECTOR_"


class AnalyzerSettings(BaseSettings):
    """Acceleration curve analysis thresholds."""

    min_samples_per_gear: int = Field(default=C.MIN_SAMPLES_PER_GEAR, ge=2)
    accel_bucket_size_rpm: int = Field(default=C.ACCEL_BUCKET_SIZE_RPM, ge=1)
    min_pairs_per_bucket: int = Field(default=C.MIN_PAIRS_PER_ACCEL_BUCKET, ge=1)
    advantage_threshold: float = Field(
        default=C.CROSSOVER_ADVANTAGE_THRESHOLD, ge=0.0,
        description="Relative acceleration gain required to shift"
    )
    match_tolerance_rpm: int = Field(default=C.CROSSOVER_MATCH_TOLERANCE_RPM, ge=0)
    downshift_factor: float = Field(default=C.DOWNSHIFT_FACTOR, gt=0.0, le=1.0)
    min_confidence_threshold: float = Field(
        default=C.MIN_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0
    )
    top_rpm_band_factor: float = Field(
        default=C.TOP_RPM_BAND_FACTOR, gt=0.0, le=1.0,
        description="Share of peak RPM that counts as the top of the rev range"
    )
    strong_pull_speed_factor: float = Field(default=C.STRONG_PULL_SPEED_FACTOR, gt=0.0, le=1.0)
    near_redline_shift_factor: float = Field(default=C.NEAR_REDLINE_SHIFT_FACTOR, gt=0.0, le=1.0)
    speed_plateau_factor: float = Field(default=C.SPEED_PLATEAU_FACTOR, gt=0.0, le=1.0)

    class Config:
        env_prefix = "SHIFT_ANALYZER_"


class TrackerSettings(BaseSettings):
    """Shift detection and lap validity thresholds."""

    min_rpm_for_shift: int = Field(default=C.MIN_RPM_FOR_SHIFT, ge=0)
    min_throttle_for_upshift: float = Field(
        default=C.MIN_THROTTLE_FOR_UPSHIFT, ge=0.0, le=1.0
    )
    max_off_track_seconds: float = Field(default=C.MAX_OFF_TRACK_SECONDS, gt=0.0)
    shift_bucket_size_rpm: int = Field(default=C.SHIFT_BUCKET_SIZE_RPM, ge=1)
    min_shifts_per_gear: int = Field(default=C.MIN_SHIFTS_PER_GEAR, ge=1)
    min_shifts_per_bucket: int = Field(default=C.MIN_SHIFTS_PER_BUCKET, ge=1)
    off_track_penalty_ms: float = Field(
        default=C.OFF_TRACK_PENALTY_MS_PER_SECOND, ge=0.0,
        description="Lap-time penalty per second spent off track"
    )

    class Config:
        env_prefix = "SHIFT_TRACKER_"


class LearningSettings(BaseSettings):
    """Adaptive blending configuration."""

    min_laps_for_learning: int = Field(default=C.MIN_LAPS_FOR_LEARNING, ge=1)
    base_learning_rate: float = Field(default=C.BASE_LEARNING_RATE, ge=0.0, le=1.0)
    max_learning_rate: float = Field(default=C.MAX_LEARNING_RATE, ge=0.0, le=1.0)
    laps_per_learning_unit: float = Field(default=C.LAPS_PER_LEARNING_UNIT, gt=0.0)
    physics_weight: float = Field(default=C.PHYSICS_WEIGHT, gt=0.0)
    performance_weight: float = Field(default=C.PERFORMANCE_WEIGHT, gt=0.0)
    physics_decay: float = Field(
        default=C.PHYSICS_DECAY, ge=0.0, le=1.0,
        description="How fast the physics weight shrinks as the learning rate grows"
    )
    agreement_tolerance_rpm: int = Field(default=C.AGREEMENT_TOLERANCE_RPM, ge=0)

    @model_validator(mode="after")
    def validate_rate_bounds(self):
        """Validate the learning rate floor does not exceed its cap."""
        if self.base_learning_rate > self.max_learning_rate:
            raise ValueError("base_learning_rate must not exceed max_learning_rate")
        return self

    class Config:
        env_prefix = "SHIFT_LEARNING_"


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json/text)")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    enable_console: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is json or text."""
        if v.lower() not in ("json", "text"):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v.lower()

    class Config:
        env_prefix = "LOG_"


class ShiftEngineSettings(BaseSettings):
    """Settings for all shift-engine components."""

    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    analyzer: AnalyzerSettings = Field(default_factory=AnalyzerSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    learning: LearningSettings = Field(default_factory=LearningSettings)


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections."""

    env: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    engine: ShiftEngineSettings = Field(default_factory=ShiftEngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment is recognized."""
        valid_envs = ["development", "testing", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment. Must be one of: {valid_envs}")
        return v.lower()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_nested_delimiter = "__"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()


def load_engine_settings(config_path: Optional[str] = None) -> ShiftEngineSettings:
    """
    Load engine settings from YAML, layered over the tuned defaults.

    The file may contain ``collector``, ``analyzer``, ``tracker`` and
    ``learning`` sections; any key left out keeps its default.

    Args:
        config_path: Path to config file (defaults to config/shift_engine.yaml)

    Returns:
        ShiftEngineSettings
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.warning(f"Config file not found: {path}, using defaults")
        return ShiftEngineSettings()

    with open(path, "r") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    logger.info(f"Loaded shift engine config from {path}")
    return ShiftEngineSettings(
        collector=CollectorSettings(**(raw.get("collector") or {})),
        analyzer=AnalyzerSettings(**(raw.get("analyzer") or {})),
        tracker=TrackerSettings(**(raw.get("tracker") or {})),
        learning=LearningSettings(**(raw.get("learning") or {})),
    )
