"""
Shift Session - Facade over the shift-point engine components

Owns one collector, analyzer, tracker and blending engine for a telemetry
session, routes each tick to the collector and the tracker, and exposes
every query and report consumers need.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional

from app.utils.logger import get_logger
from config.settings import ShiftEngineSettings
from data_pipeline.schemas.telemetry_schema import LapTimingData, TelemetryTick
from shift_engine.acceleration import AccelerationCurveAnalyzer
from shift_engine.blending import AdaptiveBlendingEngine
from shift_engine.collector import SampleCollector
from shift_engine.gear_selection import GearRecommendationEngine
from shift_engine.schemas import (
    DataCollectionReport,
    LearningReport,
    OptimalShiftConfig,
    ShiftPatternReport,
    ShiftPointRecommendation,
    ShiftRecommendation,
)
from shift_engine.shift_tracker import ShiftPatternTracker

logger = get_logger(__name__)


class ShiftSession:
    """Single-writer session over the shift-point engine."""

    def __init__(
        self,
        settings: Optional[ShiftEngineSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        session_id: Optional[str] = None,
    ):
        """
        Initialize session.

        Args:
            settings: Engine settings (defaults when omitted)
            clock: Time source for ticks without a timestamp
            session_id: Identifier used in logs and stats
        """
        self.settings = settings or ShiftEngineSettings()
        self.session_id = session_id or str(uuid.uuid4())
        self._clock = clock

        self.collector = SampleCollector(self.settings.collector, clock=clock)
        self.analyzer = AccelerationCurveAnalyzer(self.collector, self.settings.analyzer)
        self.tracker = ShiftPatternTracker(self.settings.tracker, clock=clock)
        self.blending = AdaptiveBlendingEngine(self.analyzer, self.tracker, self.settings.learning)

        self.tick_count = 0
        logger.info(f"Shift session {self.session_id} started")

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def process_tick(self, tick: TelemetryTick) -> bool:
        """
        Feed one telemetry tick to the collector and the tracker.

        Args:
            tick: Validated telemetry tick

        Returns:
            True if the collector retained the tick as a sample
        """
        timestamp = self._clock() if tick.timestamp is None else tick.timestamp
        self.tick_count += 1

        accepted = self.collector.add_sample(
            tick.rpm, tick.throttle, tick.speed_kmh, tick.gear, timestamp=timestamp
        )
        self.tracker.update(
            gear=tick.gear,
            rpm=tick.rpm,
            throttle=tick.throttle,
            speed=tick.speed_kmh,
            track_position=tick.track_position,
            lap_timing=tick.lap_timing,
            is_off_track=tick.off_track,
            timestamp=timestamp,
        )
        return accepted

    def add_data_point(
        self,
        rpm: float,
        throttle: float,
        speed: float,
        gear: int,
        timestamp: Optional[float] = None,
    ) -> bool:
        """Offer a sample to the collector only (acceleration analysis)."""
        return self.collector.add_sample(rpm, throttle, speed, gear, timestamp=timestamp)

    def update_shift_tracking(
        self,
        gear: int,
        rpm: float,
        throttle: float,
        speed: float,
        track_position: float = 0.0,
        lap_timing: Optional[LapTimingData] = None,
        is_off_track: bool = False,
        timestamp: Optional[float] = None,
    ) -> None:
        """Feed a tick to the tracker only (lap outcome analysis)."""
        self.tracker.update(
            gear, rpm, throttle, speed, track_position, lap_timing, is_off_track, timestamp
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def calculate_optimal_upshift_rpm(self, gear: int) -> Optional[int]:
        return self.analyzer.calculate_optimal_upshift_rpm(gear)

    def calculate_optimal_downshift_rpm(self, from_gear: int, to_gear: int) -> Optional[int]:
        return self.analyzer.calculate_optimal_downshift_rpm(from_gear, to_gear)

    def generate_optimal_config(self) -> Optional[OptimalShiftConfig]:
        return self.analyzer.generate_optimal_config()

    def generate_optimal_shift_points(self) -> Dict[int, int]:
        return self.blending.generate_optimal_shift_points()

    def generate_recommendations(self) -> Dict[int, ShiftRecommendation]:
        return self.blending.generate_recommendations()

    def get_recommendation_for_gear(self, gear: int, current_threshold: int) -> ShiftPointRecommendation:
        return self.blending.get_recommendation_for_gear(gear, current_threshold)

    def get_gear_recommendation_engine(self) -> Optional[GearRecommendationEngine]:
        """Sustained-gear recommender built from the current curves."""
        config = self.generate_optimal_config()
        if config is None:
            return None
        return GearRecommendationEngine.from_config(config)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_detailed_report(self, vehicle_name: str = "") -> DataCollectionReport:
        return self.analyzer.generate_detailed_report(vehicle_name)

    def generate_performance_report(self) -> ShiftPatternReport:
        return self.tracker.generate_performance_report()

    def generate_learning_report(self) -> LearningReport:
        return self.blending.generate_learning_report()

    def get_stats(self) -> Dict[str, Any]:
        """
        Session statistics.

        Returns:
            Dict with sample, shift and lap counters
        """
        return {
            "session_id": self.session_id,
            "ticks_processed": self.tick_count,
            "total_data_points": self.collector.get_data_point_count(),
            "data_points_by_gear": {
                gear: self.collector.get_data_point_count_for_gear(gear)
                for gear in self.collector.tracked_gears
            },
            "rejections": dict(self.collector.rejection_counts),
            "total_shifts": self.tracker.get_total_shifts(),
            "total_laps": self.tracker.get_total_laps(),
            "valid_laps": self.tracker.get_valid_laps(),
            "learning_rate": self.blending.learning_rate,
        }

    def clear(self) -> None:
        """Wipe every component's session data."""
        self.collector.clear()
        self.tracker.clear()
        self.analyzer.reset()
        self.tick_count = 0
        logger.info(f"Shift session {self.session_id} cleared")
