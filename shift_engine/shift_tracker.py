"""
Shift Event & Lap Outcome Tracker

Detects gear changes in the live stream, keeps per-lap off-track
statistics, scores completed laps and correlates each lap's upshifts with
its outcome so the RPM bands that produce the fastest clean laps can be
identified.
"""

import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from app.utils.logger import get_logger
from app.utils.validators import (
    validate_lap_time_ms,
    validate_rpm,
    validate_speed,
    validate_throttle,
)
from config import constants as C
from config.settings import TrackerSettings
from data_pipeline.schemas.telemetry_schema import LapTimingData
from shift_engine.schemas import (
    GearShiftReport,
    LapPerformance,
    RPMBucketPerformance,
    ShiftEvent,
    ShiftPatternReport,
    ShiftPerformance,
)

logger = get_logger(__name__)


class ShiftPatternTracker:
    """
    Correlate upshift RPM with lap outcomes.

    Call :meth:`update` once per telemetry tick. Laps are identified by the
    completed-lap count while they are driven; the lap in progress when
    tracking starts is partial and never scored.
    """

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or TrackerSettings()
        self._clock = clock

        self._shift_history: List[ShiftEvent] = []
        self._lap_history: List[LapPerformance] = []
        self._shift_performance_by_gear: Dict[int, List[ShiftPerformance]] = defaultdict(list)

        self._reset_state()
        logger.info("Shift pattern tracker initialized")

    def _reset_state(self) -> None:
        self._last_gear = 0
        self._last_rpm = 0
        self._last_throttle = 0.0
        self._last_speed = 0.0
        self._last_time: Optional[float] = None

        self._current_lap_number = 0
        self._prev_lap_valid_flag = True

        self._was_off_track = False
        self._off_track_seconds = 0.0
        self._off_track_count = 0

    def update(
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
        """
        Process one telemetry tick.

        Args:
            gear: Current gear
            rpm: Engine speed
            throttle: Throttle position (0-1)
            speed: Road speed in km/h
            track_position: Normalised spline position
            lap_timing: Lap timing block, if available this tick
            is_off_track: Whether the car is outside track limits
            timestamp: Capture time in seconds (tracker clock when None)
        """
        if not (validate_rpm(rpm)[0] and validate_throttle(throttle)[0]
                and validate_speed(speed)[0]):
            logger.debug(f"Ignoring malformed tick (rpm={rpm!r}, throttle={throttle!r}, speed={speed!r})")
            return

        gear = int(gear)
        now = self._clock() if timestamp is None else timestamp
        delta = 0.0 if self._last_time is None else max(0.0, now - self._last_time)
        self._last_time = now

        if self._last_gear != 0 and gear != self._last_gear:
            self._detect_shift(gear, int(rpm), speed, track_position, now)

        if is_off_track and not self._was_off_track:
            self._off_track_count += 1
        if is_off_track:
            self._off_track_seconds += delta
        self._was_off_track = is_off_track

        if lap_timing is not None:
            if lap_timing.completed_laps > self._current_lap_number:
                # Score with the flag seen before the counter moved
                self._complete_lap(lap_timing, self._prev_lap_valid_flag, now)
                self._current_lap_number = lap_timing.completed_laps
                self._off_track_seconds = 0.0
                self._off_track_count = 0
            self._prev_lap_valid_flag = lap_timing.is_current_lap_valid

        self._last_gear = gear
        self._last_rpm = int(rpm)
        self._last_throttle = float(throttle)
        self._last_speed = float(speed)

    def _detect_shift(self, gear: int, rpm: int, speed: float, track_position: float, now: float) -> None:
        """Classify a gear change and record it if it passes the filters."""
        if self._last_gear < 1 or gear < 1:
            return

        is_upshift = gear > self._last_gear
        if is_upshift:
            keep = (self._last_throttle >= self.settings.min_throttle_for_upshift
                    and self._last_rpm >= self.settings.min_rpm_for_shift)
        else:
            keep = rpm >= self.settings.min_rpm_for_shift

        if not keep:
            return

        event = ShiftEvent(
            from_gear=self._last_gear,
            to_gear=gear,
            from_rpm=self._last_rpm,
            to_rpm=rpm,
            from_speed=self._last_speed,
            to_speed=float(speed),
            track_position=float(track_position),
            throttle_at_shift=self._last_throttle,
            lap_number=self._current_lap_number,
            is_upshift=is_upshift,
            timestamp=now,
        )
        self._shift_history.append(event)
        logger.debug(
            f"{'Upshift' if is_upshift else 'Downshift'} {event.from_gear}->{event.to_gear} "
            f"at {event.from_rpm} rpm (lap {event.lap_number})"
        )

    def _complete_lap(self, lap_timing: LapTimingData, was_lap_valid: bool, now: float) -> None:
        """Score the finished lap and attach its upshifts."""
        if self._current_lap_number == 0:
            # Partial lap: tracking started mid-lap
            return

        lap_time_ms = lap_timing.last_lap_time_ms
        is_valid_by_metrics = (
            validate_lap_time_ms(lap_time_ms)
            and self._off_track_seconds < self.settings.max_off_track_seconds
        )

        lap = LapPerformance(
            lap_number=self._current_lap_number,
            lap_time_ms=int(lap_time_ms),
            off_track_seconds=self._off_track_seconds,
            off_track_count=self._off_track_count,
            is_valid_by_vendor_flag=was_lap_valid,
            is_valid_by_metrics=is_valid_by_metrics,
            completed_at=now,
        )
        self._lap_history.append(lap)

        for shift in self._shift_history:
            if shift.lap_number == lap.lap_number and shift.is_upshift:
                self._shift_performance_by_gear[shift.from_gear].append(
                    ShiftPerformance(shift=shift, lap=lap)
                )

        logger.debug(
            f"Lap {lap.lap_number} completed in {lap.lap_time_ms} ms "
            f"(valid={lap.is_valid}, off-track {lap.off_track_seconds:.2f}s)",
            extra={"extra_data": {"lap_number": lap.lap_number, "lap_valid": lap.is_valid}},
        )

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _valid_shift_frame(self, gear: int) -> pd.DataFrame:
        """Upshifts out of ``gear`` on valid laps, one row per shift."""
        rows = [
            {
                "from_rpm": sp.shift.from_rpm,
                "lap_time_ms": sp.lap.lap_time_ms,
                "off_track_seconds": sp.lap.off_track_seconds,
            }
            for sp in self._shift_performance_by_gear.get(gear, [])
            if sp.lap.is_valid
        ]
        return pd.DataFrame(rows, columns=["from_rpm", "lap_time_ms", "off_track_seconds"])

    def _score_buckets(self, shifts: pd.DataFrame) -> pd.DataFrame:
        """
        Aggregate shifts into RPM buckets and score them.

        Returns:
            One row per bucket with enough shifts, best score first and
            lower RPM first among equal scores
        """
        size = self.settings.shift_bucket_size_rpm
        frame = shifts.assign(rpm=(shifts["from_rpm"] // size) * size)
        buckets = frame.groupby("rpm").agg(
            shift_count=("from_rpm", "size"),
            mean_lap_time_ms=("lap_time_ms", "mean"),
            mean_off_track_seconds=("off_track_seconds", "mean"),
        ).reset_index()

        buckets = buckets[buckets["shift_count"] >= self.settings.min_shifts_per_bucket]
        buckets = buckets.assign(
            composite_score=buckets["mean_lap_time_ms"]
            + buckets["mean_off_track_seconds"] * self.settings.off_track_penalty_ms
        )
        return buckets.sort_values(["composite_score", "rpm"], kind="mergesort").reset_index(drop=True)

    def analyze_optimal_shift_points(self, min_laps: int = C.DEFAULT_MIN_VALID_LAPS) -> Dict[int, int]:
        """
        Find, per gear, the upshift RPM band with the best lap outcomes.

        Args:
            min_laps: Valid laps required before any estimate is produced

        Returns:
            Gear -> RPM (lower edge of the winning bucket); empty when the
            session has too few valid laps
        """
        if self.get_valid_laps() < min_laps:
            return {}

        optimal: Dict[int, int] = {}
        for gear in C.ANALYZED_GEARS:
            shifts = self._valid_shift_frame(gear)
            if len(shifts) < self.settings.min_shifts_per_gear:
                continue

            buckets = self._score_buckets(shifts)
            if buckets.empty:
                continue

            optimal[gear] = int(buckets.iloc[0]["rpm"])

        logger.debug(f"Performance-based shift points: {optimal}")
        return optimal

    def generate_performance_report(self) -> ShiftPatternReport:
        """Summarise how shift behaviour correlates with lap times."""
        report = ShiftPatternReport(
            total_shifts=self.get_total_shifts(),
            total_laps=self.get_total_laps(),
            valid_laps=self.get_valid_laps(),
        )
        if not self._lap_history:
            return report

        valid_laps = [lap for lap in self._lap_history if lap.is_valid]
        if valid_laps:
            lap_times = pd.Series([lap.lap_time_ms for lap in valid_laps])
            report.best_lap_time_ms = int(lap_times.min())
            report.average_lap_time_ms = int(lap_times.mean())
            report.total_off_track_events = sum(lap.off_track_count for lap in valid_laps)

        for gear in sorted(self._shift_performance_by_gear):
            shifts = self._valid_shift_frame(gear)
            if shifts.empty:
                continue

            buckets = self._score_buckets(shifts)
            bucket_reports = [
                RPMBucketPerformance(
                    rpm=int(row.rpm),
                    shift_count=int(row.shift_count),
                    mean_lap_time_ms=float(row.mean_lap_time_ms),
                    mean_off_track_seconds=float(row.mean_off_track_seconds),
                    composite_score=float(row.composite_score),
                )
                for row in buckets.itertuples(index=False)
            ]

            report.gear_reports.append(GearShiftReport(
                gear=gear,
                total_shifts=len(shifts),
                min_shift_rpm=int(shifts["from_rpm"].min()),
                max_shift_rpm=int(shifts["from_rpm"].max()),
                avg_shift_rpm=int(shifts["from_rpm"].mean()),
                optimal_rpm=bucket_reports[0].rpm if bucket_reports else None,
                rpm_buckets=bucket_reports,
            ))

        return report

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_total_shifts(self) -> int:
        return len(self._shift_history)

    def get_total_laps(self) -> int:
        return len(self._lap_history)

    def get_valid_laps(self) -> int:
        return sum(1 for lap in self._lap_history if lap.is_valid)

    @property
    def shift_history(self) -> Tuple[ShiftEvent, ...]:
        return tuple(self._shift_history)

    @property
    def lap_history(self) -> Tuple[LapPerformance, ...]:
        return tuple(self._lap_history)

    @property
    def current_lap_number(self) -> int:
        return self._current_lap_number

    def clear(self) -> None:
        """Forget every shift, lap and in-progress accumulator."""
        self._shift_history.clear()
        self._lap_history.clear()
        self._shift_performance_by_gear.clear()
        self._reset_state()
        logger.info("Shift pattern tracker cleared")
