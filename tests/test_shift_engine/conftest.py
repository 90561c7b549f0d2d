"""Pytest fixtures for shift engine tests."""

import pytest
from typing import List, Optional

from config.settings import ShiftEngineSettings
from data_pipeline.schemas.telemetry_schema import LapTimingData
from shift_engine import (
    AccelerationCurveAnalyzer,
    AdaptiveBlendingEngine,
    SampleCollector,
    ShiftPatternTracker,
    ShiftSession,
)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def feed_pull(
    collector: SampleCollector,
    gear: int,
    count: int,
    start_rpm: int,
    rpm_step: int,
    start_speed: float,
    speed_step: float,
    start_time: float,
    dt: float = 0.05,
) -> float:
    """
    Feed a linear full-throttle pull into a collector.

    Returns:
        Timestamp after the pull plus a two-second gap, so the next pull
        does not pair with this one
    """
    t = start_time
    for i in range(count):
        collector.add_sample(
            start_rpm + i * rpm_step,
            1.0,
            start_speed + i * speed_step,
            gear,
            timestamp=t,
        )
        t += dt
    return t + 2.0


def lap_timing(
    completed_laps: int,
    valid: bool = True,
    last_lap_time_ms: int = 0,
) -> LapTimingData:
    return LapTimingData(
        completed_laps=completed_laps,
        last_lap_time_ms=last_lap_time_ms,
        is_current_lap_valid=valid,
    )


class LapDriver:
    """
    Script shift and lap sequences for a ShiftPatternTracker.

    Each call drives whole ticks at 20 Hz through ``tracker.update``.
    """

    def __init__(self, tracker: ShiftPatternTracker, start_time: float = 0.0):
        self.tracker = tracker
        self.t = start_time
        self.completed = 0
        self.valid = True

    def tick(
        self,
        gear: int,
        rpm: int,
        throttle: float = 1.0,
        speed: float = 150.0,
        off_track: bool = False,
        timing: Optional[LapTimingData] = None,
    ) -> None:
        self.tracker.update(
            gear, rpm, throttle, speed,
            track_position=0.5,
            lap_timing=timing or lap_timing(self.completed, self.valid),
            is_off_track=off_track,
            timestamp=self.t,
        )
        self.t += 0.05

    def upshift(self, from_gear: int, at_rpm: int) -> None:
        """One tick in ``from_gear`` at ``at_rpm``, then one tick in the next gear."""
        self.tick(from_gear, at_rpm)
        self.tick(from_gear + 1, int(at_rpm * 0.75))

    def finish_lap(self, lap_time_ms: int, valid: Optional[bool] = None) -> None:
        """
        Cross the line: the last tick of the lap carries ``valid``, the next
        tick carries the incremented counter with a fresh valid flag.
        """
        if valid is not None:
            self.valid = valid
        self.tick(0, 4000, throttle=0.5)
        self.completed += 1
        self.valid = True
        self.tick(0, 4000, throttle=0.5,
                  timing=lap_timing(self.completed, True, last_lap_time_ms=lap_time_ms))

    def drive_lap(self, shifts: List[int], lap_time_ms: int, gear: int = 3, valid: bool = True) -> None:
        """A lap with one upshift out of ``gear`` at each RPM in ``shifts``."""
        for rpm in shifts:
            self.upshift(gear, rpm)
            self.tick(0, 4000, throttle=0.5)
        self.finish_lap(lap_time_ms, valid)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine_settings() -> ShiftEngineSettings:
    return ShiftEngineSettings()


@pytest.fixture
def collector(engine_settings, clock) -> SampleCollector:
    return SampleCollector(engine_settings.collector, clock=clock)


@pytest.fixture
def analyzer(collector, engine_settings) -> AccelerationCurveAnalyzer:
    return AccelerationCurveAnalyzer(collector, engine_settings.analyzer)


@pytest.fixture
def tracker(engine_settings, clock) -> ShiftPatternTracker:
    return ShiftPatternTracker(engine_settings.tracker, clock=clock)


@pytest.fixture
def blending(analyzer, tracker, engine_settings) -> AdaptiveBlendingEngine:
    return AdaptiveBlendingEngine(analyzer, tracker, engine_settings.learning)


@pytest.fixture
def driver(tracker) -> LapDriver:
    """LapDriver with the partial first lap already synchronised."""
    lap_driver = LapDriver(tracker)
    lap_driver.tick(0, 4000, throttle=0.5)
    lap_driver.finish_lap(0)
    return lap_driver


@pytest.fixture
def session(engine_settings, clock) -> ShiftSession:
    return ShiftSession(engine_settings, clock=clock, session_id="test_session")


@pytest.fixture
def pull():
    """The ``feed_pull`` helper."""
    return feed_pull


@pytest.fixture
def timing():
    """The ``lap_timing`` factory."""
    return lap_timing
