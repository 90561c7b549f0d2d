"""Tests for the shift session facade."""

import pytest

from data_pipeline.mock import MockTelemetryGenerator
from data_pipeline.schemas.telemetry_schema import LapTimingData, TelemetryTick
from shift_engine import (
    DataCollectionReport,
    GearRecommendationEngine,
    LearningReport,
    RejectionReason,
    ShiftPatternReport,
    ShiftSession,
)


def make_tick(gear=3, rpm=6000, throttle=1.0, speed=120.0, timestamp=None, **kwargs):
    return TelemetryTick(
        timestamp=timestamp, gear=gear, rpm=rpm, throttle=throttle, speed_kmh=speed, **kwargs
    )


class TestProcessTick:

    def test_routes_to_collector_and_tracker(self, session):
        assert session.process_tick(make_tick(3, 6500, timestamp=0.0)) is True
        # Past the rise-rate window, so the post-shift drop is kept
        assert session.process_tick(make_tick(4, 4900, speed=122.0, timestamp=2.0)) is True

        assert session.collector.get_data_point_count() == 2
        assert session.tracker.get_total_shifts() == 1

    def test_rejected_sample_still_tracked(self, session):
        session.process_tick(make_tick(3, 6500, throttle=1.0, timestamp=0.0))
        accepted = session.process_tick(make_tick(4, 4900, throttle=0.5, timestamp=0.05))

        assert accepted is False
        assert session.collector.rejection_counts[RejectionReason.PARTIAL_THROTTLE] == 1
        assert session.tracker.get_total_shifts() == 1

    def test_clock_used_without_timestamp(self, session, clock):
        session.process_tick(make_tick(3, 6000))

        assert session.collector.get_samples(3)[0].timestamp == pytest.approx(1000.0)

    def test_lap_timing_forwarded(self, session):
        session.process_tick(make_tick(timestamp=0.0, lap_timing=LapTimingData(completed_laps=1)))
        session.process_tick(make_tick(
            timestamp=0.05,
            lap_timing=LapTimingData(completed_laps=2, last_lap_time_ms=98000),
        ))

        assert session.tracker.get_total_laps() == 1
        assert session.tracker.lap_history[0].lap_time_ms == 98000


class TestSplitFeeds:

    def test_add_data_point_skips_tracker(self, session):
        session.add_data_point(6500, 1.0, 120.0, 3, timestamp=0.0)
        session.add_data_point(4900, 1.0, 121.0, 4, timestamp=2.0)

        assert session.collector.get_data_point_count() == 2
        assert session.tracker.get_total_shifts() == 0

    def test_update_shift_tracking_skips_collector(self, session):
        session.update_shift_tracking(3, 6500, 1.0, 120.0, timestamp=0.0)
        session.update_shift_tracking(4, 4900, 1.0, 121.0, timestamp=0.05)

        assert session.collector.get_data_point_count() == 0
        assert session.tracker.get_total_shifts() == 1


class TestQueriesWithoutData:

    def test_no_recommendations(self, session):
        assert session.calculate_optimal_upshift_rpm(3) is None
        assert session.calculate_optimal_downshift_rpm(3, 2) is None
        assert session.generate_optimal_config() is None
        assert session.generate_optimal_shift_points() == {}
        assert session.get_gear_recommendation_engine() is None
        assert session.get_recommendation_for_gear(3, 7000).has_recommendation is False

    def test_reports_available(self, session):
        assert isinstance(session.generate_detailed_report("Test Car"), DataCollectionReport)
        assert isinstance(session.generate_performance_report(), ShiftPatternReport)
        assert isinstance(session.generate_learning_report(), LearningReport)


def test_stats(session):
    session.process_tick(make_tick(3, 6000, timestamp=0.0))
    session.process_tick(make_tick(3, 6100, speed=50.0, timestamp=0.05))

    stats = session.get_stats()

    assert stats["session_id"] == "test_session"
    assert stats["ticks_processed"] == 2
    assert stats["total_data_points"] == 1
    assert stats["data_points_by_gear"][3] == 1
    assert stats["rejections"] == {RejectionReason.PIT_LIMITER: 1}
    assert stats["learning_rate"] == pytest.approx(0.2)


def test_generated_session_id():
    assert ShiftSession().session_id != ShiftSession().session_id


class TestSimulatedSession:
    """End to end through the mock telemetry generator."""

    @pytest.fixture
    def simulated(self, engine_settings):
        session = ShiftSession(engine_settings, session_id="simulated")
        generator = MockTelemetryGenerator(seed=11)
        for tick in generator.generate_acceleration_session(repeats=5):
            session.process_tick(tick)
        for tick in generator.generate_session(num_laps=6, off_track_laps=(4,)):
            session.process_tick(tick)
        return session

    def test_out_lap_and_off_track_lap(self, simulated):
        stats = simulated.get_stats()

        # Out-lap is never scored, lap 4 went off track
        assert stats["total_laps"] == 5
        assert stats["valid_laps"] == 4
        assert stats["learning_rate"] == pytest.approx(0.2 + 4 / 25)
        assert stats["total_shifts"] > 0

    def test_shift_points_within_rev_range(self, simulated):
        points = simulated.generate_optimal_shift_points()

        assert set(range(1, 6)) <= set(points)
        assert all(5000 <= rpm <= 8000 for rpm in points.values())

    def test_gear_recommendation_engine(self, simulated):
        engine = simulated.get_gear_recommendation_engine()

        assert isinstance(engine, GearRecommendationEngine)
        assert engine.get_optimal_gear_for_speed(120.0, 1.0) in range(1, 7)

    def test_reports(self, simulated):
        detailed = simulated.generate_detailed_report("Mock Car")
        performance = simulated.generate_performance_report()

        assert detailed.total_data_points == simulated.collector.get_data_point_count()
        assert performance.valid_laps == 4
        assert performance.best_lap_time_ms is not None

    def test_shift_points_stable_across_reports(self, simulated):
        first = simulated.generate_optimal_shift_points()
        simulated.generate_learning_report()
        simulated.generate_detailed_report("Mock Car")
        simulated.generate_performance_report()
        second = simulated.generate_optimal_shift_points()

        assert first
        assert first == second
        assert simulated.get_stats()["learning_rate"] == pytest.approx(0.2 + 4 / 25)

    def test_clear(self, simulated):
        assert simulated.generate_optimal_shift_points()

        simulated.clear()

        assert simulated.generate_optimal_shift_points() == {}
        assert simulated.collector.get_data_point_count() == 0
        assert simulated.tracker.analyze_optimal_shift_points(min_laps=0) == {}
        assert simulated.get_stats()["ticks_processed"] == 0
        assert simulated.tracker.current_lap_number == 0
