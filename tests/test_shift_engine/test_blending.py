"""Tests for adaptive blending of physics and performance shift points."""

import pytest

from config.settings import LearningSettings
from shift_engine import (
    AdaptiveBlendingEngine,
    ConfidenceAssessment,
    LearningPhase,
    RecommendationSource,
    ShiftDirection,
)


@pytest.fixture
def pinned(monkeypatch, blending):
    """
    Pin both estimators, the valid lap count and the physics confidence.

    Returns a setter taking ``physics``, ``performance``, ``valid_laps``
    and ``physics_confidence``.
    """
    def _pin(physics=None, performance=None, valid_laps=0, physics_confidence=1.0):
        monkeypatch.setattr(blending, "get_physics_based_shift_points", lambda: dict(physics or {}))
        monkeypatch.setattr(blending, "get_performance_based_shift_points", lambda: dict(performance or {}))
        monkeypatch.setattr(blending.tracker, "get_valid_laps", lambda: valid_laps)
        monkeypatch.setattr(
            blending.analyzer,
            "assess_confidence",
            lambda gear: ConfidenceAssessment(score=physics_confidence, reason="pinned", sample_count=200),
        )
        return blending

    return _pin


class TestLearningRate:

    @pytest.mark.parametrize("valid_laps,expected", [
        (0, 0.2),
        (5, 0.4),
        (10, 0.6),
        (15, 0.8),
        (25, 0.8),
        (100, 0.8),
    ])
    def test_grows_with_valid_laps_up_to_cap(self, pinned, valid_laps, expected):
        engine = pinned(valid_laps=valid_laps)

        assert engine.learning_rate == pytest.approx(expected)

    def test_counts_only_valid_laps(self, blending, driver):
        driver.drive_lap([], 100000)
        driver.drive_lap([], 100000, valid=False)

        assert blending.learning_rate == pytest.approx(0.2 + 1 / 25)

    def test_stateless_between_queries(self, pinned):
        engine = pinned(physics={3: 7000}, performance={3: 7300}, valid_laps=4)

        first = engine.generate_optimal_shift_points()
        second = engine.generate_optimal_shift_points()

        assert first == second
        assert engine.learning_rate == pytest.approx(0.2 + 4 / 25)


class TestBlendWeights:

    def test_weights_at_base_rate(self, blending):
        physics, performance = blending.blend_weights(0.2)

        assert physics == pytest.approx(0.36)
        assert performance == pytest.approx(0.72)

    def test_weights_at_cap(self, blending):
        physics, performance = blending.blend_weights(0.8)

        assert physics == pytest.approx(0.24)
        assert performance == pytest.approx(1.08)

    def test_physics_decay_configurable(self, analyzer, tracker):
        engine = AdaptiveBlendingEngine(analyzer, tracker, LearningSettings(physics_decay=0.0))

        physics, performance = engine.blend_weights(0.8)

        assert physics == pytest.approx(0.4)
        assert performance == pytest.approx(1.08)

    def test_performance_gains_trust(self, blending):
        low = blending.blend_weights(0.2)
        high = blending.blend_weights(0.8)

        assert high[1] / (high[0] + high[1]) > low[1] / (low[0] + low[1])


class TestOptimalShiftPoints:

    def test_blend_when_both_available(self, pinned):
        engine = pinned(physics={3: 7000}, performance={3: 7300})

        # (7000 x 0.36 + 7300 x 0.72) / 1.08
        assert abs(engine.generate_optimal_shift_points()[3] - 7200) <= 1

    def test_blend_leans_on_performance_later(self, pinned):
        engine = pinned(physics={3: 7000}, performance={3: 7300}, valid_laps=15)

        # (7000 x 0.24 + 7300 x 1.08) / 1.32
        assert abs(engine.generate_optimal_shift_points()[3] - 7245) <= 1

    def test_blend_lies_between_sources(self, pinned):
        engine = pinned(physics={2: 6400}, performance={2: 6000}, valid_laps=7)

        assert 6000 <= engine.generate_optimal_shift_points()[2] <= 6400

    def test_single_source_used_directly(self, pinned):
        engine = pinned(physics={1: 7300, 2: 7100}, performance={4: 6900})

        assert engine.generate_optimal_shift_points() == {1: 7300, 2: 7100, 4: 6900}

    def test_no_estimates(self, pinned):
        assert pinned().generate_optimal_shift_points() == {}

    def test_only_display_gears_reported(self, pinned):
        engine = pinned(physics={6: 7000, 7: 7000})

        assert engine.generate_optimal_shift_points() == {6: 7000}

    def test_performance_needs_three_valid_laps(self, blending, driver):
        driver.drive_lap([6600, 6650, 7000], 101000)
        driver.drive_lap([6700, 7050, 7100], 99000)

        assert blending.tracker.analyze_optimal_shift_points(min_laps=2) == {3: 7000}
        assert blending.get_performance_based_shift_points() == {}

        driver.drive_lap([6750, 7150], 100000)

        assert blending.get_performance_based_shift_points() == {3: 7000}
        assert blending.generate_optimal_shift_points() == {3: 7000}


class TestRecommendations:

    def test_sources_and_confidence(self, pinned):
        engine = pinned(
            physics={2: 7000, 3: 7100},
            performance={3: 7150, 4: 6900},
            physics_confidence=0.8,
        )

        recs = engine.generate_recommendations()

        assert recs[2].source == RecommendationSource.PHYSICS
        assert recs[2].confidence == pytest.approx(0.8)

        assert recs[4].source == RecommendationSource.PERFORMANCE
        assert recs[4].confidence == pytest.approx(0.2)

        assert recs[3].source == RecommendationSource.BLENDED
        # (0.8 x 0.36 + 0.2 x 0.72) / 1.08
        assert recs[3].confidence == pytest.approx(0.4)

    def test_interpretations(self, pinned):
        engine = pinned(
            physics={1: 7000, 2: 7000, 3: 7000, 4: 7000},
            performance={1: 7050, 2: 7300, 3: 6600, 5: 6900},
        )

        recs = engine.generate_recommendations()

        assert recs[1].interpretation == "Physics and performance agree - high confidence"
        assert recs[2].interpretation == "Performance suggests shifting 300 RPM later"
        assert recs[3].interpretation == "Performance suggests shifting 400 RPM earlier"
        assert recs[4].interpretation == "Using physics-based calculation (need more lap data)"
        assert recs[5].interpretation == "Using performance-based calculation (need more telemetry data)"
        assert 6 not in recs


class TestRecommendationForGear:

    @pytest.mark.parametrize("current,direction,message", [
        (7050, ShiftDirection.OPTIMAL, "Current shift point is optimal"),
        (6950, ShiftDirection.OPTIMAL, "Current shift point is optimal"),
        (7200, ShiftDirection.EARLIER,
         "Shifting slightly late: try shifting 200 RPM earlier for better performance"),
        (6900, ShiftDirection.LATER,
         "Shifting slightly early: try shifting 100 RPM later for better performance"),
        (6500, ShiftDirection.LATER,
         "Shifting moderately early: try shifting 500 RPM later for better performance"),
        (7300, ShiftDirection.EARLIER,
         "Shifting moderately late: try shifting 300 RPM earlier for better performance"),
        (7700, ShiftDirection.EARLIER,
         "Shifting significantly late: try shifting 700 RPM earlier for better performance"),
    ])
    def test_messages(self, pinned, current, direction, message):
        engine = pinned(physics={3: 7000})

        rec = engine.get_recommendation_for_gear(3, current)

        assert rec.has_recommendation is True
        assert rec.recommended_rpm == 7000
        assert rec.difference == current - 7000
        assert rec.direction == direction
        assert rec.message == message

    def test_confidence_is_learning_rate(self, pinned):
        engine = pinned(physics={3: 7000}, valid_laps=10)

        assert engine.get_recommendation_for_gear(3, 7500).confidence == pytest.approx(0.6)

    def test_insufficient_data(self, pinned):
        engine = pinned(physics={3: 7000})

        rec = engine.get_recommendation_for_gear(4, 7000)

        assert rec.has_recommendation is False
        assert rec.recommended_rpm is None
        assert rec.direction == ShiftDirection.UNKNOWN
        assert rec.message == "Insufficient data for recommendation"


class TestLearningReport:

    @pytest.mark.parametrize("lr,phase", [
        (0.2, LearningPhase.CONSERVATIVE),
        (0.29, LearningPhase.CONSERVATIVE),
        (0.3, LearningPhase.MODERATE),
        (0.59, LearningPhase.MODERATE),
        (0.6, LearningPhase.AGGRESSIVE),
        (0.8, LearningPhase.AGGRESSIVE),
    ])
    def test_phase(self, blending, lr, phase):
        assert blending.learning_phase(lr) == phase

    def test_report_covers_every_gear(self, pinned):
        engine = pinned(physics={3: 7000, 4: 7100}, performance={3: 7050, 5: 6800})

        report = engine.generate_learning_report()

        assert report.learning_rate == pytest.approx(0.2)
        assert report.learning_phase == LearningPhase.CONSERVATIVE
        assert [g.gear for g in report.gear_reports] == [1, 2, 3, 4, 5, 6]

        by_gear = {g.gear: g for g in report.gear_reports}
        assert by_gear[1].interpretation == "Insufficient data"
        assert by_gear[1].blended_rpm is None

        assert by_gear[3].physics_based_rpm == 7000
        assert by_gear[3].performance_based_rpm == 7050
        assert by_gear[3].difference == 50
        assert by_gear[3].interpretation == "Physics and performance agree - high confidence"

        assert by_gear[4].blended_rpm == 7100
        assert by_gear[4].difference == 0
        assert by_gear[5].blended_rpm == 6800

    def test_report_counts_from_tracker(self, blending, driver):
        driver.drive_lap([6600, 6650], 100000)
        driver.drive_lap([7000], 100000, valid=False)

        report = blending.generate_learning_report()

        assert report.total_laps == 2
        assert report.valid_laps == 1
        assert report.total_shifts == 3
