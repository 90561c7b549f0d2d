"""Adaptive blending of physics and lap-outcome shift points."""

from typing import Dict, Optional, Tuple

from app.utils.logger import get_logger
from config import constants as C
from config.settings import LearningSettings
from shift_engine.acceleration import AccelerationCurveAnalyzer
from shift_engine.schemas import (
    GearLearningReport,
    LearningPhase,
    LearningReport,
    RecommendationSource,
    ShiftDirection,
    ShiftPointRecommendation,
    ShiftRecommendation,
)
from shift_engine.shift_tracker import ShiftPatternTracker

logger = get_logger(__name__)


# Upper bounds (exclusive) of the magnitude labels for live suggestions
MAGNITUDE_LABELS = ((300, "slightly"), (700, "moderately"))


class AdaptiveBlendingEngine:
    """
    Combine the two shift-point estimators per gear.

    Trust moves from the acceleration curves towards lap outcomes as valid
    laps accumulate. The learning rate is derived from the tracker on every
    call, so queries have no side effects and repeat identically.
    """

    def __init__(
        self,
        analyzer: AccelerationCurveAnalyzer,
        tracker: ShiftPatternTracker,
        settings: Optional[LearningSettings] = None,
    ):
        self.analyzer = analyzer
        self.tracker = tracker
        self.settings = settings or LearningSettings()
        logger.info(
            f"Blending engine initialized (physics {self.settings.physics_weight}, "
            f"performance {self.settings.performance_weight})"
        )

    @property
    def learning_rate(self) -> float:
        """Trust in lap outcomes, growing with valid laps up to the cap."""
        s = self.settings
        valid_laps = self.tracker.get_valid_laps()
        return min(s.max_learning_rate, s.base_learning_rate + valid_laps / s.laps_per_learning_unit)

    def blend_weights(self, learning_rate: float) -> Tuple[float, float]:
        """
        Physics and performance weights for a learning rate.

        Returns:
            Tuple of (physics_weight, performance_weight)
        """
        performance = self.settings.performance_weight * (1.0 + learning_rate)
        physics = self.settings.physics_weight * (1.0 - self.settings.physics_decay * learning_rate)
        return physics, performance

    def get_physics_based_shift_points(self) -> Dict[int, int]:
        points: Dict[int, int] = {}
        for gear in C.ANALYZED_GEARS:
            rpm = self.analyzer.calculate_optimal_upshift_rpm(gear)
            if rpm is not None:
                points[gear] = rpm
        return points

    def get_performance_based_shift_points(self) -> Dict[int, int]:
        return self.tracker.analyze_optimal_shift_points(min_laps=self.settings.min_laps_for_learning)

    def _blend(self, physics_rpm: int, performance_rpm: int, learning_rate: float) -> int:
        physics_w, performance_w = self.blend_weights(learning_rate)
        return int((physics_rpm * physics_w + performance_rpm * performance_w) / (physics_w + performance_w))

    def generate_optimal_shift_points(self) -> Dict[int, int]:
        """
        Final shift point per gear.

        Gears with both estimates are blended; gears with one use it
        directly; gears with neither are omitted.

        Returns:
            Gear -> upshift RPM
        """
        return {
            gear: rec.blended_rpm
            for gear, rec in self.generate_recommendations().items()
            if rec.blended_rpm is not None
        }

    def generate_recommendations(self) -> Dict[int, ShiftRecommendation]:
        """
        Per-gear recommendation with confidence and interpretation.

        Confidence is the physics data confidence when only the curves
        contribute, the learning rate when only lap outcomes contribute, and
        their blend-weighted mean when both do.
        """
        lr = self.learning_rate
        physics_points = self.get_physics_based_shift_points()
        performance_points = self.get_performance_based_shift_points()
        physics_w, performance_w = self.blend_weights(lr)

        recommendations: Dict[int, ShiftRecommendation] = {}
        for gear in C.ANALYZED_GEARS:
            physics_rpm = physics_points.get(gear)
            performance_rpm = performance_points.get(gear)
            if physics_rpm is None and performance_rpm is None:
                continue

            rec = ShiftRecommendation(
                gear=gear,
                physics_rpm=physics_rpm,
                performance_rpm=performance_rpm,
                interpretation=self._interpret(physics_rpm, performance_rpm),
            )

            if physics_rpm is not None and performance_rpm is not None:
                physics_conf = self.analyzer.assess_confidence(gear).score
                rec.blended_rpm = self._blend(physics_rpm, performance_rpm, lr)
                rec.source = RecommendationSource.BLENDED
                rec.confidence = (physics_conf * physics_w + lr * performance_w) / (physics_w + performance_w)
            elif physics_rpm is not None:
                rec.blended_rpm = physics_rpm
                rec.source = RecommendationSource.PHYSICS
                rec.confidence = self.analyzer.assess_confidence(gear).score
            else:
                rec.blended_rpm = performance_rpm
                rec.source = RecommendationSource.PERFORMANCE
                rec.confidence = lr

            recommendations[gear] = rec

        blended = {gear: rec.blended_rpm for gear, rec in recommendations.items()}
        logger.debug(f"Blended shift points at lr={lr:.2f}: {blended}")
        return recommendations

    def _interpret(self, physics_rpm: Optional[int], performance_rpm: Optional[int]) -> str:
        """Human-readable agreement between the two estimates."""
        if physics_rpm is not None and performance_rpm is not None:
            difference = performance_rpm - physics_rpm
            if abs(difference) < self.settings.agreement_tolerance_rpm:
                return "Physics and performance agree - high confidence"
            if difference > 0:
                return f"Performance suggests shifting {difference} RPM later"
            return f"Performance suggests shifting {-difference} RPM earlier"
        if physics_rpm is not None:
            return "Using physics-based calculation (need more lap data)"
        if performance_rpm is not None:
            return "Using performance-based calculation (need more telemetry data)"
        return "Insufficient data"

    def get_recommendation_for_gear(self, gear: int, current_threshold: int) -> ShiftPointRecommendation:
        """
        Compare the driver's current shift threshold with the learned one.

        Args:
            gear: Gear the threshold applies to
            current_threshold: RPM the driver currently shifts at

        Returns:
            ShiftPointRecommendation (``has_recommendation`` is False when the
            gear has no estimate yet)
        """
        recommended = self.generate_optimal_shift_points().get(gear)
        if recommended is None:
            return ShiftPointRecommendation(
                gear=gear,
                current_rpm=current_threshold,
                has_recommendation=False,
                message="Insufficient data for recommendation",
            )

        difference = current_threshold - recommended
        rec = ShiftPointRecommendation(
            gear=gear,
            current_rpm=current_threshold,
            recommended_rpm=recommended,
            difference=difference,
            has_recommendation=True,
            confidence=self.learning_rate,
        )

        magnitude = abs(difference)
        if magnitude < self.settings.agreement_tolerance_rpm:
            rec.direction = ShiftDirection.OPTIMAL
            rec.message = "Current shift point is optimal"
            return rec

        label = next((name for bound, name in MAGNITUDE_LABELS if magnitude < bound), "significantly")
        if difference > 0:
            rec.direction = ShiftDirection.EARLIER
            rec.message = f"Shifting {label} late: try shifting {magnitude} RPM earlier for better performance"
        else:
            rec.direction = ShiftDirection.LATER
            rec.message = f"Shifting {label} early: try shifting {magnitude} RPM later for better performance"
        return rec

    def learning_phase(self, learning_rate: Optional[float] = None) -> LearningPhase:
        lr = self.learning_rate if learning_rate is None else learning_rate
        if lr < 0.3:
            return LearningPhase.CONSERVATIVE
        if lr < 0.6:
            return LearningPhase.MODERATE
        return LearningPhase.AGGRESSIVE

    def generate_learning_report(self) -> LearningReport:
        """Compare physics, performance and blended shift points per gear."""
        lr = self.learning_rate
        recommendations = self.generate_recommendations()

        report = LearningReport(
            learning_rate=lr,
            learning_phase=self.learning_phase(lr),
            total_laps=self.tracker.get_total_laps(),
            valid_laps=self.tracker.get_valid_laps(),
            total_shifts=self.tracker.get_total_shifts(),
        )

        for gear in C.ANALYZED_GEARS:
            rec = recommendations.get(gear)
            if rec is None:
                report.gear_reports.append(GearLearningReport(gear=gear, interpretation="Insufficient data"))
                continue

            gear_report = GearLearningReport(
                gear=gear,
                physics_based_rpm=rec.physics_rpm,
                performance_based_rpm=rec.performance_rpm,
                blended_rpm=rec.blended_rpm,
                interpretation=rec.interpretation,
            )
            if rec.physics_rpm is not None and rec.performance_rpm is not None:
                gear_report.difference = rec.performance_rpm - rec.physics_rpm
            report.gear_reports.append(gear_report)

        return report
