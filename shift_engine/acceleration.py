"""
Acceleration Curve Analyzer - Physics-derived upshift points

Builds per-gear acceleration-versus-RPM profiles from the collector's
full-throttle samples and finds, for each gear, the engine speed at which
the next gear starts to accelerate the car harder. Gears with no usable
crossover fall back to a top-speed heuristic.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np

from app.utils.logger import get_logger
from app.utils.time_utils import utc_now
from config import constants as C
from config.settings import AnalyzerSettings
from shift_engine.collector import SampleCollector
from shift_engine.schemas import (
    ConfidenceAssessment,
    DataCollectionReport,
    GearAnalysis,
    OptimalShiftConfig,
)

logger = get_logger(__name__)


class AccelerationCurveAnalyzer:
    """Estimate optimal upshift RPM per gear from acceleration curves."""

    def __init__(self, collector: SampleCollector, settings: Optional[AnalyzerSettings] = None):
        """
        Initialize analyzer.

        Args:
            collector: Sample source (read-only access)
            settings: Analysis thresholds (defaults when omitted)
        """
        self.collector = collector
        self.settings = settings or AnalyzerSettings()
        self.session_start: datetime = utc_now()

        logger.info(
            f"Acceleration analyzer initialized "
            f"(min {self.settings.min_samples_per_gear} samples/gear, "
            f"advantage > {self.settings.advantage_threshold:.0%})"
        )

    # ------------------------------------------------------------------
    # Sample access
    # ------------------------------------------------------------------

    def _arrays(self, gear: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Timestamps, RPM and speed of a gear's samples as arrays."""
        samples = self.collector.get_samples(gear)
        times = np.fromiter((s.timestamp for s in samples), dtype=float, count=len(samples))
        rpm = np.fromiter((s.rpm for s in samples), dtype=np.int64, count=len(samples))
        speed = np.fromiter((s.speed_kmh for s in samples), dtype=float, count=len(samples))
        return times, rpm, speed

    def _has_enough_samples(self, gear: int) -> bool:
        return self.collector.get_data_point_count_for_gear(gear) >= self.settings.min_samples_per_gear

    # ------------------------------------------------------------------
    # Profiles and ratios
    # ------------------------------------------------------------------

    def build_acceleration_profile(self, gear: int) -> Dict[int, float]:
        """
        Build the acceleration-versus-RPM profile of a gear.

        Consecutive sample pairs contribute when their time gap lies in the
        sampling window and the car gained speed. Each pair is assigned to the
        RPM bucket of its mean engine speed; buckets backed by too few pairs
        are discarded.

        Args:
            gear: Gear number

        Returns:
            RPM bucket -> mean acceleration (km/h per second), may be empty
        """
        times, rpm, speed = self._arrays(gear)
        if len(times) < 2:
            return {}

        window = self.collector.settings
        dt = np.diff(times)
        dv = np.diff(speed)
        valid = (dt > window.min_sample_interval_s) & (dt <= window.max_sample_interval_s) & (dv > 0)
        if not valid.any():
            return {}

        accel = dv[valid] / dt[valid]
        mean_rpm = (rpm[:-1] + rpm[1:])[valid] // 2
        size = self.settings.accel_bucket_size_rpm
        buckets = (mean_rpm // size) * size

        keys, inverse, counts = np.unique(buckets, return_inverse=True, return_counts=True)
        sums = np.bincount(inverse, weights=accel)

        return {
            int(key): float(total / count)
            for key, total, count in zip(keys, sums, counts)
            if count >= self.settings.min_pairs_per_bucket
        }

    def estimate_gear_ratio(self, gear: int) -> Optional[float]:
        """
        Estimate the RPM ratio between a gear and the next one.

        Uses the speed window both gears were observed in: the mean RPM per
        km/h of the lower gear divided by that of the upper gear.

        Args:
            gear: Lower gear of the pair

        Returns:
            Ratio (> 0) or None when the gears share no speed window
        """
        _, rpm_cur, speed_cur = self._arrays(gear)
        _, rpm_next, speed_next = self._arrays(gear + 1)
        if len(speed_cur) == 0 or len(speed_next) == 0:
            return None

        low = max(speed_cur.min(), speed_next.min())
        high = min(speed_cur.max(), speed_next.max())
        if low >= high:
            return None

        in_cur = (speed_cur >= low) & (speed_cur <= high)
        in_next = (speed_next >= low) & (speed_next <= high)
        if not in_cur.any() or not in_next.any():
            return None

        cur_rpm_per_kmh = float(np.mean(rpm_cur[in_cur] / speed_cur[in_cur]))
        next_rpm_per_kmh = float(np.mean(rpm_next[in_next] / speed_next[in_next]))
        if next_rpm_per_kmh <= 0:
            return None

        ratio = cur_rpm_per_kmh / next_rpm_per_kmh
        return ratio if ratio > 0 else None

    def estimate_rpm_per_kmh(self, gear: int) -> Optional[float]:
        """Mean engine RPM per km/h of road speed in a gear."""
        _, rpm, speed = self._arrays(gear)
        if len(speed) == 0:
            return None
        return float(np.mean(rpm / speed))

    # ------------------------------------------------------------------
    # Shift points
    # ------------------------------------------------------------------

    def calculate_optimal_upshift_rpm(self, gear: int) -> Optional[int]:
        """
        Calculate the optimal upshift RPM for a gear.

        The curve of the current gear is scanned from low to high RPM; the
        first bucket where the next gear (at the RPM it would land on after
        the shift) accelerates meaningfully harder is the shift point.

        Args:
            gear: Gear to shift out of

        Returns:
            Upshift RPM, or None with insufficient data
        """
        if not self._has_enough_samples(gear):
            return None

        cur_profile = self.build_acceleration_profile(gear)
        if not cur_profile:
            return None

        next_profile = self.build_acceleration_profile(gear + 1)
        if not self._has_enough_samples(gear + 1) or not next_profile:
            logger.debug(f"Gear {gear}: no usable next-gear curve, using max-speed fallback")
            return self._max_speed_fallback(gear)

        ratio = self.estimate_gear_ratio(gear)
        if ratio is None:
            logger.debug(f"Gear {gear}: no speed overlap with gear {gear + 1}, using max-speed fallback")
            return self._max_speed_fallback(gear)

        next_buckets = np.array(sorted(next_profile))
        tolerance = self.settings.match_tolerance_rpm

        for bucket in sorted(cur_profile):
            cur_accel = cur_profile[bucket]
            if cur_accel <= 0:
                continue

            next_rpm = int(bucket / ratio)
            distances = np.abs(next_buckets - next_rpm)
            nearest = int(np.argmin(distances))  # first minimum, i.e. lower RPM on ties
            if distances[nearest] > tolerance:
                continue

            next_accel = next_profile[int(next_buckets[nearest])]
            advantage = (next_accel - cur_accel) / cur_accel
            if advantage > self.settings.advantage_threshold:
                logger.debug(
                    f"Gear {gear}: crossover at {bucket} rpm "
                    f"(lands at {next_rpm} rpm, advantage {advantage:.1%})"
                )
                return int(bucket)

        logger.debug(f"Gear {gear}: no crossover found, using max-speed fallback")
        return self._max_speed_fallback(gear)

    def _max_speed_fallback(self, gear: int) -> Optional[int]:
        """
        Shift point from the top of the gear's speed range.

        If the car is still pulling hard near the rev limit, shift just
        below it; otherwise shift where the speed plateaus.
        """
        _, rpm, speed = self._arrays(gear)
        if len(rpm) == 0:
            return None

        max_rpm = int(rpm.max())
        max_speed = float(speed.max())
        s = self.settings

        top_band = rpm >= s.top_rpm_band_factor * max_rpm
        if float(speed[top_band].mean()) >= s.strong_pull_speed_factor * max_speed:
            return int(max_rpm * s.near_redline_shift_factor)

        plateau = speed >= s.speed_plateau_factor * max_speed
        return int(rpm[plateau].max())

    def calculate_optimal_downshift_rpm(self, from_gear: int, to_gear: int) -> Optional[int]:
        """
        Calculate the RPM at which to downshift into ``to_gear``.

        Args:
            from_gear: Current gear
            to_gear: Target (lower) gear

        Returns:
            Downshift RPM, or None if not a downshift or no data
        """
        if to_gear >= from_gear:
            return None

        upshift_rpm = self.calculate_optimal_upshift_rpm(to_gear)
        if upshift_rpm is None:
            return None

        return int(upshift_rpm * self.settings.downshift_factor)

    # ------------------------------------------------------------------
    # Confidence and reports
    # ------------------------------------------------------------------

    def assess_confidence(self, gear: int) -> ConfidenceAssessment:
        """Data confidence for a gear's estimate, based on sample count."""
        count = self.collector.get_data_point_count_for_gear(gear)
        minimum = self.settings.min_samples_per_gear

        if count < minimum:
            return ConfidenceAssessment(
                score=0.0,
                reason=f"Insufficient data: only {count} points (need at least {minimum})",
                sample_count=count,
            )

        (acceptable_below, acceptable), (good_below, good) = C.CONFIDENCE_TIERS
        if count < acceptable_below:
            score, reason = acceptable, f"Acceptable confidence: {count} points (sufficient data collected)"
        elif count < good_below:
            score, reason = good, f"Good confidence: {count} points (good data collected)"
        else:
            score, reason = 1.0, f"High confidence: {count} points (abundant data collected)"

        return ConfidenceAssessment(score=score, reason=reason, sample_count=count)

    def get_smoothed_data_for_gear(self, gear: int, bucket_size: int = 100) -> Dict[int, float]:
        """
        Mean speed per RPM bucket, for plotting a gear's pull.

        Args:
            gear: Gear number
            bucket_size: RPM bucket width

        Returns:
            RPM bucket -> mean speed (km/h), ascending by RPM
        """
        _, rpm, speed = self._arrays(gear)
        if len(rpm) == 0:
            return {}

        buckets = (rpm // bucket_size) * bucket_size
        keys, inverse, counts = np.unique(buckets, return_inverse=True, return_counts=True)
        sums = np.bincount(inverse, weights=speed)
        return {int(k): float(s / n) for k, s, n in zip(keys, sums, counts)}

    def generate_optimal_config(self) -> Optional[OptimalShiftConfig]:
        """
        Analyse every tracked gear and build a shift configuration.

        Returns:
            OptimalShiftConfig, or None unless at least three gears produced
            an upshift point
        """
        config = OptimalShiftConfig(total_data_points=self.collector.get_data_point_count())
        gears = self.collector.tracked_gears

        for gear in gears:
            upshift_rpm = self.calculate_optimal_upshift_rpm(gear)
            if upshift_rpm is not None:
                config.optimal_upshift_rpm[gear] = upshift_rpm
                config.data_confidence[gear] = self.assess_confidence(gear).score

            if not self._has_enough_samples(gear):
                continue

            curve = self.build_acceleration_profile(gear)
            if curve:
                config.acceleration_curves[gear] = curve

            rpm_per_kmh = self.estimate_rpm_per_kmh(gear)
            if rpm_per_kmh is not None:
                config.rpm_per_kmh[gear] = rpm_per_kmh

            if gear + 1 in gears and self._has_enough_samples(gear + 1):
                ratio = self.estimate_gear_ratio(gear)
                if ratio is not None:
                    config.gear_ratios[gear] = ratio

        if len(config.optimal_upshift_rpm) < 3:
            logger.info(
                f"Optimal config not generated: only {len(config.optimal_upshift_rpm)} gear(s) analysed"
            )
            return None

        logger.info(f"Optimal config generated for gears {sorted(config.optimal_upshift_rpm)}")
        return config

    def analyze_gear(self, gear: int) -> GearAnalysis:
        """Detailed data collection analysis for one gear."""
        _, rpm, speed = self._arrays(gear)
        count = len(rpm)

        analysis = GearAnalysis(gear=gear, total_data_points=count, full_throttle_data_points=count)
        if count > 0:
            analysis.min_rpm = int(rpm.min())
            analysis.max_rpm = int(rpm.max())
            analysis.min_speed = float(speed.min())
            analysis.max_speed = float(speed.max())
            keys, counts = np.unique((rpm // 100) * 100, return_counts=True)
            analysis.rpm_distribution = {int(k): int(n) for k, n in zip(keys, counts)}

        analysis.optimal_shift_rpm = self.calculate_optimal_upshift_rpm(gear)

        confidence = self.assess_confidence(gear)
        analysis.confidence_score = confidence.score
        analysis.confidence_reason = confidence.reason
        analysis.passed_confidence_threshold = (
            confidence.score >= self.settings.min_confidence_threshold
            and analysis.optimal_shift_rpm is not None
        )
        return analysis

    def generate_detailed_report(self, vehicle_name: str = "") -> DataCollectionReport:
        """
        Generate a data collection report for the analysed gears.

        Args:
            vehicle_name: Display name of the car

        Returns:
            DataCollectionReport with per-gear analyses and next steps
        """
        analyses: List[GearAnalysis] = [self.analyze_gear(gear) for gear in C.ANALYZED_GEARS]
        total_gears = len(analyses)
        passed = sum(1 for a in analyses if a.passed_confidence_threshold)

        report = DataCollectionReport(
            session_start=self.session_start,
            session_end=utc_now(),
            vehicle_name=vehicle_name,
            total_data_points=self.collector.get_data_point_count(),
            gear_analyses=analyses,
            overall_success=passed == total_gears,
        )

        if report.overall_success:
            report.session_summary = (
                f"SUCCESS: All {total_gears} gears have optimal shift points "
                f"detected with sufficient confidence."
            )
        else:
            report.session_summary = (
                f"INCOMPLETE: {passed}/{total_gears} gears successfully analyzed. "
                f"{total_gears - passed} gear(s) need more data."
            )

        for analysis in analyses:
            if analysis.passed_confidence_threshold:
                continue
            if analysis.optimal_shift_rpm is None:
                report.recommendations.append(
                    f"Gear {analysis.gear}: Could not detect optimal shift point. "
                    f"Make sure to reach near redline in this gear during full throttle."
                )
            else:
                report.recommendations.append(
                    f"Gear {analysis.gear}: Need more full-throttle data points "
                    f"(currently {analysis.full_throttle_data_points}, "
                    f"need at least {self.settings.min_samples_per_gear})."
                )

        if not report.overall_success:
            report.recommendations.append(
                "Perform another hotlap focusing on the gears that failed, "
                "making sure to redline each gear under full throttle."
            )

        logger.info(f"Detailed report for '{vehicle_name}': {report.session_summary}")
        return report

    def reset(self) -> None:
        """Restart the analysis session clock."""
        self.session_start = utc_now()
