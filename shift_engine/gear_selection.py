"""Sustained-power gear selection from acceleration curves."""

from typing import Dict, Optional

from app.utils.logger import get_logger
from config import constants as C
from shift_engine.schemas import OptimalShiftConfig

logger = get_logger(__name__)


class GearRecommendationEngine:
    """
    Recommend the gear giving the best sustained acceleration at a speed.

    Unlike the shift-point analysis, which optimises the instant of an
    upshift, this scores each gear over the next few km/h, as matters in
    long corners and uphill sections.
    """

    def __init__(
        self,
        acceleration_curves: Dict[int, Dict[int, float]],
        rpm_per_kmh: Optional[Dict[int, float]] = None,
        bucket_size_rpm: int = C.ACCEL_BUCKET_SIZE_RPM,
    ):
        """
        Initialize engine.

        Args:
            acceleration_curves: Gear -> (RPM bucket -> km/h per second)
            rpm_per_kmh: Gear -> mean RPM per km/h; without it a gear is
                scored by the mean of its whole curve
            bucket_size_rpm: Width of the curve buckets
        """
        self.acceleration_curves = acceleration_curves or {}
        self.rpm_per_kmh = rpm_per_kmh or {}
        self.bucket_size_rpm = bucket_size_rpm

    @classmethod
    def from_config(cls, config: OptimalShiftConfig) -> "GearRecommendationEngine":
        return cls(config.acceleration_curves, config.rpm_per_kmh)

    def is_available(self) -> bool:
        return bool(self.acceleration_curves)

    def get_optimal_gear_for_speed(self, speed: float, throttle: float) -> Optional[int]:
        """
        Best gear for sustained power at the given speed.

        Args:
            speed: Current road speed in km/h
            throttle: Current throttle position (0-1)

        Returns:
            Gear number, or None below the minimum speed or without curves
        """
        if speed < C.MIN_GEAR_SELECTION_SPEED_KMH or not self.is_available():
            return None

        best_gear: Optional[int] = None
        best_score = float("-inf")

        for gear in C.ANALYZED_GEARS:
            score = self.sustained_acceleration_score(gear, speed, throttle)
            if score is not None and score > best_score:
                best_score = score
                best_gear = gear

        logger.debug(f"Sustained gear at {speed:.0f} km/h: {best_gear}")
        return best_gear

    def sustained_acceleration_score(self, gear: int, speed: float, throttle: float) -> Optional[float]:
        """
        Weighted mix of the acceleration now and over the next speed range.

        Partial throttle weights the sustained average more heavily.
        """
        current = self.acceleration_at_speed(gear, speed)
        if current is None:
            return None

        sustained_weight = 0.8 if throttle < C.FULL_THROTTLE_THRESHOLD else 0.6

        values = []
        target = speed
        while target <= speed + C.SUSTAINED_SPEED_RANGE_KMH:
            accel = self.acceleration_at_speed(gear, target)
            if accel is not None:
                values.append(accel)
            target += C.SUSTAINED_SPEED_STEP_KMH

        sustained = sum(values) / len(values)
        return current * (1.0 - sustained_weight) + sustained * sustained_weight

    def acceleration_at_speed(self, gear: int, speed: float) -> Optional[float]:
        """
        Acceleration a gear delivers at a road speed.

        The speed is converted to engine RPM with the gear's RPM-per-km/h
        characteristic and looked up in the nearest curve bucket. Speeds
        that put the engine outside the observed RPM range return None.
        """
        curve = self.acceleration_curves.get(gear)
        if not curve:
            return None

        ratio = self.rpm_per_kmh.get(gear)
        if not ratio:
            return sum(curve.values()) / len(curve)

        rpm = speed * ratio
        buckets = sorted(curve)
        if rpm < buckets[0] - self.bucket_size_rpm or rpm > buckets[-1] + self.bucket_size_rpm:
            return None

        nearest = min(buckets, key=lambda b: abs(b - rpm))
        return curve[nearest]
