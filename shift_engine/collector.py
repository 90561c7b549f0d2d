"""Full-throttle sample collection and filtering."""

import time
from collections import Counter, deque
from typing import Callable, Deque, Dict, Optional, Tuple

from app.utils.logger import get_logger
from app.utils.validators import validate_gear, validate_rpm, validate_speed, validate_throttle
from config.settings import CollectorSettings
from shift_engine.schemas import TelemetrySample

logger = get_logger(__name__)


class RejectionReason:
    """Counter keys for dropped samples."""
    MALFORMED = "malformed"
    UNTRACKED_GEAR = "untracked_gear"
    STANDING_START = "standing_start"
    PIT_LIMITER = "pit_limiter"
    PARTIAL_THROTTLE = "partial_throttle"
    SLOW_RPM_RISE = "slow_rpm_rise"


class SampleCollector:
    """
    Admit telemetry samples into per-gear histories.

    Only samples representative of maximum-effort acceleration are kept:
    the car must be rolling, outside the pit-limiter band, at full throttle
    and with the engine speed actually climbing. Rejected samples are
    silently dropped; the reason is tallied in ``rejection_counts``.
    """

    def __init__(
        self,
        settings: Optional[CollectorSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize collector.

        Args:
            settings: Collection thresholds (defaults when omitted)
            clock: Time source used when a sample carries no timestamp
        """
        self.settings = settings or CollectorSettings()
        self._clock = clock

        self._samples: Dict[int, Deque[TelemetrySample]] = {
            gear: deque(maxlen=self.settings.samples_per_gear_capacity)
            for gear in range(1, self.settings.max_tracked_gear + 1)
        }
        self.rejection_counts: Counter = Counter()

        # Preceding tick, accepted or not, for the rise-rate check
        self._last_rpm: Optional[float] = None
        self._last_time: Optional[float] = None

        logger.info(
            f"Sample collector initialized for gears 1-{self.settings.max_tracked_gear} "
            f"(capacity {self.settings.samples_per_gear_capacity} per gear)"
        )

    def add_sample(
        self,
        rpm: float,
        throttle: float,
        speed: float,
        gear: int,
        timestamp: Optional[float] = None,
    ) -> bool:
        """
        Offer one telemetry sample.

        Args:
            rpm: Engine speed
            throttle: Throttle position (0-1)
            speed: Road speed in km/h
            gear: Current gear
            timestamp: Capture time in seconds (collector clock when None)

        Returns:
            True if the sample was retained
        """
        if not (validate_rpm(rpm)[0] and validate_throttle(throttle)[0]
                and validate_speed(speed)[0]):
            self.rejection_counts[RejectionReason.MALFORMED] += 1
            return False

        now = self._clock() if timestamp is None else timestamp
        reason = self._check(rpm, throttle, speed, now)

        self._last_rpm = rpm
        self._last_time = now

        if reason is None and not validate_gear(gear, self.settings.max_tracked_gear):
            reason = RejectionReason.UNTRACKED_GEAR

        if reason is not None:
            self.rejection_counts[reason] += 1
            return False

        gear = int(gear)
        self._samples[gear].append(TelemetrySample(
            timestamp=now,
            rpm=int(rpm),
            throttle=float(throttle),
            speed_kmh=float(speed),
            gear=gear,
        ))
        return True

    def _check(self, rpm: float, throttle: float, speed: float, now: float) -> Optional[str]:
        """Return the rejection reason for a sample, or None if it passes."""
        s = self.settings

        if speed <= s.standing_start_speed_kmh:
            return RejectionReason.STANDING_START

        if s.pit_limiter_min_kmh <= speed <= s.pit_limiter_max_kmh:
            return RejectionReason.PIT_LIMITER

        if throttle < s.full_throttle_threshold:
            return RejectionReason.PARTIAL_THROTTLE

        if self._last_time is not None:
            elapsed = now - self._last_time
            if s.min_sample_interval_s < elapsed <= s.max_sample_interval_s:
                rise_rate = (rpm - self._last_rpm) / elapsed
                if rise_rate < s.min_rpm_rise_rate:
                    return RejectionReason.SLOW_RPM_RISE

        return None

    def get_samples(self, gear: int) -> Tuple[TelemetrySample, ...]:
        """Chronological samples retained for a gear."""
        return tuple(self._samples.get(gear, ()))

    def get_data_point_count(self) -> int:
        return sum(len(samples) for samples in self._samples.values())

    def get_data_point_count_for_gear(self, gear: int) -> int:
        return len(self._samples.get(gear, ()))

    @property
    def tracked_gears(self) -> Tuple[int, ...]:
        return tuple(self._samples)

    def clear(self) -> None:
        """Drop every retained sample and reset the rise-rate reference."""
        for samples in self._samples.values():
            samples.clear()
        self.rejection_counts.clear()
        self._last_rpm = None
        self._last_time = None
        logger.info("Sample collector cleared")
