"""
Mock Telemetry Generator - Physics-based telemetry simulation

Generates 20 Hz telemetry ticks for a simulated car: wide-open-throttle
gear pulls for acceleration analysis and complete laps (straights, braking
zones and corners) with lap timing, validity and off-track excursions.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import random

from data_pipeline.schemas.telemetry_schema import LapTimingData, TelemetryTick


# Overall RPM per km/h in each gear
DEFAULT_GEAR_RATIOS: Dict[int, float] = {
    1: 70.0, 2: 52.0, 3: 41.0, 4: 34.0, 5: 29.0, 6: 25.0,
}

# (straight length m, corner speed km/h, corner length m)
DEFAULT_TRACK: Tuple[Tuple[float, float, float], ...] = (
    (900.0, 90.0, 150.0),
    (600.0, 120.0, 200.0),
    (1100.0, 70.0, 120.0),
    (450.0, 140.0, 250.0),
    (750.0, 100.0, 180.0),
)


class MockTelemetryGenerator:
    """
    Generate realistic telemetry ticks.

    Acceleration follows a torque curve that peaks mid-range and falls off
    towards the limiter, so each gear has a genuine upshift crossover.
    Output is deterministic for a given seed.
    """

    def __init__(
        self,
        gear_ratios: Optional[Dict[int, float]] = None,
        track: Sequence[Tuple[float, float, float]] = DEFAULT_TRACK,
        redline_rpm: int = 8000,
        sample_rate: int = 20,
        rpm_noise: float = 2.0,
        seed: int = 42,
    ):
        """Initialize mock telemetry generator."""
        self.gear_ratios = dict(gear_ratios or DEFAULT_GEAR_RATIOS)
        self.track = tuple(track)
        self.track_length = sum(straight + corner for straight, _, corner in self.track)
        self.redline_rpm = redline_rpm
        self.dt = 1.0 / sample_rate
        self.rpm_noise = rpm_noise
        self.rng = random.Random(seed)

        self.top_gear = max(self.gear_ratios)
        self.peak_accel = 30.0  # km/h/s in first gear at peak torque
        self.drag = 3.0e-5      # km/h/s per (km/h)^2
        self.brake_decel = 35.0

        self.time = 0.0
        self.completed_laps = 0

    # ------------------------------------------------------------------
    # Car model
    # ------------------------------------------------------------------

    def torque_factor(self, rpm: float) -> float:
        """Normalised engine torque: rising to a 5000-6000 rpm plateau, falling to the limiter."""
        if rpm < 5000:
            return 0.7 + 0.3 * max(0.0, rpm - 2000) / 3000
        if rpm <= 6000:
            return 1.0
        return max(0.3, 1.0 - 0.45 * (rpm - 6000) / 2000)

    def rpm_for(self, gear: int, speed: float) -> float:
        return max(1000.0, speed * self.gear_ratios[gear])

    def acceleration(self, gear: int, speed: float, throttle: float) -> float:
        """Net longitudinal acceleration in km/h per second."""
        rpm = self.rpm_for(gear, speed)
        if rpm >= self.redline_rpm:
            return -self.drag * speed * speed
        ratio = self.gear_ratios[gear] / self.gear_ratios[1]
        drive = throttle * self.peak_accel * self.torque_factor(rpm) * ratio
        return drive - self.drag * speed * speed

    def _tick(
        self,
        gear: int,
        speed: float,
        throttle: float,
        track_position: float = 0.0,
        off_track: bool = False,
        lap_timing: Optional[LapTimingData] = None,
    ) -> TelemetryTick:
        rpm = self.rpm_for(gear, speed) + self.rng.gauss(0.0, self.rpm_noise)
        return TelemetryTick(
            timestamp=round(self.time, 4),
            gear=gear,
            rpm=max(0, int(rpm)),
            throttle=throttle,
            speed_kmh=round(speed, 3),
            track_position=min(1.0, max(0.0, track_position)),
            off_track=off_track,
            lap_timing=lap_timing,
        )

    # ------------------------------------------------------------------
    # Acceleration runs
    # ------------------------------------------------------------------

    def generate_gear_pull(self, gear: int, from_rpm: int = 3000, to_rpm: int = 7900) -> List[TelemetryTick]:
        """
        Wide-open-throttle pull through one gear.

        Args:
            gear: Gear to pull in
            from_rpm: Engine speed at the start of the pull
            to_rpm: Engine speed at which the pull ends

        Returns:
            Ticks of the pull; followed by a two-second gap in time
        """
        speed = from_rpm / self.gear_ratios[gear]
        ticks: List[TelemetryTick] = []
        max_ticks = int(60.0 / self.dt)

        while self.rpm_for(gear, speed) < to_rpm and len(ticks) < max_ticks:
            ticks.append(self._tick(gear, speed, 1.0))
            accel = self.acceleration(gear, speed, 1.0)
            if accel <= 0:
                break
            speed += accel * self.dt
            self.time += self.dt

        self.time += 2.0
        return ticks

    def generate_acceleration_session(
        self,
        gears: Optional[Sequence[int]] = None,
        repeats: int = 5,
        from_rpm: int = 3000,
        to_rpm: int = 7900,
    ) -> List[TelemetryTick]:
        """
        Repeated pulls through every gear.

        Starting each pull low in the rev range gives every gear coverage of
        the RPM its lower neighbour lands on after an upshift.
        """
        ticks: List[TelemetryTick] = []
        for _ in range(repeats):
            for gear in (gears or sorted(self.gear_ratios)):
                ticks.extend(self.generate_gear_pull(gear, from_rpm, to_rpm))
        return ticks

    # ------------------------------------------------------------------
    # Laps
    # ------------------------------------------------------------------

    def _gear_for_speed(self, speed: float, max_rpm: float = 6000.0) -> int:
        """Lowest gear keeping the engine at or below ``max_rpm``."""
        for gear in sorted(self.gear_ratios):
            if self.rpm_for(gear, speed) <= max_rpm:
                return gear
        return self.top_gear

    def generate_lap(
        self,
        shift_rpm: int = 7000,
        shift_rpm_jitter: float = 0.0,
        off_track_seconds: float = 0.0,
        invalidate: Optional[bool] = None,
    ) -> List[TelemetryTick]:
        """
        Drive one lap and report its timing on the final tick.

        Args:
            shift_rpm: Engine speed the driver upshifts at
            shift_rpm_jitter: Uniform spread applied to every upshift
            off_track_seconds: Time spent outside track limits in the first corner
            invalidate: Whether the simulator flags the lap invalid
                (defaults to True whenever the car went off track)

        Returns:
            Ticks of the lap, the last one carrying the incremented lap counter
        """
        if invalidate is None:
            invalidate = off_track_seconds > 0

        ticks: List[TelemetryTick] = []
        lap_start = self.time
        distance = 0.0
        lap_valid = True
        off_track_remaining = off_track_seconds

        first_corner_speed = self.track[0][1]
        speed = first_corner_speed
        gear = self._gear_for_speed(speed)

        def timing() -> LapTimingData:
            return LapTimingData(
                completed_laps=self.completed_laps,
                current_lap_time_ms=int((self.time - lap_start) * 1000),
                last_lap_time_ms=0,
                is_current_lap_valid=lap_valid,
            )

        for index, (straight, corner_speed, corner_length) in enumerate(self.track):
            target_shift = shift_rpm + self.rng.uniform(-shift_rpm_jitter, shift_rpm_jitter)
            segment_end = distance + straight

            # Straight: full throttle until the braking point
            while distance < segment_end:
                braking_distance = max(0.0, (speed ** 2 - corner_speed ** 2) / (2 * self.brake_decel * 3.6))
                if segment_end - distance <= braking_distance:
                    speed = max(corner_speed, speed - self.brake_decel * self.dt)
                    throttle = 0.0
                    if gear > 1 and self.rpm_for(gear - 1, speed) <= 6500:
                        gear -= 1
                else:
                    throttle = 1.0
                    if gear < self.top_gear and self.rpm_for(gear, speed) >= target_shift:
                        gear += 1
                        target_shift = shift_rpm + self.rng.uniform(-shift_rpm_jitter, shift_rpm_jitter)
                    speed = max(1.0, speed + self.acceleration(gear, speed, throttle) * self.dt)

                ticks.append(self._tick(gear, speed, throttle, distance / self.track_length, lap_timing=timing()))
                distance += speed / 3.6 * self.dt
                self.time += self.dt

            # Corner: constant speed, part throttle
            speed = corner_speed
            gear = self._gear_for_speed(speed)
            corner_end = distance + corner_length
            while distance < corner_end:
                off_track = index == 0 and off_track_remaining > 0
                if off_track:
                    off_track_remaining -= self.dt
                    if invalidate:
                        lap_valid = False
                ticks.append(self._tick(
                    gear, speed, 0.4, distance / self.track_length,
                    off_track=off_track, lap_timing=timing(),
                ))
                distance += speed / 3.6 * self.dt
                self.time += self.dt

        lap_time_ms = int((self.time - lap_start) * 1000)
        self.completed_laps += 1
        ticks.append(self._tick(
            gear, speed, 0.4, 0.0,
            lap_timing=LapTimingData(
                completed_laps=self.completed_laps,
                current_lap_time_ms=0,
                last_lap_time_ms=lap_time_ms,
                is_current_lap_valid=True,
            ),
        ))
        self.time += self.dt
        return ticks

    def generate_session(
        self,
        num_laps: int = 10,
        shift_rpm: int = 7000,
        shift_rpm_jitter: float = 400.0,
        off_track_laps: Sequence[int] = (),
        off_track_seconds: float = 4.0,
    ) -> List[TelemetryTick]:
        """
        Generate a multi-lap session.

        The first lap is an out-lap: tracking starts mid-lap in practice, so
        it is never scored.

        Args:
            num_laps: Laps to drive
            shift_rpm: Mean upshift RPM
            shift_rpm_jitter: Spread of upshift RPM between shifts
            off_track_laps: 1-based lap indices with an off-track excursion
            off_track_seconds: Duration of each excursion

        Returns:
            Ticks of the whole session in order
        """
        ticks: List[TelemetryTick] = []
        for lap in range(1, num_laps + 1):
            excursion = off_track_seconds if lap in off_track_laps else 0.0
            ticks.extend(self.generate_lap(shift_rpm, shift_rpm_jitter, off_track_seconds=excursion))
        return ticks
