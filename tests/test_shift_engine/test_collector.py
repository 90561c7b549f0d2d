"""Tests for sample collection and filtering."""

import math

import numpy as np
import pytest

from config.settings import CollectorSettings
from shift_engine import RejectionReason, SampleCollector


class TestRejectionRules:
    """Filters applied before a sample is stored."""

    def test_pit_limiter_band_never_counted(self, collector):
        for i, speed in enumerate([49.0, 50.0, 51.0]):
            collector.add_sample(6000 + i * 50, 1.0, speed, 3, timestamp=i * 0.05)

        assert collector.get_data_point_count_for_gear(3) == 0
        assert collector.rejection_counts[RejectionReason.PIT_LIMITER] == 3

    def test_standing_start_rejected(self, collector):
        assert collector.add_sample(3000, 1.0, 5.0, 1, timestamp=0.0) is False
        assert collector.add_sample(3100, 1.0, 5.5, 1, timestamp=0.05) is True
        assert collector.rejection_counts[RejectionReason.STANDING_START] == 1

    def test_partial_throttle_rejected(self, collector):
        assert collector.add_sample(6000, 0.84, 120.0, 3, timestamp=0.0) is False
        assert collector.rejection_counts[RejectionReason.PARTIAL_THROTTLE] == 1
        assert collector.add_sample(6050, 0.85, 121.0, 3, timestamp=0.05) is True

    def test_rejection_order(self, collector):
        """Speed checks run before the throttle check."""
        collector.add_sample(6000, 0.2, 50.0, 3, timestamp=0.0)
        collector.add_sample(6000, 0.2, 3.0, 3, timestamp=0.05)

        assert collector.rejection_counts[RejectionReason.PIT_LIMITER] == 1
        assert collector.rejection_counts[RejectionReason.STANDING_START] == 1
        assert collector.rejection_counts[RejectionReason.PARTIAL_THROTTLE] == 0

    def test_slow_rpm_rise_rejected(self, collector):
        assert collector.add_sample(6000, 1.0, 120.0, 3, timestamp=0.0) is True
        # 2 rpm in 50 ms = 40 rpm/s
        assert collector.add_sample(6002, 1.0, 120.5, 3, timestamp=0.05) is False
        assert collector.rejection_counts[RejectionReason.SLOW_RPM_RISE] == 1

    def test_rise_rate_uses_rejected_previous_tick(self, collector):
        collector.add_sample(6000, 1.0, 120.0, 3, timestamp=0.0)
        collector.add_sample(5900, 1.0, 120.5, 3, timestamp=0.05)  # rejected
        # Rising 400 rpm/s from the rejected tick, still below the first one
        assert collector.add_sample(5920, 1.0, 121.0, 3, timestamp=0.10) is True

    def test_rise_rate_uses_partial_throttle_tick(self, collector):
        collector.add_sample(7000, 0.3, 120.0, 3, timestamp=0.0)
        # Falling from the lifted tick
        assert collector.add_sample(6900, 1.0, 121.0, 3, timestamp=0.05) is False

    @pytest.mark.parametrize("elapsed", [0.005, 0.01, 1.5])
    def test_rise_rate_skipped_outside_interval_window(self, collector, elapsed):
        collector.add_sample(7000, 1.0, 120.0, 3, timestamp=10.0)
        assert collector.add_sample(6500, 1.0, 121.0, 3, timestamp=10.0 + elapsed) is True

    def test_rise_rate_applies_at_window_upper_bound(self, collector):
        collector.add_sample(7000, 1.0, 120.0, 3, timestamp=10.0)
        assert collector.add_sample(7050, 1.0, 121.0, 3, timestamp=11.0) is False

    def test_first_sample_accepted(self, collector):
        assert collector.add_sample(4000, 1.0, 80.0, 2, timestamp=0.0) is True
        assert collector.get_data_point_count() == 1


class TestMalformedInput:

    @pytest.mark.parametrize("rpm,throttle,speed", [
        (math.nan, 1.0, 120.0),
        (6000, math.nan, 120.0),
        (6000, 1.0, math.inf),
        (-100, 1.0, 120.0),
        (6000, 1.5, 120.0),
        (6000, 1.0, -3.0),
    ])
    def test_malformed_dropped(self, collector, rpm, throttle, speed):
        assert collector.add_sample(rpm, throttle, speed, 3, timestamp=0.0) is False
        assert collector.get_data_point_count() == 0
        assert collector.rejection_counts[RejectionReason.MALFORMED] == 1

    @pytest.mark.parametrize("gear", [-1, 0, 9])
    def test_untracked_gear_dropped(self, collector, gear):
        assert collector.add_sample(5000, 1.0, 100.0, gear, timestamp=0.0) is False
        assert collector.rejection_counts[RejectionReason.UNTRACKED_GEAR] == 1


class TestStorage:

    def test_samples_are_chronological(self, collector, pull):
        pull(collector, gear=2, count=10, start_rpm=4000, rpm_step=50,
             start_speed=80.0, speed_step=0.5, start_time=0.0)

        samples = collector.get_samples(2)
        assert len(samples) == 10
        assert [s.rpm for s in samples] == sorted(s.rpm for s in samples)
        assert all(s.gear == 2 for s in samples)

    def test_counts_per_gear(self, collector, pull):
        t = pull(collector, gear=2, count=10, start_rpm=4000, rpm_step=50,
                 start_speed=80.0, speed_step=0.5, start_time=0.0)
        pull(collector, gear=3, count=4, start_rpm=5000, rpm_step=50,
             start_speed=120.0, speed_step=0.5, start_time=t)

        assert collector.get_data_point_count() == 14
        assert collector.get_data_point_count_for_gear(2) == 10
        assert collector.get_data_point_count_for_gear(3) == 4
        assert collector.get_data_point_count_for_gear(7) == 0

    def test_capacity_keeps_most_recent(self, clock, pull):
        collector = SampleCollector(CollectorSettings(samples_per_gear_capacity=5), clock=clock)
        pull(collector, gear=4, count=8, start_rpm=5000, rpm_step=50,
             start_speed=150.0, speed_step=0.5, start_time=0.0)

        samples = collector.get_samples(4)
        assert len(samples) == 5
        assert samples[0].rpm == 5150

    def test_clock_used_without_timestamp(self, collector, clock):
        collector.add_sample(5000, 1.0, 100.0, 3)
        clock.advance(0.05)
        collector.add_sample(5050, 1.0, 101.0, 3)

        samples = collector.get_samples(3)
        assert samples[0].timestamp == pytest.approx(1000.0)
        assert samples[1].timestamp == pytest.approx(1000.05)

    def test_clear(self, collector, pull):
        pull(collector, gear=3, count=10, start_rpm=5000, rpm_step=50,
             start_speed=120.0, speed_step=0.5, start_time=0.0)
        collector.add_sample(5000, 1.0, 50.0, 3, timestamp=100.0)

        collector.clear()

        assert collector.get_data_point_count() == 0
        assert not collector.rejection_counts
        # No rise-rate reference survives the clear
        assert collector.add_sample(4000, 1.0, 100.0, 3, timestamp=100.05) is True

    def test_numpy_scalars_accepted(self, collector):
        accepted = collector.add_sample(
            np.int64(6000), np.float64(1.0), np.float32(120.0), np.int64(3), timestamp=0.0
        )

        assert accepted is True
        assert not collector.rejection_counts
        assert collector.get_data_point_count_for_gear(3) == 1
        sample = collector.get_samples(3)[0]
        assert sample.gear == 3
        assert type(sample.gear) is int
