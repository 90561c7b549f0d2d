"""Empirically tuned thresholds for the shift-point engine.

These values were tuned against real sessions; the settings layer exposes
them as defaults so they can be overridden per car without code changes.
"""

# Gears
ANALYZED_GEARS = range(1, 7)  # display gears 1..6
MAX_TRACKED_GEAR = 8

# Sample collection
FULL_THROTTLE_THRESHOLD = 0.85
STANDING_START_SPEED_KMH = 5.0
PIT_LIMITER_MIN_KMH = 49.0
PIT_LIMITER_MAX_KMH = 51.0
MIN_RPM_RISE_RATE = 100.0  # rpm/s
MIN_SAMPLE_INTERVAL_S = 0.01
MAX_SAMPLE_INTERVAL_S = 1.0
SAMPLES_PER_GEAR_CAPACITY = 72_000  # one hour at 20 Hz

# Acceleration curves
MIN_SAMPLES_PER_GEAR = 30
ACCEL_BUCKET_SIZE_RPM = 100
MIN_PAIRS_PER_ACCEL_BUCKET = 3
CROSSOVER_ADVANTAGE_THRESHOLD = 0.03
CROSSOVER_MATCH_TOLERANCE_RPM = 75
DOWNSHIFT_FACTOR = 0.7

# Max-speed fallback
TOP_RPM_BAND_FACTOR = 0.90
STRONG_PULL_SPEED_FACTOR = 0.95
NEAR_REDLINE_SHIFT_FACTOR = 0.98
SPEED_PLATEAU_FACTOR = 0.99

# Data confidence tiers: (samples below, score)
CONFIDENCE_TIERS = ((60, 0.6), (120, 0.8))
MIN_CONFIDENCE_THRESHOLD = 0.5

# Shift detection
MIN_RPM_FOR_SHIFT = 3000
MIN_THROTTLE_FOR_UPSHIFT = 0.3

# Lap validity
MAX_OFF_TRACK_SECONDS = 3.0

# Lap-outcome correlation
SHIFT_BUCKET_SIZE_RPM = 200
MIN_SHIFTS_PER_GEAR = 5
MIN_SHIFTS_PER_BUCKET = 2
OFF_TRACK_PENALTY_MS_PER_SECOND = 1000.0
DEFAULT_MIN_VALID_LAPS = 2

# Adaptive blending
MIN_LAPS_FOR_LEARNING = 3
BASE_LEARNING_RATE = 0.2
MAX_LEARNING_RATE = 0.8
LAPS_PER_LEARNING_UNIT = 25.0
PHYSICS_WEIGHT = 0.4
PERFORMANCE_WEIGHT = 0.6
PHYSICS_DECAY = 0.5
AGREEMENT_TOLERANCE_RPM = 100

# Sustained-gear recommendation
MIN_GEAR_SELECTION_SPEED_KMH = 30.0
SUSTAINED_SPEED_RANGE_KMH = 15.0
SUSTAINED_SPEED_STEP_KMH = 2.0
