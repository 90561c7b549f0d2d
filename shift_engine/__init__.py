"""
Shift-point optimization engine.

Turns a live telemetry stream into per-gear upshift recommendations by
blending acceleration-curve analysis with lap-outcome learning.
"""

from shift_engine.schemas import (
    TelemetrySample,
    ShiftEvent,
    LapPerformance,
    ShiftPerformance,
    RecommendationSource,
    ShiftDirection,
    LearningPhase,
    ConfidenceAssessment,
    GearRPMConfig,
    OptimalShiftConfig,
    GearAnalysis,
    DataCollectionReport,
    RPMBucketPerformance,
    GearShiftReport,
    ShiftPatternReport,
    ShiftRecommendation,
    ShiftPointRecommendation,
    GearLearningReport,
    LearningReport,
)
from shift_engine.collector import SampleCollector, RejectionReason
from shift_engine.acceleration import AccelerationCurveAnalyzer
from shift_engine.shift_tracker import ShiftPatternTracker
from shift_engine.blending import AdaptiveBlendingEngine
from shift_engine.gear_selection import GearRecommendationEngine
from shift_engine.session import ShiftSession

__all__ = [
    # Components
    'SampleCollector',
    'RejectionReason',
    'AccelerationCurveAnalyzer',
    'ShiftPatternTracker',
    'AdaptiveBlendingEngine',
    'GearRecommendationEngine',
    'ShiftSession',
    # Records
    'TelemetrySample',
    'ShiftEvent',
    'LapPerformance',
    'ShiftPerformance',
    # Enums
    'RecommendationSource',
    'ShiftDirection',
    'LearningPhase',
    # Reports
    'ConfidenceAssessment',
    'GearRPMConfig',
    'OptimalShiftConfig',
    'GearAnalysis',
    'DataCollectionReport',
    'RPMBucketPerformance',
    'GearShiftReport',
    'ShiftPatternReport',
    'ShiftRecommendation',
    'ShiftPointRecommendation',
    'GearLearningReport',
    'LearningReport',
]
