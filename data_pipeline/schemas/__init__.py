"""
Data Schemas Package - Pydantic models for data validation
"""

from data_pipeline.schemas.telemetry_schema import LapTimingData, TelemetryTick

__all__ = [
    "LapTimingData",
    "TelemetryTick",
]
