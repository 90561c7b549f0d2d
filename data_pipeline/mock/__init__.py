"""
Mock Data Generators - Realistic data generation for development and testing
"""

from data_pipeline.mock.mock_telemetry_generator import MockTelemetryGenerator

__all__ = [
    "MockTelemetryGenerator",
]
