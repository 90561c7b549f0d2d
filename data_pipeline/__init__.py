"""
Data Pipeline Package - Telemetry schemas and synthetic data

Defines the per-tick telemetry boundary consumed by the shift engine and a
deterministic generator for development and testing.
"""

from data_pipeline.schemas import telemetry_schema

__all__ = [
    "telemetry_schema",
]
