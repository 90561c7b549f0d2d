"""Configuration package: tuned constants and environment-based settings."""
