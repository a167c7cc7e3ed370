"""Synthetic multi-patient cardiac telemetry engine and service."""

__version__ = "1.0.0"
