"""Clinic check-in lifecycle and temporal analytics service."""

__version__ = "0.1.0"
