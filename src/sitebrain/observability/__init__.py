"""
Observability utilities for the job pipeline.

This package provides:
- alerting: severity alerts with per-kind cooldown, counters, and Redis quota handling
"""
