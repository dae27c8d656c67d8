"""
API services
"""
from .metrics import MediaMetricsService

__all__ = ["MediaMetricsService"]
