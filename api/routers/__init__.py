"""
API routers
"""
from . import formats, health, probe, process, transitions

__all__ = [
    "formats",
    "health",
    "probe",
    "process",
    "transitions",
]
