"""
Scheduler package for the Ostrom spot-price bridge.
Contains the hourly refresh scheduler.
"""

from .hourly_scheduler import HourlyScheduler

__all__ = [
    "HourlyScheduler",
]
