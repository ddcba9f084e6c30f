"""
Core Module Package.

Shared infrastructure for the sentiment core.

Components:
- clock: Unified, mockable time abstraction
"""

from .clock import ClockFactory, ClockProtocol, MockClock, SystemClock, now_utc


__all__ = [
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "now_utc",
]
