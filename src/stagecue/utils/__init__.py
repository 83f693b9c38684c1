"""Utility functions for stagecue."""

from stagecue.utils.logging import get_logger
from stagecue.utils.timers import PeriodicTimer

__all__ = ["PeriodicTimer", "get_logger"]
