"""
Utilities package for pbdecode.

Exports shared helpers for logging and profiling. Keep this package
lightweight and free of decoding logic.
"""

from pbdecode.utils.logging import configure_logging, get_logger
from pbdecode.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
