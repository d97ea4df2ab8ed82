"""
Storage Layer.

This package handles all data persistence: the configuration file and the
per-task segment cache.
"""

from .config_manager import ConfigManager
from .segment_cache import SegmentCache

__all__ = ["ConfigManager", "SegmentCache"]
