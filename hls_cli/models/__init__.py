"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration, task
metadata and progress samples.
"""

from .config import DownloadConfig
from .metadata import Dialect, Metadata, SegmentRef
from .progress import DownloadProgress, DownloadStats, SegmentProgress

__all__ = [
    "Dialect",
    "DownloadConfig",
    "DownloadProgress",
    "DownloadStats",
    "Metadata",
    "SegmentProgress",
    "SegmentRef",
]
