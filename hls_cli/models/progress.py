"""
Dataclasses for tracking download progress and session statistics.
"""

from dataclasses import dataclass, field


@dataclass
class SegmentProgress:
    """Bytes received for one segment, finished or in flight."""

    completed: int = 0
    total: int = 0


@dataclass(frozen=True)
class DownloadProgress:
    """A periodic sample of overall download progress for one task."""

    completed_bytes: int
    total_bytes: int
    # Bytes received from the network since the previous sample.
    delta: int = 0

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(1.0, self.completed_bytes / self.total_bytes)


@dataclass
class DownloadStats:
    """Tracks statistics for a download session."""

    tasks_completed: int = 0
    tasks_failed: int = 0
    tasks_cancelled: int = 0
    segments_downloaded: int = 0
    segments_cached: int = 0
    segment_retries: int = 0
    total_size_downloaded: int = 0
    outputs: list[str] = field(default_factory=list)
