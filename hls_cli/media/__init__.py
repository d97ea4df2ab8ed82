"""
Media Processing Layer.

This package is responsible for all media file operations: playlist parsing,
segment size probing, segment downloading and concatenation.
"""

from .combiner import combine_segments
from .downloader import SegmentDownloader
from .playlist import parse_playlist, rewrite_playlist
from .size_probe import SizeProbe

__all__ = [
    "SegmentDownloader",
    "SizeProbe",
    "combine_segments",
    "parse_playlist",
    "rewrite_playlist",
]
