"""
Parsing of m3u8 playlists into ordered segment references, and rewriting of a
cached playlist so it points at locally downloaded segments.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit

from hls_cli.exceptions import PlaylistInvalid
from hls_cli.models.metadata import Dialect, SegmentRef

log = logging.getLogger(__name__)

# (line, base_uri) -> absolute segment URL, or None to skip the line
SegmentClassifier = Callable[[str, str], "str | None"]

_SEGMENT_SIZE_RE = re.compile(r"segment_size=(\d+)")


@dataclass
class ParsedPlaylist:
    dialect: Dialect
    segments: list[SegmentRef]

    @property
    def declared_total(self) -> int:
        return sum(s.declared_size or 0 for s in self.segments)


def _is_absolute(line: str) -> bool:
    return line.startswith(("http://", "https://"))


def _has_suffix(line: str, suffix: str) -> bool:
    return urlsplit(line).path.endswith(suffix)


def detect_dialect(lines: list[str]) -> Dialect:
    """A playlist is absolute as soon as any of its lines is an http(s) URL."""
    if any(_is_absolute(line) for line in lines):
        return Dialect.ABSOLUTE
    return Dialect.RELATIVE


def parse_playlist(
    text: str,
    base_uri: str,
    suffix: str = ".ts",
    classifier: SegmentClassifier | None = None,
) -> ParsedPlaylist:
    """
    Turns raw playlist text into an ordered list of segment references.

    Args:
        text: The playlist content.
        base_uri: The playlist URL without its last path component.
        suffix: File suffix that marks a media segment line.
        classifier: Optional callable deciding, per line, the absolute URL of a
            segment (or None to skip the line). Overrides suffix matching.

    Returns:
        A ParsedPlaylist with the dialect chosen for the whole file.

    Raises:
        PlaylistInvalid: If no line denotes a media segment.
    """
    lines = [line.strip() for line in text.splitlines()]
    segments: list[SegmentRef] = []

    if classifier is not None:
        dialect = Dialect.ABSOLUTE
        for line in lines:
            if not line:
                continue
            if url := classifier(line, base_uri):
                segments.append(SegmentRef(uri=str(url), line=line))
    else:
        dialect = detect_dialect(lines)
        pending_size: int | None = None
        for line in lines:
            if not line:
                continue
            if line.startswith("#"):
                if line.startswith("#EXTINF:"):
                    match = _SEGMENT_SIZE_RE.search(line)
                    pending_size = int(match.group(1)) if match else None
                continue
            if _is_absolute(line) != (dialect is Dialect.ABSOLUTE):
                continue
            if not _has_suffix(line, suffix):
                continue
            size = pending_size if dialect is Dialect.RELATIVE else None
            segments.append(SegmentRef(uri=line, line=line, declared_size=size))
            pending_size = None

    if not segments:
        raise PlaylistInvalid(
            f"Playlist contains no media segments (expected lines ending in '{suffix}')."
        )

    log.debug(f"Parsed {len(segments)} segments ({dialect.value} dialect).")
    return ParsedPlaylist(dialect=dialect, segments=segments)


def rewrite_playlist(text: str, segments: list[SegmentRef], segments_dirname: str) -> str:
    """
    Replaces every segment line with its local path relative to the task directory,
    so the cached playlist plays straight from disk.
    """
    local_names = {s.line: f"{segments_dirname}/{s.filename}" for s in segments if s.line}
    return "\n".join(
        local_names.get(line.strip(), line) for line in text.split("\n")
    )
