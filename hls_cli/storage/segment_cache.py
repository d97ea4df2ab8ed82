"""
The per-task cache directory that makes interrupted downloads resumable.

Layout under ``<workspace>/<task name>/``::

    URL          original source URL, written once
    metadata     parsed Metadata as JSON
    file.m3u8    fetched playlist, rewritten to local paths after download
    segments/    one file per downloaded segment
    <name>.<ext> combined output, once combine succeeds
"""

import logging
import os
import shutil
from pathlib import Path

from pydantic import ValidationError

from hls_cli.exceptions import CacheAccessFailed
from hls_cli.models.metadata import Metadata, SegmentRef
from hls_cli.utils.path import create_dir

log = logging.getLogger(__name__)

METADATA_FILENAME = "metadata"
URL_FILENAME = "URL"
PLAYLIST_FILENAME = "file.m3u8"
SEGMENTS_DIRNAME = "segments"


class SegmentCache:
    """Manages the files of a single task inside the workspace."""

    def __init__(self, workspace: Path, name: str):
        self.workspace = Path(workspace)
        self.name = name
        self.task_dir = self.workspace / name
        self.metadata_path = self.task_dir / METADATA_FILENAME
        self.url_path = self.task_dir / URL_FILENAME
        self.playlist_path = self.task_dir / PLAYLIST_FILENAME
        self.segments_dir = self.task_dir / SEGMENTS_DIRNAME

    def output_path(self, extension: str) -> Path:
        return self.task_dir / f"{self.name}.{extension}"

    def segment_path(self, segment: SegmentRef) -> Path:
        return self.segments_dir / segment.filename

    def has_metadata(self) -> bool:
        return self.metadata_path.is_file()

    def load_metadata(self) -> Metadata:
        """Reads persisted Metadata, raising CacheAccessFailed if it is unreadable."""
        try:
            data = self.metadata_path.read_text(encoding="utf-8")
            metadata = Metadata.model_validate_json(data)
        except (OSError, ValidationError, ValueError) as e:
            raise CacheAccessFailed(
                e, f"Could not read cached metadata '{self.metadata_path}': {e}"
            ) from e
        log.debug(f"Loaded metadata for '{self.name}' from cache.")
        return metadata

    def save_metadata(self, metadata: Metadata) -> None:
        """Persists Metadata, atomically replacing any previous copy."""
        self._write_atomic(self.metadata_path, metadata.model_dump_json())

    def prepare(self, source_url: str) -> None:
        """Creates the task directory and records the source URL on first use."""
        try:
            create_dir(self.task_dir)
            if not self.url_path.exists():
                self.url_path.write_text(source_url, encoding="utf-8")
        except OSError as e:
            raise CacheAccessFailed(
                e, f"Could not create task directory '{self.task_dir}': {e}"
            ) from e

    def recorded_url(self) -> str | None:
        """The source URL written by prepare(), or None for an unused task directory."""
        try:
            return self.url_path.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheAccessFailed(e, f"Could not read '{self.url_path}': {e}") from e

    def create_segments_dir(self) -> None:
        try:
            create_dir(self.segments_dir)
        except OSError as e:
            raise CacheAccessFailed(
                e, f"Could not create segments directory '{self.segments_dir}': {e}"
            ) from e

    def write_playlist(self, text: str) -> None:
        self._write_atomic(self.playlist_path, text)

    def read_playlist(self) -> str:
        try:
            return self.playlist_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CacheAccessFailed(
                e, f"Could not read playlist '{self.playlist_path}': {e}"
            ) from e

    def remove_segments(self) -> None:
        self._remove(self.segments_dir)

    def remove_metadata(self) -> None:
        self._remove(self.metadata_path)

    def remove_playlist(self) -> None:
        self._remove(self.playlist_path)

    def clear(self) -> None:
        """Deletes the whole task directory, output included."""
        self._remove(self.task_dir)

    def _write_atomic(self, path: Path, text: str) -> None:
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            create_dir(path.parent)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise CacheAccessFailed(e, f"Could not write '{path}': {e}") from e

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        except OSError as e:
            raise CacheAccessFailed(e, f"Could not remove '{path}': {e}") from e
