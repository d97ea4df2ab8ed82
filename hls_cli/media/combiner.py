"""
Concatenates cached segments into the final output file.
"""

import logging
import shutil
import threading
from pathlib import Path

from hls_cli.exceptions import CacheAccessFailed
from hls_cli.models.metadata import Metadata
from hls_cli.storage.segment_cache import SegmentCache

log = logging.getLogger(__name__)


class CombineCancelled(Exception):
    """Raised inside the worker thread when a combine is cancelled part way."""


def combine_segments(
    metadata: Metadata,
    cache: SegmentCache,
    extension: str = "ts",
    cancel_event: threading.Event | None = None,
) -> Path:
    """
    Appends every cached segment, in playlist order, to ``<name>.<extension>``
    and then removes the segment cache, the metadata and the cached playlist.

    Segments missing from the cache are skipped. This is a blocking function,
    meant to be run in a worker thread.

    Args:
        metadata: The task metadata; its segment order is the byte order.
        cache: The task's cache directory.
        extension: Extension of the output file.
        cancel_event: Checked between segments. When set, the partial output is
            deleted, the cache is left untouched and CombineCancelled is raised.

    Returns:
        The path of the combined file.

    Raises:
        CacheAccessFailed: On any filesystem error.
        CombineCancelled: If cancel_event was set before the copy finished.
    """
    output_path = cache.output_path(extension)
    segment_paths = [cache.segment_path(s) for s in metadata.segments]
    written = 0
    skipped = 0

    try:
        with open(output_path, "wb") as out:
            for segment_path in segment_paths:
                if cancel_event is not None and cancel_event.is_set():
                    raise CombineCancelled(str(output_path))
                if not segment_path.is_file():
                    skipped += 1
                    log.warning(
                        f"[yellow]Segment '{segment_path.name}' is missing from the "
                        "cache, skipping.[/yellow]"
                    )
                    continue
                with open(segment_path, "rb") as src:
                    shutil.copyfileobj(src, out)
                written += 1
    except CombineCancelled:
        output_path.unlink(missing_ok=True)
        log.debug(f"Combine of '{metadata.name}' cancelled, partial output removed.")
        raise
    except OSError as e:
        raise CacheAccessFailed(e, f"Could not write '{output_path}': {e}") from e

    cache.remove_segments()
    cache.remove_metadata()
    cache.remove_playlist()

    log.debug(
        f"Combined {written} segments into '{output_path.name}'"
        + (f" ({skipped} missing)." if skipped else ".")
    )
    return output_path
