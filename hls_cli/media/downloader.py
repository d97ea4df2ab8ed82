"""
Handles the sequential, resumable downloading of playlist segments over HTTP,
with periodic aggregate progress sampling.
"""

import asyncio
import logging
import os
from collections import deque
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiofiles
import aiohttp

from hls_cli.exceptions import TransferFailed
from hls_cli.media.playlist import rewrite_playlist
from hls_cli.models.metadata import Metadata, SegmentRef
from hls_cli.models.progress import DownloadProgress, SegmentProgress
from hls_cli.storage.segment_cache import SEGMENTS_DIRNAME, SegmentCache

log = logging.getLogger(__name__)

ProgressCallback = Callable[[DownloadProgress], None]

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(
    max_connections: int = 8, sock_read: float = 90
) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.

    Args:
        max_connections: Per-host connection limit; size probes are the only
            requests that run concurrently.
        sock_read: Seconds to wait for data on an open connection.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_connections * 2,
            limit_per_host=max_connections,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=sock_read)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug(f"Created download pool with limit_per_host={max_connections}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class SegmentDownloader:
    """
    Fetches every segment of a playlist into the task cache, strictly in playlist
    order with one transfer in flight.

    Segments already present in the cache are counted as complete without any
    network access. A failed transfer is put back at the front of the queue and
    retried straight away; by default there is no retry limit.
    """

    MIN_CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        session: aiohttp.ClientSession,
        cache: SegmentCache,
        metadata: Metadata,
        progress_interval: float = 1.0,
        retry_limit: int | None = None,
        retry_delay: float = 0.0,
        chunk_size: int = MIN_CHUNK_SIZE,
    ):
        self.session = session
        self.cache = cache
        self.metadata = metadata
        self.progress_interval = progress_interval
        self.retry_limit = retry_limit
        self.retry_delay = retry_delay
        self.chunk_size = chunk_size

        self._pending: deque[SegmentRef] = deque()
        self._progress: dict[str, SegmentProgress] = {}
        self._reported_bytes = 0
        self._on_progress: ProgressCallback | None = None
        self._sampler_task: asyncio.Task | None = None

        self.segments_downloaded = 0
        self.segments_cached = 0
        self.retries = 0
        self.bytes_downloaded = 0

    @property
    def completed_bytes(self) -> int:
        return sum(p.completed for p in self._progress.values())

    async def run(
        self,
        on_progress: ProgressCallback | None = None,
        size_ready: Awaitable | None = None,
    ) -> Path:
        """
        Downloads all missing segments and rewrites the cached playlist.

        Args:
            on_progress: Called with a DownloadProgress sample every
                progress_interval seconds, and once more at the end.
            size_ready: Awaited before the final sample, so that a background
                size probe can finish setting metadata.total_size.

        Returns:
            The directory holding the downloaded segments.
        """
        self._on_progress = on_progress
        self._pending = deque(self.metadata.segments)
        self._progress.clear()
        self._reported_bytes = 0

        self.cache.create_segments_dir()
        self.start_sampler()
        try:
            while self._pending:
                await self._download_next()
            if size_ready is not None:
                await size_ready
            self.sample(final=True)
        finally:
            await self.stop_sampler()

        await asyncio.to_thread(self._rewrite_playlist)
        log.debug(
            f"All {len(self.metadata.segments)} segments of '{self.metadata.name}' "
            f"are cached ({self.segments_cached} reused, {self.retries} retries)."
        )
        return self.cache.segments_dir

    async def _download_next(self) -> None:
        segment = self._pending.popleft()
        local_path = self.cache.segment_path(segment)

        if local_path.is_file():
            size = local_path.stat().st_size
            self._progress[segment.uri] = SegmentProgress(completed=size, total=size)
            # Cached bytes never count towards transfer speed
            self._reported_bytes += size
            self.segments_cached += 1
            return

        attempts = 0
        while True:
            try:
                await self._fetch(segment, local_path)
                self.segments_downloaded += 1
                return
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                attempts += 1
                self.retries += 1
                if self.retry_limit is not None and attempts > self.retry_limit:
                    raise TransferFailed(
                        e, f"Segment '{segment.filename}' failed after {attempts} attempts: {e}"
                    ) from e
                log.debug(
                    f"Download attempt {attempts} for '{segment.filename}' failed: {e}. "
                    "Retrying..."
                )
                if self.retry_delay:
                    await asyncio.sleep(self.retry_delay)

    async def _fetch(self, segment: SegmentRef, local_path: Path) -> None:
        """Streams one segment to a .part file, then moves it into place."""
        url = segment.url(self.metadata.base_uri)
        part_path = local_path.with_name(f"{local_path.name}.part")
        record = SegmentProgress(total=segment.declared_size or 0)
        self._progress[segment.uri] = record

        async with self.session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            length = response.headers.get("Content-Length", "")
            if length.isdigit():
                record.total = int(length)

            async with aiofiles.open(part_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    await f.write(chunk)
                    record.completed += len(chunk)

        os.replace(part_path, local_path)
        record.total = record.completed
        self.bytes_downloaded += record.completed
        log.debug(f"Downloaded '{segment.filename}' ({record.completed} bytes).")

    def start_sampler(self) -> None:
        if self._sampler_task is None or self._sampler_task.done():
            self._sampler_task = asyncio.create_task(self._sample_loop())

    async def stop_sampler(self) -> None:
        if self._sampler_task and not self._sampler_task.done():
            self._sampler_task.cancel()
            try:
                await self._sampler_task
            except asyncio.CancelledError:
                pass
        self._sampler_task = None

    def cancel(self) -> None:
        """Silences progress reporting and drops pending segments."""
        self._on_progress = None
        self._pending.clear()
        if self._sampler_task and not self._sampler_task.done():
            self._sampler_task.cancel()

    async def _sample_loop(self) -> None:
        while True:
            await asyncio.sleep(self.progress_interval)
            self.sample()

    def sample(self, final: bool = False) -> DownloadProgress | None:
        """
        Reports overall progress and the bytes received since the last sample.

        Samples are skipped while the total size is unknown, except for the final
        one, which falls back to the completed byte count as the total.
        """
        completed = self.completed_bytes
        total = self.metadata.total_size
        if total <= 0:
            if not final:
                return None
            total = completed

        delta = completed - self._reported_bytes
        if delta < 0:
            # A retried segment restarted from zero
            if not final:
                return None
            delta = 0
        self._reported_bytes = completed

        progress = DownloadProgress(completed_bytes=completed, total_bytes=total, delta=delta)
        if self._on_progress:
            self._on_progress(progress)
        return progress

    def _rewrite_playlist(self) -> None:
        if not self.cache.playlist_path.is_file():
            log.warning(
                f"[yellow]No cached playlist for '{self.metadata.name}', "
                "skipping local rewrite.[/yellow]"
            )
            return
        text = self.cache.read_playlist()
        self.cache.write_playlist(
            rewrite_playlist(text, self.metadata.segments, SEGMENTS_DIRNAME)
        )
