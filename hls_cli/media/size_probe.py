"""
Estimates the total size of a playlist by probing each segment with a HEAD request.
"""

import asyncio
import logging
from collections.abc import Callable

import aiohttp

log = logging.getLogger(__name__)

# (completed, total) probes
ProbeProgressCallback = Callable[[int, int], None]


class SizeProbe:
    """
    Issues header-only requests for a list of segment URLs in parallel.

    A failed probe, or a response without a usable Content-Length, counts as
    zero bytes and is not retried; the total is best effort.
    """

    def __init__(self, session: aiohttp.ClientSession, max_concurrent: int = 8):
        """
        Args:
            session: The HTTP session used for the requests.
            max_concurrent: Maximum number of probes in flight at once.
        """
        self.session = session
        self.semaphore = asyncio.Semaphore(max_concurrent)

    async def probe(self, url: str) -> int:
        """Returns the Content-Length declared for url, or 0."""
        async with self.semaphore:
            try:
                async with self.session.head(url, allow_redirects=True) as response:
                    if response.status >= 400:
                        log.debug(f"Size probe for '{url}' returned {response.status}.")
                        return 0
                    length = response.headers.get("Content-Length", "")
                    return int(length) if length.isdigit() else 0
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.debug(f"Size probe for '{url}' failed: {e}")
                return 0

    async def run(
        self, urls: list[str], on_progress: ProbeProgressCallback | None = None
    ) -> int:
        """
        Probes every URL and returns the summed size.

        Args:
            urls: Segment URLs, in any order.
            on_progress: Called after each probe with (completed, total).
        """
        if not urls:
            return 0

        log.debug(f"Probing sizes of {len(urls)} segments...")
        remaining = len(urls)
        total_size = 0

        async def probe_single(url: str) -> None:
            nonlocal remaining, total_size
            size = await self.probe(url)
            remaining -= 1
            total_size += size
            if on_progress:
                on_progress(len(urls) - remaining, len(urls))

        await asyncio.gather(*(probe_single(url) for url in urls))
        log.debug(f"Size probe finished: {total_size} bytes.")
        return total_size
