"""
The per-task state machine that drives attach, download and combine.

Phases are queued on the workflow and run one at a time on a single runner
task. A phase starts only after the previous phase's completion has been
routed, and a failed phase drops everything still queued behind it.
"""

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

import aiohttp

from hls_cli.exceptions import (
    CacheAccessFailed,
    HlsCliError,
    InvalidParameters,
    LogicError,
    TransferFailed,
)
from hls_cli.media.combiner import combine_segments
from hls_cli.media.downloader import ProgressCallback, SegmentDownloader
from hls_cli.media.playlist import SegmentClassifier, parse_playlist
from hls_cli.media.size_probe import SizeProbe
from hls_cli.models.config import DownloadConfig
from hls_cli.models.metadata import Metadata
from hls_cli.models.progress import DownloadProgress
from hls_cli.storage.segment_cache import SegmentCache
from hls_cli.utils.path import base_uri, task_name

from .events import (
    EventChannel,
    PhaseCompleted,
    ProgressChanged,
    SizeProbeCompleted,
    SizeProbeProgress,
    TaskErrored,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


class WorkflowState(Enum):
    IDLE = "idle"
    ATTACHING = "attaching"
    ATTACHED = "attached"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    COMBINING = "combining"
    COMBINED = "combined"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PhaseResult(Generic[T]):
    """The outcome of one phase: a value on success, an error otherwise."""

    value: T | None = None
    error: HlsCliError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


AttachCompletion = Callable[[PhaseResult[Metadata]], None]
DownloadCompletion = Callable[[PhaseResult[Path]], None]
CombineCompletion = Callable[[PhaseResult[Path]], None]


@dataclass
class _Phase:
    name: str
    run: Callable[[], Awaitable[Any]]
    completion: Callable[[PhaseResult], None] | None
    running_state: WorkflowState
    done_state: WorkflowState


class Workflow:
    """
    Downloads one playlist into its cache directory and combines the segments.

    Usage:
        workflow = Workflow(url, config, session)
        workflow.attach().download(progress=on_progress).combine(completion=on_done)
        await workflow.join()
    """

    def __init__(
        self,
        url: str,
        config: DownloadConfig,
        session: aiohttp.ClientSession,
        events: EventChannel | None = None,
        on_finished: Callable[["Workflow"], None] | None = None,
        size: int = 0,
    ):
        """
        Args:
            url: The playlist URL; the identity of this task.
            config: Validated application configuration (workspace, suffix, ...).
            session: HTTP session used for every request of this task.
            events: Channel receiving progress, completion and error events.
            on_finished: Called once no phases remain queued.
            size: Known total size of all segments, or 0 to probe for it.
        """
        self.url = url
        self.config = config
        self.session = session
        self.events = events or EventChannel()
        self.state = WorkflowState.IDLE
        self.metadata: Metadata | None = None
        self.error: HlsCliError | None = None
        self.cache = SegmentCache(Path(config.workspace).expanduser(), task_name(url))

        self._size_hint = size
        self._on_finished = on_finished
        self._phases: deque[_Phase] = deque()
        self._runner: asyncio.Task | None = None
        self._probe_task: asyncio.Task | None = None
        self._downloader: SegmentDownloader | None = None
        self._combine_cancel = threading.Event()

    @property
    def folder(self) -> Path:
        return self.cache.task_dir

    @property
    def downloader(self) -> SegmentDownloader | None:
        return self._downloader

    # -- public API -------------------------------------------------------------

    def attach(
        self,
        classifier: SegmentClassifier | None = None,
        completion: AttachCompletion | None = None,
    ) -> "Workflow":
        """
        Queues the attach phase: load cached metadata, or fetch and parse the playlist.

        Args:
            classifier: Optional (line, base_uri) -> URL | None segment classifier.
            completion: Called with the Metadata or the error.
        """
        return self._enqueue(
            _Phase(
                "attach",
                lambda: self._attach(classifier),
                completion,
                WorkflowState.ATTACHING,
                WorkflowState.ATTACHED,
            )
        )

    def download(
        self,
        progress: ProgressCallback | None = None,
        completion: DownloadCompletion | None = None,
    ) -> "Workflow":
        """
        Queues the download phase.

        Args:
            progress: Called about once per progress_interval with a sample.
            completion: Called with the segments directory or the error.
        """
        return self._enqueue(
            _Phase(
                "download",
                lambda: self._download(progress),
                completion,
                WorkflowState.DOWNLOADING,
                WorkflowState.DOWNLOADED,
            )
        )

    def combine(self, completion: CombineCompletion | None = None) -> "Workflow":
        """Queues the combine phase; completion receives the output file path."""
        return self._enqueue(
            _Phase(
                "combine",
                self._combine,
                completion,
                WorkflowState.COMBINING,
                WorkflowState.COMBINED,
            )
        )

    def cancel(self) -> None:
        """
        Stops all work held by this workflow. No callback fires afterwards.

        Partially downloaded segments stay in the cache for a later resume; a
        combine in progress removes its partial output.
        """
        if self.state is WorkflowState.CANCELLED:
            return
        self.state = WorkflowState.CANCELLED
        self._combine_cancel.set()
        self._phases.clear()
        self._on_finished = None
        if self._downloader:
            self._downloader.cancel()
        for task in (self._runner, self._probe_task):
            if task and not task.done():
                task.cancel()
        log.debug(f"Workflow for '{self.url}' cancelled.")

    async def join(self) -> WorkflowState:
        """Waits until every queued phase has run, failed or been cancelled."""
        while self._runner is not None and not self._runner.done():
            await asyncio.wait({self._runner})
        return self.state

    # -- phase runner -----------------------------------------------------------

    def _enqueue(self, phase: _Phase) -> "Workflow":
        if self.state in (WorkflowState.CANCELLED, WorkflowState.ERROR):
            log.debug(f"Ignoring '{phase.name}' on a {self.state.value} workflow.")
            return self
        self._phases.append(phase)
        if self._runner is None or self._runner.done():
            self._runner = asyncio.get_running_loop().create_task(self._run_phases())
        return self

    async def _run_phases(self) -> None:
        while self._phases:
            phase = self._phases.popleft()
            self.state = phase.running_state
            result = await self._execute(phase)
            self._handle_completion(phase, result)

    async def _execute(self, phase: _Phase) -> PhaseResult:
        """Runs a phase, converting every failure into an HlsCliError."""
        try:
            return PhaseResult(value=await phase.run())
        except HlsCliError as e:
            error = e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = TransferFailed(e)
        except OSError as e:
            error = CacheAccessFailed(e)
        except Exception as e:
            log.debug(f"Unexpected error in '{phase.name}':", exc_info=True)
            error = LogicError(f"Unexpected error during {phase.name}: {e}")
        return PhaseResult(error=error)

    def _handle_completion(self, phase: _Phase, result: PhaseResult) -> None:
        if self.state is WorkflowState.CANCELLED:
            return

        if result.ok:
            self.state = phase.done_state
        else:
            self.state = WorkflowState.ERROR
            self.error = result.error

        if phase.completion:
            try:
                phase.completion(result)
            except Exception as e:
                log.error(
                    f"[red]Completion callback for '{phase.name}' raised: {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
            # The callback may have cancelled this workflow
            if self.state is WorkflowState.CANCELLED:
                return

        if result.ok:
            self.events.publish(PhaseCompleted(self.url, phase.name, result.value))
        else:
            self._phases.clear()
            if self._probe_task and not self._probe_task.done():
                self._probe_task.cancel()
            log.debug(f"Phase '{phase.name}' of '{self.url}' failed: {result.error}")
            self.events.publish(TaskErrored(self.url, result.error, phase.name))

        if not self._phases and self._on_finished:
            on_finished, self._on_finished = self._on_finished, None
            on_finished(self)

    # -- attach -----------------------------------------------------------------

    def _ensure_owned(self, source_url: str | None) -> None:
        # Task folders are named after the playlist file, so two sources can map to one
        if source_url is not None and source_url != self.url:
            raise InvalidParameters(
                f"Task folder '{self.folder}' already holds '{source_url}'; "
                f"cannot reuse it for '{self.url}'."
            )

    async def _attach(self, classifier: SegmentClassifier | None) -> Metadata:
        self._ensure_owned(await asyncio.to_thread(self.cache.recorded_url))
        if self.cache.has_metadata():
            metadata = await asyncio.to_thread(self.cache.load_metadata)
            self._ensure_owned(metadata.source_url)
            if metadata.total_size == 0 and self._size_hint > 0:
                metadata.total_size = self._size_hint
            self.metadata = metadata
            if metadata.total_size == 0:
                self._start_size_probe()
            log.info(f"Resuming '{metadata.name}' from cache.")
            return metadata

        self.cache.prepare(self.url)
        text = await self._fetch_playlist()
        await asyncio.to_thread(self.cache.write_playlist, text)

        uri = base_uri(self.url)
        parsed = parse_playlist(text, uri, self.config.segment_suffix, classifier)
        metadata = Metadata(
            source_url=self.url,
            base_uri=uri,
            name=self.cache.name,
            dialect=parsed.dialect,
            segments=parsed.segments,
            total_size=max(self._size_hint, parsed.declared_total),
        )
        await asyncio.to_thread(self.cache.save_metadata, metadata)
        self.cache.create_segments_dir()
        self.metadata = metadata

        if metadata.total_size == 0:
            self._start_size_probe()
        log.debug(f"Attached '{metadata.name}' with {len(metadata.segments)} segments.")
        return metadata

    async def _fetch_playlist(self) -> str:
        try:
            async with self.session.get(self.url, allow_redirects=True) as response:
                response.raise_for_status()
                data = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransferFailed(e, f"Could not fetch playlist '{self.url}': {e}") from e
        return data.decode("utf-8", errors="replace")

    def _start_size_probe(self) -> None:
        probe = SizeProbe(self.session, self.config.probe_concurrency)
        self._probe_task = asyncio.create_task(self._probe_sizes(probe))

    async def _probe_sizes(self, probe: SizeProbe) -> None:
        metadata = self.metadata

        def on_probe_progress(completed: int, total: int) -> None:
            self.events.publish(SizeProbeProgress(self.url, completed, total))

        total_size = await probe.run(metadata.segment_urls(), on_probe_progress)
        metadata.total_size = total_size
        self.events.publish(SizeProbeCompleted(self.url, total_size))
        try:
            await asyncio.to_thread(self.cache.save_metadata, metadata)
        except CacheAccessFailed as e:
            log.warning(f"[yellow]Could not persist probed size:[/] {e}")

    # -- download ---------------------------------------------------------------

    async def _download(self, progress: ProgressCallback | None) -> Path:
        if self.metadata is None:
            raise LogicError("Download requested before a successful attach.")

        def on_progress(sample: DownloadProgress) -> None:
            if progress:
                progress(sample)
            self.events.publish(ProgressChanged(self.url, sample))

        self._downloader = SegmentDownloader(
            self.session,
            self.cache,
            self.metadata,
            progress_interval=self.config.progress_interval,
            retry_limit=self.config.segment_retry_limit,
            retry_delay=self.config.segment_retry_delay,
            chunk_size=self.config.chunk_size,
        )
        return await self._downloader.run(on_progress, size_ready=self._probe_task)

    # -- combine ----------------------------------------------------------------

    async def _combine(self) -> Path:
        if self.metadata is None or self._downloader is None:
            raise LogicError("Combine requested before a successful download.")
        return await asyncio.to_thread(
            combine_segments,
            self.metadata,
            self.cache,
            self.config.output_extension,
            self._combine_cancel,
        )
