"""
The task registry: maps source URLs to their live workflows.
"""

import logging
from pathlib import Path

import aiohttp

from hls_cli.exceptions import DuplicateTask, InvalidParameters
from hls_cli.media.downloader import close_connection_pool, get_connection_pool
from hls_cli.media.playlist import SegmentClassifier
from hls_cli.models.config import DownloadConfig
from hls_cli.utils.path import is_remote_url, task_name

from .events import EventChannel, TaskErrored
from .workflow import AttachCompletion, Workflow

log = logging.getLogger(__name__)


class Manager:
    """
    Creates workflows, refuses duplicates and forgets workflows once they finish.

    Usage:
        async with Manager(config) as manager:
            workflow = manager.attach(url).download().combine()
            await workflow.join()
    """

    def __init__(
        self,
        config: DownloadConfig,
        session: aiohttp.ClientSession | None = None,
        events: EventChannel | None = None,
    ):
        """
        Args:
            config: Validated application configuration.
            session: HTTP session for all workflows. When omitted, the shared
                download pool is opened on enter and closed on exit.
            events: Channel shared by all workflows of this manager.
        """
        self.config = config
        self.events = events or EventChannel()
        self._session = session
        self._owns_session = session is None
        self._workflows: dict[str, Workflow] = {}

    @property
    def workspace(self) -> Path:
        return Path(self.config.workspace).expanduser()

    async def __aenter__(self) -> "Manager":
        if self._session is None:
            self._session = await get_connection_pool(
                self.config.probe_concurrency, self.config.request_timeout
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel_all()
        if self._owns_session:
            await close_connection_pool()
            self._session = None

    def attach(
        self,
        url: str,
        size: int = 0,
        classifier: SegmentClassifier | None = None,
        completion: AttachCompletion | None = None,
    ) -> Workflow:
        """
        Starts a workflow for url and queues its attach phase.

        Args:
            url: Remote playlist URL.
            size: Known total size in bytes, or 0 to probe segment sizes.
            classifier: Optional (line, base_uri) -> URL | None segment classifier.
            completion: Called with the attach result.

        Raises:
            InvalidParameters: If url is not a remote http(s) URL or the workspace
                is not on local storage.
            DuplicateTask: If a workflow for url, or for another URL with the same
                task folder, is still running.
        """
        if not is_remote_url(url) or "://" in self.config.workspace:
            error = InvalidParameters(
                f"Cannot attach '{url}': source must be an http(s) URL and the "
                "workspace a local directory."
            )
            self.events.publish(TaskErrored(url, error))
            raise error

        if url in self._workflows:
            error = DuplicateTask(f"'{url}' is already being processed.")
            self.events.publish(TaskErrored(url, error))
            raise error

        folder = self.folder(url)
        owner = next((w for w in self._workflows.values() if w.folder == folder), None)
        if owner is not None:
            error = DuplicateTask(
                f"'{url}' would share the task folder '{folder}' with '{owner.url}', "
                "which is still being processed."
            )
            self.events.publish(TaskErrored(url, error))
            raise error

        if self._session is None:
            raise InvalidParameters(
                "Manager has no HTTP session; use it as an async context manager."
            )

        workflow = Workflow(
            url,
            self.config,
            self._session,
            events=self.events,
            on_finished=self._workflow_did_finish,
            size=size,
        )
        self._workflows[url] = workflow
        log.debug(f"Attaching '{url}'.")
        return workflow.attach(classifier=classifier, completion=completion)

    def cancel(self, url: str) -> None:
        """Cancels and forgets the workflow for url, if any."""
        workflow = self._workflows.pop(url, None)
        if workflow:
            workflow.cancel()

    def cancel_all(self) -> None:
        for url in list(self._workflows):
            self.cancel(url)

    def is_running(self, url: str) -> bool:
        return url in self._workflows

    def workflow(self, url: str) -> Workflow | None:
        return self._workflows.get(url)

    def folder(self, url: str) -> Path | None:
        """
        The directory holding everything for url. Deleting it removes all of the
        task's cache and output.
        """
        if not is_remote_url(url):
            return None
        return self.workspace / task_name(url)

    def _workflow_did_finish(self, workflow: Workflow) -> None:
        if self._workflows.get(workflow.url) is workflow:
            del self._workflows[workflow.url]
            log.debug(f"Workflow for '{workflow.url}' finished ({workflow.state.value}).")
