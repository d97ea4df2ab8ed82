import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from hls_cli.models.config import DownloadConfig


class Origin:
    """
    A local HTTP server standing in for the remote playlist host.

    Files are served from memory. For GET requests, tests can make a path fail
    with 503 a number of times, cut the body short a number of times (half the
    body, a pause, then the connection is dropped), delay every response, or
    hold responses until a gate event is set.
    """

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.failures: dict[str, int] = {}
        self.truncations: dict[str, int] = {}
        self.delays: dict[str, float] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.requests: list[tuple[str, str]] = []
        self._server: TestServer | None = None

    def add(self, path: str, data: bytes | str) -> None:
        self.files[path] = data.encode() if isinstance(data, str) else data

    def url(self, path: str) -> str:
        return str(self._server.make_url(path))

    def count(self, path: str, method: str = "GET") -> int:
        return sum(1 for m, p in self.requests if m == method and p == path)

    def gets(self) -> list[str]:
        return [p for m, p in self.requests if m == "GET"]

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        path = request.path
        self.requests.append((request.method, path))
        if request.method == "GET":
            if gate := self.gates.get(path):
                await gate.wait()
            if delay := self.delays.get(path):
                await asyncio.sleep(delay)
            if self.failures.get(path, 0) > 0:
                self.failures[path] -= 1
                return web.Response(status=503)
            if self.truncations.get(path, 0) > 0 and path in self.files:
                self.truncations[path] -= 1
                return await self._truncate(request, self.files[path])
        if path not in self.files:
            raise web.HTTPNotFound()
        return web.Response(body=self.files[path])

    async def _truncate(self, request: web.Request, body: bytes) -> web.StreamResponse:
        response = web.StreamResponse(headers={"Content-Length": str(len(body))})
        await response.prepare(request)
        await response.write(body[: len(body) // 2])
        await asyncio.sleep(self.delays.get(request.path, 0))
        request.transport.close()
        return response

    async def __aenter__(self) -> "Origin":
        app = web.Application()
        app.router.add_route("*", "/{path:.*}", self._handle)
        self._server = TestServer(app)
        await self._server.start_server()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        for gate in self.gates.values():
            gate.set()
        await self._server.close()


@pytest.fixture
def origin():
    """A fresh, not yet started Origin; use it with `async with`."""
    return Origin()


@pytest.fixture
def config(tmp_path):
    return DownloadConfig(workspace=str(tmp_path / "workspace"), progress_interval=0.05)
