import asyncio

import aiohttp
import pytest

from hls_cli.core.events import TaskErrored
from hls_cli.core.manager import Manager
from hls_cli.core.workflow import WorkflowState
from hls_cli.exceptions import DuplicateTask, InvalidParameters
from hls_cli.models.config import DownloadConfig

PLAYLIST = "#EXTM3U\n#EXTINF:10,\nseg0.ts\n#EXT-X-ENDLIST\n"


@pytest.mark.parametrize(
    "url",
    ["/tmp/video.m3u8", "file:///tmp/video.m3u8", "ftp://host/video.m3u8", ""],
)
def test_attach_rejects_non_http_sources(config, url):
    errors = []

    async def scenario():
        async with aiohttp.ClientSession() as session:
            async with Manager(config, session=session) as manager:
                manager.events.subscribe(errors.append)
                with pytest.raises(InvalidParameters):
                    manager.attach(url)
                assert not manager.is_running(url)

    asyncio.run(scenario())

    [event] = errors
    assert isinstance(event, TaskErrored)
    assert isinstance(event.error, InvalidParameters)


def test_attach_rejects_remote_workspace(tmp_path):
    config = DownloadConfig(workspace="s3://bucket/videos")

    async def scenario():
        async with aiohttp.ClientSession() as session:
            async with Manager(config, session=session) as manager:
                with pytest.raises(InvalidParameters):
                    manager.attach("http://host/video.m3u8")

    asyncio.run(scenario())


def test_attach_refuses_a_url_that_is_still_running(origin, config):
    """
    Given a workflow for a URL that has not finished
    When the same URL is attached again
    Then DuplicateTask is raised and the first workflow is untouched
    """
    errors = []

    async def scenario():
        async with origin, aiohttp.ClientSession() as session:
            origin.add("/x/video.m3u8", PLAYLIST)
            origin.gates["/x/video.m3u8"] = asyncio.Event()
            url = origin.url("/x/video.m3u8")
            async with Manager(config, session=session) as manager:
                manager.events.subscribe(errors.append)
                first = manager.attach(url, size=1)
                with pytest.raises(DuplicateTask):
                    manager.attach(url)
                assert manager.workflow(url) is first
                origin.gates["/x/video.m3u8"].set()
                await first.join()
                assert not manager.is_running(url)
                # Once finished, the URL may be attached again
                await manager.attach(url, size=1).join()

    asyncio.run(scenario())

    assert [type(e.error) for e in errors if isinstance(e, TaskErrored)] == [DuplicateTask]


def test_exiting_the_manager_cancels_live_workflows(origin, config):
    async def scenario():
        async with origin, aiohttp.ClientSession() as session:
            origin.add("/x/video.m3u8", PLAYLIST)
            origin.gates["/x/video.m3u8"] = asyncio.Event()
            url = origin.url("/x/video.m3u8")
            async with Manager(config, session=session) as manager:
                workflow = manager.attach(url)
                await asyncio.sleep(0.05)
            assert not manager.is_running(url)
            return await workflow.join()

    assert asyncio.run(scenario()) is WorkflowState.CANCELLED


def test_folder_is_workspace_and_task_name(config):
    manager = Manager(config)

    assert manager.folder("https://host/a/b/show.m3u8?t=1") == manager.workspace / "show"
    assert manager.folder("/local/show.m3u8") is None


def test_attach_without_session_is_rejected(config):
    async def scenario():
        manager = Manager(config)
        with pytest.raises(InvalidParameters):
            manager.attach("http://host/video.m3u8")

    asyncio.run(scenario())


def test_manager_opens_and_closes_its_own_pool(config):
    async def scenario():
        async with Manager(config) as manager:
            session = manager._session
            assert session is not None and not session.closed
        return session

    session = asyncio.run(scenario())

    assert session.closed


def test_attach_refuses_a_second_source_for_a_live_task_folder(origin, config):
    """
    Given a running workflow for /a/index.m3u8
    When /b/index.m3u8, whose task folder has the same name, is attached
    Then DuplicateTask is raised and only the first source is registered
    """
    errors = []

    async def scenario():
        async with origin, aiohttp.ClientSession() as session:
            origin.add("/a/index.m3u8", PLAYLIST)
            origin.gates["/a/index.m3u8"] = asyncio.Event()
            first_url = origin.url("/a/index.m3u8")
            second_url = origin.url("/b/index.m3u8")
            async with Manager(config, session=session) as manager:
                manager.events.subscribe(errors.append)
                first = manager.attach(first_url, size=1)
                with pytest.raises(DuplicateTask):
                    manager.attach(second_url, size=1)
                assert manager.folder(second_url) == first.folder
                assert manager.is_running(first_url)
                assert not manager.is_running(second_url)
                origin.gates["/a/index.m3u8"].set()
                await first.join()
                return second_url

    second_url = asyncio.run(scenario())

    [event] = [e for e in errors if isinstance(e, TaskErrored)]
    assert event.url == second_url
    assert isinstance(event.error, DuplicateTask)
    assert origin.count("/b/index.m3u8") == 0
