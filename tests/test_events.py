from hls_cli.core.events import EventChannel, PhaseCompleted, TaskErrored
from hls_cli.exceptions import LogicError


def test_subscribers_receive_events_until_unsubscribed():
    channel = EventChannel()
    received = []
    unsubscribe = channel.subscribe(received.append)

    channel.publish(PhaseCompleted("http://h/a.m3u8", "attach"))
    unsubscribe()
    channel.publish(PhaseCompleted("http://h/a.m3u8", "download"))

    assert [e.phase for e in received] == ["attach"]


def test_failing_handler_does_not_block_others():
    channel = EventChannel()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    channel.subscribe(broken)
    channel.subscribe(received.append)
    event = TaskErrored("http://h/a.m3u8", LogicError("out of order"), "download")

    channel.publish(event)

    assert received == [event]


def test_unsubscribing_an_unknown_handler_is_harmless():
    EventChannel().unsubscribe(print)
