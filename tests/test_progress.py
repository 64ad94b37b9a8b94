"""Tests for the progress event channel."""

import threading

from refscout.discovery.progress import ProgressChannel
from refscout.models import ProgressEvent, SearchIndex


def _event(message):
    return ProgressEvent(stage="verification", status="verified", message=message)


class TestProgressChannel:
    def test_events_end_at_close(self):
        channel = ProgressChannel()
        channel.publish(_event("a"))
        channel.publish(_event("b"))
        channel.close()
        assert [e.message for e in channel.events()] == ["a", "b"]

    def test_publish_after_close_is_dropped(self):
        channel = ProgressChannel()
        channel.close()
        channel.publish(_event("late"))
        assert channel.closed
        assert list(channel.events()) == []

    def test_drain_does_not_block(self):
        channel = ProgressChannel()
        assert channel.drain() == []
        channel.publish(_event("a"))
        assert [e.message for e in channel.drain()] == ["a"]

    def test_drain_keeps_close_for_iterators(self):
        channel = ProgressChannel()
        channel.publish(_event("a"))
        channel.close()
        assert len(channel.drain()) == 1
        assert list(channel.events()) == []

    def test_timeout_stops_iteration(self):
        channel = ProgressChannel()
        assert list(channel.events(timeout=0.01)) == []

    def test_consumer_thread(self):
        channel = ProgressChannel()
        received = []
        consumer = threading.Thread(target=lambda: received.extend(channel.events()))
        consumer.start()
        for i in range(5):
            channel.publish(_event(str(i)))
        channel.close()
        consumer.join(timeout=5)
        assert [e.message for e in received] == ["0", "1", "2", "3", "4"]


def test_event_to_dict():
    event = ProgressEvent(
        stage="topic_search", status="query_complete", message="m", data={"results": 3}, track="B",
        index=SearchIndex.ARXIV,
    )
    assert event.to_dict() == {
        "stage": "topic_search",
        "status": "query_complete",
        "message": "m",
        "data": {"results": 3},
        "track": "B",
        "index": "arxiv",
    }
