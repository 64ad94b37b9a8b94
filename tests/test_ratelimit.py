"""Tests for per-index request pacing."""

import threading
import time
from unittest.mock import patch

from refscout.search.ratelimit import RateLimiter


class TestRateLimiter:
    def test_first_call_does_not_wait(self):
        limiter = RateLimiter(delay=10)
        with patch("refscout.search.ratelimit.time.sleep") as sleep:
            with limiter.slot("pubmed"):
                pass
        sleep.assert_not_called()

    def test_second_call_waits_out_delay(self):
        limiter = RateLimiter(delay=10)
        with patch("refscout.search.ratelimit.time.sleep") as sleep:
            with limiter.slot("pubmed"):
                pass
            with limiter.slot("pubmed"):
                pass
        sleep.assert_called_once()
        waited = sleep.call_args.args[0]
        assert 9 < waited <= 10

    def test_indices_are_independent(self):
        limiter = RateLimiter(delay=10)
        with patch("refscout.search.ratelimit.time.sleep") as sleep:
            with limiter.slot("pubmed"):
                pass
            with limiter.slot("arxiv"):
                pass
        sleep.assert_not_called()

    def test_per_index_override(self):
        limiter = RateLimiter(delay=0.4, delays={"pubmed": 0.1})
        assert limiter.delay_for("pubmed") == 0.1
        assert limiter.delay_for("biorxiv") == 0.4

    def test_zero_delay_never_sleeps(self):
        limiter = RateLimiter(delay=0)
        with patch("refscout.search.ratelimit.time.sleep") as sleep:
            for _ in range(3):
                with limiter.slot("pubmed"):
                    pass
        sleep.assert_not_called()

    def test_concurrent_calls_serialized_with_gap(self):
        delay = 0.05
        limiter = RateLimiter(delay=delay)
        spans = []
        spans_lock = threading.Lock()

        def call():
            with limiter.slot("pubmed"):
                start = time.monotonic()
                time.sleep(0.01)
                end = time.monotonic()
            with spans_lock:
                spans.append((start, end))

        threads = [threading.Thread(target=call) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        spans.sort()
        for (_, previous_end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start - previous_end >= delay * 0.9
