import json

import pytest

from shared.events.notifier import Notifier, STREAM_NAME
from shared.utils.circuit_breaker import CircuitBreaker, CircuitOpenError


class FakeRedis:

    def __init__(self, fail=False):
        self.fail    = fail
        self.entries = []

    def xadd(self, stream, fields, maxlen=None, approximate=True):
        if self.fail:
            raise ConnectionError("redis down")
        self.entries.append((stream, json.loads(fields["data"])))
        return f"{len(self.entries)}-0"


def test_publishes_to_notification_stream():
    client = FakeRedis()
    notifier = Notifier("counter-1", client=client, breaker=CircuitBreaker("t"))
    assert notifier("Added Sugar: 2 kg", "success", 1500) == "1-0"
    stream, payload = client.entries[0]
    assert stream == STREAM_NAME
    assert payload["message"] == "Added Sugar: 2 kg"
    assert payload["severity"] == "success"
    assert payload["session_id"] == "counter-1"
    assert payload["duration_ms"] == 1500


def test_unknown_severity_falls_back_to_info():
    client = FakeRedis()
    Notifier(client=client, breaker=CircuitBreaker("t")).notify("hello", "loud")
    assert client.entries[0][1]["severity"] == "info"


def test_delivery_failure_never_raises():
    notifier = Notifier(client=FakeRedis(fail=True), breaker=CircuitBreaker("t"))
    assert notifier.notify("Low stock!", "error") is None


def test_breaker_stops_calling_a_dead_channel():
    client = FakeRedis(fail=True)
    breaker = CircuitBreaker("t", failure_threshold=2, recovery_timeout=60)
    notifier = Notifier(client=client, breaker=breaker)
    for _ in range(2):
        notifier.notify("x")
    assert breaker.state == "OPEN"
    client.fail = False
    notifier.notify("y")
    assert client.entries == []


def test_breaker_recovers_after_timeout():
    now = [0.0]
    breaker = CircuitBreaker("t", failure_threshold=1, recovery_timeout=30, clock=lambda: now[0])

    def boom():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        breaker.call(boom)
    with pytest.raises(CircuitOpenError):
        breaker.call(lambda: "ok")
    now[0] = 31
    assert breaker.state == "HALF_OPEN"
    assert breaker.call(lambda: "ok") == "ok"
    assert breaker.state == "CLOSED"
