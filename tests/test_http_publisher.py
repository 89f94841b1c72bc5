"""
Contract tests for the HTTP publisher (no network: httpx.MockTransport)
"""

import json

import httpx
import pytest
import typer
from typer.testing import CliRunner

from agent import main
from agent.errors import PublishFailure
from agent.main import _check_ingest_url
from agent.model import ProximityChanged
from agent.publish import HttpPublisher

EVENT = ProximityChanged(
    is_proximity_detected=False,
    reason="heartbeat",
    device_timestamp="2026-01-01T00:01:00+00:00",
)


def _publisher(handler) -> HttpPublisher:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpPublisher("https://ingest.example.test/events", device_id="catbell-porch", client=client)


def test_posts_envelope_json() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/events"
        seen.append(json.loads(request.content))
        return httpx.Response(202)

    _publisher(handler).publish(EVENT)

    assert seen[0]["body"] == {
        "deviceTimestamp": "2026-01-01T00:01:00+00:00",
        "messageType": "ProximityInfo",
        "isProximityDetected": False,
        "reason": "heartbeat",
    }
    assert seen[0]["properties"] == {"messageType": "ProximityInfo"}


def test_error_status_raises_publish_failure() -> None:
    publisher = _publisher(lambda request: httpx.Response(503))

    with pytest.raises(PublishFailure, match="503"):
        publisher.publish(EVENT)


def test_transport_error_raises_publish_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PublishFailure, match="ingest request failed"):
        _publisher(handler).publish(EVENT)


BAD_PORT_URL = "https://ingest.example.test:80a/events"


def test_invalid_url_raises_publish_failure() -> None:
    publisher = HttpPublisher(BAD_PORT_URL, device_id="catbell-porch")

    with pytest.raises(PublishFailure, match="ingest request failed"):
        publisher.publish(EVENT)


def test_invalid_url_does_not_stop_the_device_loop(replay_loop) -> None:
    """
    Every heartbeat fails, the loop keeps going and liveness still advances
    """
    publisher = HttpPublisher(BAD_PORT_URL, device_id="catbell-porch")

    device = replay_loop([False] * 1301, publisher)

    assert device.channel.failed == 2
    assert device.channel.tracker.last_sent_ms == 120_000


@pytest.mark.parametrize("url", [BAD_PORT_URL, "not-a-url", "ftp://ingest.example.test/events"])
def test_check_ingest_url_rejects_bad_urls(url) -> None:
    with pytest.raises(typer.BadParameter):
        _check_ingest_url(url)


def test_run_rejects_bad_ingest_url_before_touching_hardware(monkeypatch) -> None:
    def no_hardware(pin):
        raise AssertionError("sensor opened before the ingest url was checked")

    monkeypatch.setattr(main, "GpioSampleReader", no_hardware)

    result = CliRunner().invoke(
        main.app,
        ["run", "--publisher", "http", "--ingest-url", BAD_PORT_URL, "--device-id", "catbell-porch"],
    )

    assert result.exit_code == 2


def test_run_closes_reader_and_publisher_on_shutdown(monkeypatch) -> None:
    closed: list[str] = []
    published: list[object] = []

    class InterruptedReader:
        def __init__(self, pin) -> None:
            self.pin = pin

        def read(self) -> bool:
            raise KeyboardInterrupt

        def close(self) -> None:
            closed.append("reader")

    class StubHttpPublisher:
        def __init__(self, url, *, device_id) -> None:
            self.url = url

        def publish(self, message) -> None:
            published.append(message)

        def close(self) -> None:
            closed.append("publisher")

    monkeypatch.setattr(main, "GpioSampleReader", InterruptedReader)
    monkeypatch.setattr(main, "HttpPublisher", StubHttpPublisher)

    result = CliRunner().invoke(
        main.app,
        [
            "run",
            "--publisher",
            "http",
            "--ingest-url",
            "https://ingest.example.test/events",
            "--device-id",
            "catbell-porch",
        ],
    )

    assert result.exit_code == 0, result.output
    assert closed == ["reader", "publisher"]
    assert [type(m).__name__ for m in published] == ["DeviceStarted"]
