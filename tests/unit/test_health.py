"""Unit tests for sqsd.health."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

import requests

from sqsd.health import probe, wait_until_healthy
from tests.helpers import FakeResponse

HEALTH_URL = "http://app.local/health"


def _session(*outcomes: int | Exception) -> MagicMock:
    session = MagicMock()
    session.get.side_effect = [
        outcome if isinstance(outcome, Exception) else FakeResponse(outcome)
        for outcome in outcomes
    ]
    return session


def test_probe_reports_status_and_errors() -> None:
    session = _session(200, 503, requests.ConnectionError("refused"))

    assert probe(session, HEALTH_URL, timeout=1) is None
    assert probe(session, HEALTH_URL, timeout=1) == "Server returned status code 503"
    assert probe(session, HEALTH_URL, timeout=1) == "refused"
    session.get.assert_called_with(HEALTH_URL, timeout=1)


def test_single_success_is_enough_by_default() -> None:
    session = _session(200)

    assert wait_until_healthy(
        HEALTH_URL, initial_wait=0, interval=0, session=session, log=MagicMock()
    )
    assert session.get.call_count == 1


def test_failures_are_retried_until_healthy() -> None:
    session = _session(requests.ConnectionError("refused"), 502, 200)
    log = MagicMock()

    assert wait_until_healthy(HEALTH_URL, initial_wait=0, interval=0, session=session, log=log)
    assert session.get.call_count == 3
    assert log.info.call_count >= 2


def test_successes_must_be_consecutive() -> None:
    session = _session(200, 500, 200, 200, 500, 200, 200, 200)

    assert wait_until_healthy(
        HEALTH_URL,
        initial_wait=0,
        interval=0,
        success_count=3,
        session=session,
        log=MagicMock(),
    )
    assert session.get.call_count == 8


def test_stop_during_initial_wait_skips_probing() -> None:
    stop = threading.Event()
    stop.set()
    session = MagicMock()

    assert not wait_until_healthy(
        HEALTH_URL, initial_wait=60, interval=60, session=session, stop=stop, log=MagicMock()
    )
    session.get.assert_not_called()


def test_stop_between_probes_gives_up() -> None:
    stop = threading.Event()
    session = MagicMock()

    def _get(url: str, timeout: float) -> FakeResponse:
        stop.set()
        return FakeResponse(500)

    session.get.side_effect = _get

    assert not wait_until_healthy(
        HEALTH_URL, initial_wait=0, interval=60, session=session, stop=stop, log=MagicMock()
    )
    assert session.get.call_count == 1


def test_session_created_for_the_gate_is_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    session = MagicMock()
    session.get.return_value = FakeResponse(200)
    session_cls = MagicMock()
    session_cls.return_value.__enter__.return_value = session
    monkeypatch.setattr("sqsd.health.requests.Session", session_cls)

    assert wait_until_healthy(HEALTH_URL, initial_wait=0, interval=0, log=MagicMock())

    session.get.assert_called_once()
    session_cls.return_value.__exit__.assert_called_once()
