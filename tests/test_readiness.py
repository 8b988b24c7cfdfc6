"""Tests for readiness probes and the poller."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from memstack.config import HealthProbe, ServiceDescriptor
from memstack.readiness import ReadinessPoller, probe_http, probe_tcp, run_probe
from memstack.utils.retry import RetryPolicy


@pytest.fixture
def service():
    return ServiceDescriptor(
        name="qdrant",
        container_name="claude-qdrant",
        port=6333,
        probe=HealthProbe("tcp", "localhost", 6333),
    )


class TestProbes:
    @patch("memstack.readiness.socket.create_connection")
    def test_tcp_probe_success(self, mock_connect):
        assert probe_tcp("localhost", 6333) is True
        mock_connect.assert_called_once_with(("localhost", 6333), timeout=5.0)

    @patch("memstack.readiness.socket.create_connection", side_effect=ConnectionRefusedError())
    def test_tcp_probe_refused(self, mock_connect):
        assert probe_tcp("localhost", 6333) is False

    @patch("memstack.readiness.socket.create_connection", side_effect=TimeoutError())
    def test_tcp_probe_timeout(self, mock_connect):
        assert probe_tcp("localhost", 6333, timeout=0.1) is False

    @patch("memstack.readiness.requests.get")
    def test_http_probe_2xx(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        assert probe_http("http://localhost:8765/health") is True
        mock_get.assert_called_once_with("http://localhost:8765/health", timeout=5.0)

    @patch("memstack.readiness.requests.get")
    def test_http_probe_server_error(self, mock_get):
        mock_get.return_value = MagicMock(status_code=503)
        assert probe_http("http://localhost:8765/health") is False

    @patch("memstack.readiness.requests.get", side_effect=requests.ConnectionError("refused"))
    def test_http_probe_connection_error(self, mock_get):
        assert probe_http("http://localhost:8765/health") is False

    @patch("memstack.readiness.probe_http", return_value=True)
    def test_run_probe_dispatches_http(self, mock_http):
        probe = HealthProbe("http", "localhost", 8765, path="/health")
        assert run_probe(probe) is True
        mock_http.assert_called_once_with("http://localhost:8765/health", timeout=5.0)

    def test_run_probe_unknown_kind(self):
        with pytest.raises(ValueError):
            run_probe(HealthProbe("udp", "localhost", 1))


class TestReadinessPoller:
    @patch("memstack.readiness.time.sleep")
    def test_never_ready_uses_whole_budget(self, mock_sleep, service):
        poller = ReadinessPoller(RetryPolicy(max_attempts=4, delay=2.0))
        with patch.object(poller, "probe_once", return_value=False) as mock_probe:
            result = poller.wait(service)

        assert result.healthy is False
        assert result.attempts == 4
        assert mock_probe.call_count == 4
        # No sleep after the final probe
        assert mock_sleep.call_count == 3
        mock_sleep.assert_called_with(2.0)

    @patch("memstack.readiness.time.sleep")
    def test_returns_on_first_success(self, mock_sleep, service):
        poller = ReadinessPoller(RetryPolicy(max_attempts=10, delay=1.0))
        with patch.object(poller, "probe_once", side_effect=[False, False, True]) as mock_probe:
            result = poller.wait(service)

        assert result.healthy is True
        assert result.attempts == 3
        assert mock_probe.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("memstack.readiness.time.sleep")
    def test_ready_immediately_does_not_sleep(self, mock_sleep, service):
        poller = ReadinessPoller(RetryPolicy(max_attempts=3, delay=1.0))
        with patch.object(poller, "probe_once", return_value=True):
            result = poller.wait(service)

        assert result.healthy is True
        assert result.attempts == 1
        mock_sleep.assert_not_called()

    @patch("memstack.readiness.time.sleep")
    def test_per_call_policy_override(self, mock_sleep, service):
        poller = ReadinessPoller(RetryPolicy(max_attempts=30, delay=2.0))
        with patch.object(poller, "probe_once", return_value=False) as mock_probe:
            result = poller.wait(service, RetryPolicy(max_attempts=1, delay=2.0))

        assert result.attempts == 1
        assert mock_probe.call_count == 1
        mock_sleep.assert_not_called()

    @patch("memstack.readiness.time.sleep")
    @patch("memstack.readiness.socket.create_connection", side_effect=OSError("refused"))
    def test_probe_errors_count_as_not_ready(self, mock_connect, mock_sleep, service):
        result = ReadinessPoller(RetryPolicy(max_attempts=2, delay=0.0)).wait(service)
        assert result.healthy is False
        assert mock_connect.call_count == 2
