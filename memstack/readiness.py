"""
Readiness polling for the memory service stack.

A probe is a single best-effort check: a TCP connect-and-close or an HTTP GET
with a short timeout. Any failure means "not yet ready". The poller repeats a
probe under a RetryPolicy and reports a timeout as a result, never as an
exception; the caller decides whether to continue, warn or abort.
"""

import logging
import socket
import time
from dataclasses import dataclass

import requests

from memstack.config import HealthProbe, ServiceDescriptor
from memstack.utils.retry import DEFAULT_POLICIES, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class ReadinessResult:
    """Outcome of one poll cycle for one service."""

    service: str
    healthy: bool
    attempts: int
    elapsed: float = 0.0


def probe_tcp(host: str, port: int, timeout: float = 5.0) -> bool:
    """Return True when a TCP connection to host:port can be opened."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug("TCP probe %s:%s failed: %s", host, port, e)
        return False


def probe_http(url: str, timeout: float = 5.0) -> bool:
    """Return True when ``url`` answers with a 2xx status."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.debug("HTTP probe %s failed: %s", url, e)
        return False
    return 200 <= response.status_code < 300


def run_probe(probe: HealthProbe) -> bool:
    if probe.kind == "http":
        return probe_http(probe.url, timeout=probe.timeout)
    if probe.kind == "tcp":
        return probe_tcp(probe.host, probe.port, timeout=probe.timeout)
    raise ValueError(f"Unknown probe kind: {probe.kind}")


class ReadinessPoller:
    """Repeats a service's health probe until it passes or the budget runs out."""

    def __init__(self, policy: RetryPolicy | None = None) -> None:
        self.policy = policy or DEFAULT_POLICIES["readiness"]

    def probe_once(self, service: ServiceDescriptor) -> bool:
        return run_probe(service.probe)

    def wait(self, service: ServiceDescriptor, policy: RetryPolicy | None = None) -> ReadinessResult:
        """
        Poll ``service`` until it answers.

        Makes at most ``policy.max_attempts`` probes and sleeps between them,
        never after the last one.

        Args:
            service: Service to poll.
            policy: Overrides the poller's default budget for this call.

        Returns:
            ReadinessResult with healthy=False when the budget is exhausted.
        """
        policy = policy or self.policy
        start = time.monotonic()

        for attempt in range(1, policy.max_attempts + 1):
            if self.probe_once(service):
                elapsed = time.monotonic() - start
                logger.debug("%s ready after %d attempt(s)", service.name, attempt)
                return ReadinessResult(service.name, True, attempt, elapsed)

            if attempt < policy.max_attempts:
                time.sleep(policy.delay_for(attempt))

        elapsed = time.monotonic() - start
        logger.info(
            "%s not ready after %d attempts (%.1fs)", service.name, policy.max_attempts, elapsed
        )
        return ReadinessResult(service.name, False, policy.max_attempts, elapsed)
