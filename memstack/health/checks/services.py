from memstack.config import ServiceDescriptor
from memstack.readiness import ReadinessPoller

from ..monitor import CRITICAL, OK, CheckResult, HealthCheck


class ServiceCheck(HealthCheck):
    """Single health probe against one service."""

    category = "service"

    def __init__(self, service: ServiceDescriptor, poller: ReadinessPoller) -> None:
        self.service = service
        self.poller = poller
        self.name = service.name

    def run(self) -> CheckResult:
        target = self.service.probe.describe()
        if self.poller.probe_once(self.service):
            return CheckResult(self.name, self.category, OK, f"Healthy ({target})")
        return CheckResult(
            self.name,
            self.category,
            CRITICAL,
            f"Not responding ({target})",
            recommendation=f"docker logs {self.service.container_name}",
        )
