import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

OK = "OK"
WARNING = "WARNING"
CRITICAL = "CRITICAL"
ERROR = "ERROR"


@dataclass
class CheckResult:
    """Data class to hold the result of each check."""

    name: str               # Item name (e.g. "Qdrant")
    category: str           # "service" or "model"
    status: str             # "OK", "WARNING", "CRITICAL", "ERROR"
    details: str            # Detailed message
    recommendation: str | None = None

    @property
    def passed(self) -> bool:
        return self.status == OK


@dataclass
class HealthReport:
    results: list[CheckResult] = field(default_factory=list)

    @property
    def service_results(self) -> list[CheckResult]:
        return [r for r in self.results if r.category == "service"]

    @property
    def healthy(self) -> bool:
        """Every service probe passes right now; the model does not count."""
        services = self.service_results
        return bool(services) and all(r.passed for r in services)

    @property
    def model_present(self) -> bool:
        return any(r.category == "model" and r.passed for r in self.results)


class HealthCheck(ABC):
    """Base class inherited by all health check modules."""

    name: str = "check"
    category: str = "service"

    @abstractmethod
    def run(self) -> CheckResult:
        """Execute the check and return a result."""
        pass


class HealthMonitor:
    """Runs registered checks independently and aggregates the results.

    A check that raises is reported as an ERROR result; the remaining checks
    still run.
    """

    def __init__(self, checks: list[HealthCheck] | None = None) -> None:
        self.checks: list[HealthCheck] = list(checks or [])

    @classmethod
    def for_stack(cls, config, poller, model_manager) -> "HealthMonitor":
        """Monitor with one probe per service plus the embedding model check."""
        # (Import here to prevent circular references)
        from .checks.model import ModelCheck
        from .checks.services import ServiceCheck

        monitor = cls()
        for service in config.services():
            monitor.register_check(ServiceCheck(service, poller))
        monitor.register_check(ModelCheck(model_manager, config.embedding_model))
        return monitor

    def register_check(self, check: HealthCheck) -> None:
        """Register a health check instance to be run as part of the monitor.

        Args:
            check (HealthCheck): The check instance to register.
        """
        self.checks.append(check)

    def run_all(self) -> HealthReport:
        report = HealthReport()
        for check in self.checks:
            try:
                result = check.run()
            except Exception as e:
                logger.debug("Check %s raised", check.__class__.__name__, exc_info=True)
                result = CheckResult(
                    name=check.name,
                    category=check.category,
                    status=ERROR,
                    details=f"Check failed: {e}",
                )
            report.results.append(result)
        return report
