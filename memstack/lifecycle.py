"""
Day-to-day operations on an installed stack: start, stop, restart, status
and logs.
"""

import logging
import time
from dataclasses import dataclass, field

from rich.table import Table

from memstack.branding import console, cx_header, cx_print
from memstack.config import StackConfig
from memstack.engine import ContainerEngine, ContainerState, EngineResult
from memstack.errors import MemstackError, NotInstalledError
from memstack.health import CheckResult, HealthReport
from memstack.orchestrator import BringUpReport, Orchestrator

logger = logging.getLogger(__name__)

RESTART_SETTLE_SECONDS = 2.0
LOG_TAIL = 100

_STATUS_STYLE = {
    "OK": ("green", "✓"),
    "WARNING": ("yellow", "⚠"),
    "CRITICAL": ("red", "✗"),
    "ERROR": ("red", "✗"),
}


@dataclass
class StatusReport:
    installed: bool
    containers: list[ContainerState] = field(default_factory=list)
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.installed and HealthReport(self.checks).healthy

    @property
    def model_present(self) -> bool:
        return HealthReport(self.checks).model_present


class LifecycleManager:
    """Start/stop/restart/status/logs over the running service set."""

    def __init__(
        self,
        config: StackConfig,
        engine: ContainerEngine,
        orchestrator: Orchestrator | None = None,
        settle_seconds: float = RESTART_SETTLE_SECONDS,
    ) -> None:
        self.config = config
        self.engine = engine
        self.orchestrator = orchestrator or Orchestrator(config, engine)
        self.settle_seconds = settle_seconds

    def _require_installed(self) -> None:
        if not self.config.is_installed():
            raise NotInstalledError(
                f"Docker Compose file not found at {self.config.compose_file}. "
                "Run 'memstack install' first"
            )

    def start(self) -> BringUpReport:
        self._require_installed()
        report = self.orchestrator.bring_up()
        if report.healthy:
            self._print_urls()
        return report

    def stop(self) -> EngineResult:
        self._require_installed()
        cx_print("Stopping services...", "info")
        result = self.engine.compose_down(self.config.compose_file)
        if result.succeeded():
            cx_print("Services stopped", "success")
        else:
            cx_print(f"Failed to stop services: {result.stderr.strip()}", "error")
        return result

    def restart(self) -> BringUpReport:
        cx_print("Restarting services...", "info")
        self.stop()
        time.sleep(self.settle_seconds)
        return self.start()

    def logs(self, service: str | None = None) -> EngineResult:
        self._require_installed()
        if service is not None:
            known = [d.name for d in self.config.services()]
            if service not in known:
                raise MemstackError(f"Unknown service '{service}'. Choose from: {', '.join(known)}")
        return self.engine.compose_logs(self.config.compose_file, service=service, tail=LOG_TAIL, follow=True)

    def status(self) -> StatusReport:
        """
        Print and return the current state of the stack.

        Never raises: a missing installation is reported as "not installed",
        and a failing check is reported alongside the others.
        """
        cx_header("Memory Services", "Service Status")

        if not self.config.is_installed():
            cx_print("Services not installed", "error")
            cx_print("Run 'memstack install' to set them up", "info")
            return StatusReport(installed=False)

        report = StatusReport(installed=True)

        try:
            report.containers = self.engine.compose_ps(self.config.compose_file)
        except Exception as e:
            logger.debug("compose ps raised", exc_info=True)
            cx_print(f"Could not list containers: {e}", "warning")

        self._print_containers(report.containers)

        report.checks = self.orchestrator.monitor.run_all().results
        self._print_checks(report.checks)
        return report

    # ------------------------------------------------------------ Output
    def _print_containers(self, containers: list[ContainerState]) -> None:
        console.print("\n[bold]Docker Containers:[/bold]")
        if not containers:
            cx_print("No containers running", "warning")
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("Name")
        table.add_column("Service")
        table.add_column("Status")
        for c in containers:
            table.add_row(c.name, c.service, c.describe())
        console.print(table)

    def _print_checks(self, checks: list[CheckResult]) -> None:
        console.print("\n[bold]Service Health:[/bold]")
        for check in checks:
            style, icon = _STATUS_STYLE.get(check.status, ("red", "✗"))
            if check.category == "model":
                console.print()
            console.print(f"  • {check.name:<16} [{style}]{icon} {check.details}[/{style}]")
            if check.recommendation and not check.passed:
                console.print(f"    [dim]{check.recommendation}[/dim]")

    def _print_urls(self) -> None:
        console.print("\n[bold]Service URLs:[/bold]")
        console.print(f"  • Qdrant Dashboard: http://localhost:{self.config.qdrant_port}/dashboard")
        console.print(f"  • Ollama API:       http://localhost:{self.config.ollama_port}")
        console.print(f"  • Memory API:       http://localhost:{self.config.mem0_port}")
