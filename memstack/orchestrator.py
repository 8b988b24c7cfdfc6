"""
Bring-up and teardown sequencing for the memory service stack.

bring_up() order is fixed: clear stale containers, start the compose project,
wait for the vector store and model runtime, wait for the memory API, make
sure the embedding model is present, then take a final health reading.
"""

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum

from memstack.branding import cx_print
from memstack.config import StackConfig
from memstack.engine import ContainerEngine, EngineResult
from memstack.errors import OrchestrationError
from memstack.health import HealthMonitor, HealthReport
from memstack.models import ModelManager, ModelStatus
from memstack.readiness import ReadinessPoller, ReadinessResult
from memstack.utils.retry import RetryPolicy, load_policies_from_env

logger = logging.getLogger(__name__)


class TeardownLevel(Enum):
    """How much to remove."""

    STOP = "stop"            # named containers only
    FULL = "full"            # containers and named volumes
    EMERGENCY = "emergency"  # anything matching the naming pattern, plus config root


@dataclass
class BringUpReport:
    readiness: list[ReadinessResult] = field(default_factory=list)
    model: ModelStatus | None = None
    health: HealthReport | None = None

    @property
    def healthy(self) -> bool:
        return self.health is not None and self.health.healthy

    def ready(self, service: str) -> bool:
        return any(r.service == service and r.healthy for r in self.readiness)


@dataclass
class TeardownReport:
    level: TeardownLevel
    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failed


class Orchestrator:
    """Sequences the stack's containers, readiness waits and model install."""

    def __init__(
        self,
        config: StackConfig,
        engine: ContainerEngine,
        poller: ReadinessPoller | None = None,
        models: ModelManager | None = None,
        monitor: HealthMonitor | None = None,
        pull_policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config
        self.engine = engine
        policies = load_policies_from_env()
        self.poller = poller or ReadinessPoller(policies["readiness"])
        self.models = models or ModelManager(
            engine, config.ollama_container, pull_policy or policies["model_pull"]
        )
        self.monitor = monitor or HealthMonitor.for_stack(config, self.poller, self.models)

    # ------------------------------------------------------------ Bring up
    def bring_up(self) -> BringUpReport:
        report = BringUpReport()

        self._clear_stale_containers()

        cx_print("Starting memory services...", "info")
        result = self.engine.compose_up(self.config.compose_file, build=True)
        if not result.succeeded():
            cx_print("Container engine failed to start the services", "error")
            logs = self.engine.compose_logs(self.config.compose_file, tail=20, follow=False)
            if logs.stdout:
                cx_print(logs.stdout.rstrip(), "info")
            raise OrchestrationError(
                f"compose up failed (exit {result.returncode}): {result.stderr.strip()}"
            )

        cx_print("Waiting for services to be ready...", "info")
        for service in self.config.base_services():
            report.readiness.append(self._wait(service))

        base_ready = all(r.healthy for r in report.readiness)
        for service in self.config.dependent_services():
            if not base_ready:
                # The engine holds the memory API until its dependencies are healthy
                cx_print(f"Skipping wait for {service.name}: dependencies not ready", "warning")
                report.readiness.append(ReadinessResult(service.name, False, 0))
                continue
            report.readiness.append(self._wait(service))

        report.model = self.models.ensure(self.config.embedding_model)

        report.health = self.monitor.run_all()
        if report.healthy:
            cx_print("Services started successfully!", "success")
        else:
            unhealthy = [r.name for r in report.health.service_results if not r.passed]
            cx_print(f"Some services may have issues: {', '.join(unhealthy)}", "error")
        return report

    def _wait(self, service) -> ReadinessResult:
        cx_print(f"Waiting for {service.name}...", "info")
        result = self.poller.wait(service)
        if result.healthy:
            cx_print(f"{service.name} is ready", "success")
        else:
            cx_print(
                f"{service.name} not ready after {result.attempts} attempts - "
                f"check with: docker logs {service.container_name}",
                "warning",
            )
        return result

    def _clear_stale_containers(self) -> None:
        existing = set(self.engine.list_containers(all=True))
        stale = [name for name in self.config.container_names if name in existing]
        if stale:
            cx_print("Found existing containers. Cleaning up first...", "warning")
            self.tear_down(TeardownLevel.STOP)

    # ----------------------------------------------------------- Tear down
    def tear_down(self, level: TeardownLevel = TeardownLevel.STOP) -> TeardownReport:
        """
        Remove stack resources at the given level.

        Every removal is best-effort: a failure is recorded in the report and
        the remaining removals still run.
        """
        report = TeardownReport(level=level)

        if level is TeardownLevel.EMERGENCY:
            cx_print("EMERGENCY CLEANUP - Removing all containers and data!", "warning")
            self._emergency(report)
        else:
            cx_print("Cleaning up Docker containers...", "info")
            for name in self.config.container_names:
                self._remove_container(name, report)
            if level is TeardownLevel.FULL:
                cx_print("Removing data volumes...", "info")
                for volume in self.config.volume_names:
                    self._remove_volume(volume, report)

        if report.clean:
            cx_print(f"Cleanup ({level.value}) complete", "success")
        else:
            cx_print(f"Cleanup ({level.value}) finished with failures: {', '.join(report.failed)}", "warning")
        return report

    def _emergency(self, report: TeardownReport) -> None:
        pattern = self.config.container_pattern
        for name in self.engine.list_containers(all=True):
            if pattern.search(name):
                self._remove_container(name, report)

        volume_pattern = self.config.volume_pattern
        for volume in self.engine.list_volumes():
            if volume_pattern.search(volume):
                self._remove_volume(volume, report)

        root = self.config.home
        if root.exists():
            try:
                shutil.rmtree(root)
                report.removed.append(str(root))
            except OSError as e:
                logger.warning("Could not remove %s: %s", root, e)
                report.failed.append(str(root))

    def _remove_container(self, name: str, report: TeardownReport) -> None:
        # stop may fail on an already-stopped or missing container; rm -f decides
        self.engine.stop_container(name)
        result = self.engine.remove_container(name, force=True)
        if result.succeeded():
            report.removed.append(name)
        elif _is_missing(result):
            logger.debug("Container %s already absent", name)
        else:
            logger.warning("Failed to remove container %s: %s", name, result.stderr.strip())
            report.failed.append(name)

    def _remove_volume(self, name: str, report: TeardownReport) -> None:
        result = self.engine.remove_volume(name, force=True)
        if result.succeeded():
            report.removed.append(name)
        elif _is_missing(result):
            logger.debug("Volume %s already absent", name)
        else:
            logger.warning("Failed to remove volume %s: %s", name, result.stderr.strip())
            report.failed.append(name)


def _is_missing(result: EngineResult) -> bool:
    return "no such" in result.stderr.lower()
