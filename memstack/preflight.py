"""
Prerequisite checks that run before anything is written or started.
"""

import logging
from dataclasses import dataclass, field

from memstack.branding import cx_print
from memstack.engine import ContainerEngine
from memstack.errors import PrerequisiteError

logger = logging.getLogger(__name__)


@dataclass
class PreflightReport:
    """Outcome of the prerequisite checks."""

    missing: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.errors


class PreflightChecker:
    """Verifies the container engine, compose support and the daemon."""

    def __init__(self, engine: ContainerEngine) -> None:
        self.engine = engine

    def run_all_checks(self) -> PreflightReport:
        report = PreflightReport()

        if not self.engine.is_available():
            report.missing.append("docker")
        elif not self.engine.compose_available():
            report.missing.append("docker compose")

        # Only meaningful once the CLI exists
        if not report.missing and not self.engine.daemon_running():
            report.errors.append("Docker daemon is not running")

        return report

    def require(self) -> None:
        """
        Raise PrerequisiteError unless every prerequisite is satisfied.

        Raises:
            PrerequisiteError: Listing what is missing.
        """
        cx_print("Checking requirements...", "info")
        report = self.run_all_checks()
        if report.missing:
            raise PrerequisiteError(
                f"Missing required dependencies: {', '.join(report.missing)}. "
                "Please install them first"
            )
        if report.errors:
            raise PrerequisiteError("; ".join(report.errors))
        cx_print("All requirements satisfied", "success")
