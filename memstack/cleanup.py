"""
Cleanup operations layered on top of Orchestrator.tear_down.

docker     stop and remove the named containers
data       delete local data directories
emergency  remove everything matching the naming pattern, plus the config root
uninstall  containers, volumes, data, the config root and the IDE config
           (backed up first)
all        containers, volumes and data (config root kept)
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path

from memstack.branding import cx_print
from memstack.config import StackConfig
from memstack.orchestrator import Orchestrator, TeardownLevel, TeardownReport

logger = logging.getLogger(__name__)


class Cleaner:
    """Runs the teardown subcommands. Every step is best-effort."""

    def __init__(self, config: StackConfig, orchestrator: Orchestrator) -> None:
        self.config = config
        self.orchestrator = orchestrator

    def docker(self, full: bool = False) -> TeardownReport:
        level = TeardownLevel.FULL if full else TeardownLevel.STOP
        return self.orchestrator.tear_down(level)

    def data(self) -> list[Path]:
        """Delete local data directories; returns the ones that could not be removed."""
        cx_print("Cleaning up data directories...", "info")
        failed = []
        for path in [self.config.data_dir, *self.config.extra_data_dirs]:
            if not _remove_tree(path):
                failed.append(path)
        if failed:
            cx_print(f"Could not remove: {', '.join(str(p) for p in failed)}", "warning")
        else:
            cx_print("Data cleanup complete", "success")
        return failed

    def emergency(self) -> TeardownReport:
        return self.orchestrator.tear_down(TeardownLevel.EMERGENCY)

    def all(self) -> TeardownReport:
        report = self.docker(full=True)
        self.data()
        return report

    def uninstall(self) -> TeardownReport:
        cx_print("Uninstalling memory services...", "warning")
        report = self.docker(full=True)
        report.failed.extend(str(p) for p in self.data())
        if not _remove_tree(self.config.home):
            report.failed.append(str(self.config.home))
        self._remove_ide_config(report)

        if report.failed:
            cx_print(f"Uninstall finished with failures: {', '.join(report.failed)}", "warning")
        else:
            cx_print("Uninstall complete", "success")
        return report

    def backup_ide_config(self) -> Path | None:
        """Copy the IDE config directory to a timestamped sibling; None if there is nothing to copy."""
        source = self.config.ide_config_dir
        if not source.is_dir():
            return None
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup = source.with_name(f"{source.name}-uninstall-backup-{timestamp}")
        shutil.copytree(source, backup)
        return backup

    def _remove_ide_config(self, report: TeardownReport) -> None:
        source = self.config.ide_config_dir
        try:
            backup = self.backup_ide_config()
        except OSError as e:
            # Never delete what could not be backed up
            logger.warning("Could not back up %s: %s", source, e)
            report.failed.append(str(source))
            return
        if backup is None:
            return
        cx_print(f"Backed up IDE config to {backup}", "info")
        if _remove_tree(source):
            report.removed.append(str(source))
        else:
            report.failed.append(str(source))


def _remove_tree(path: Path) -> bool:
    if not path.exists():
        return True
    try:
        shutil.rmtree(path)
        logger.debug("Removed %s", path)
        return True
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)
        return False
