import argparse
import logging
import sys
from pathlib import Path

from memstack.branding import cx_print
from memstack.cleanup import Cleaner
from memstack.config import StackConfig
from memstack.confirm import confirm_action
from memstack.engine import DockerEngine
from memstack.errors import MemstackError
from memstack.installer import Installer
from memstack.lifecycle import LifecycleManager
from memstack.orchestrator import Orchestrator
from memstack.preflight import PreflightChecker

CLEANUP_COMMANDS = ["docker", "data", "emergency", "uninstall", "all"]
SERVICE_COMMANDS = ["start", "stop", "restart", "status", "logs"]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


class MemstackCLI:
    """Wires configuration, engine and managers together for one invocation."""

    def __init__(self, home: Path | None = None, assume_yes: bool = False, engine=None):
        self.config = StackConfig.from_env(home=home)
        self.engine = engine or DockerEngine(project=self.config.project)
        self.assume_yes = assume_yes
        self._orchestrator = None

    @property
    def orchestrator(self) -> Orchestrator:
        if self._orchestrator is None:
            self._orchestrator = Orchestrator(self.config, self.engine)
        return self._orchestrator

    @property
    def lifecycle(self) -> LifecycleManager:
        return LifecycleManager(self.config, self.engine, self.orchestrator)

    @property
    def cleaner(self) -> Cleaner:
        return Cleaner(self.config, self.orchestrator)

    def _require_engine(self) -> None:
        PreflightChecker(self.engine).require()

    # ------------------------------------------------------------ Main
    def install(self) -> int:
        Installer(self.config, self.engine, self.orchestrator).install()
        return 0

    def start(self) -> int:
        self._require_engine()
        self.lifecycle.start()
        return 0

    def stop(self) -> int:
        self._require_engine()
        result = self.lifecycle.stop()
        return 0 if result.succeeded() else 1

    def restart(self) -> int:
        self._require_engine()
        self.lifecycle.restart()
        return 0

    def status(self) -> int:
        self.lifecycle.status()
        return 0

    def logs(self, service: str | None) -> int:
        self._require_engine()
        result = self.lifecycle.logs(service)
        return result.returncode

    def clean(self) -> int:
        if not confirm_action(
            "This removes the containers, data volumes and local data. Continue?", self.assume_yes
        ):
            cx_print("Cleanup cancelled", "info")
            return 0
        self._require_engine()
        self.cleaner.all()
        return 0

    def uninstall(self) -> int:
        if not confirm_action(
            f"This removes all memory services and {self.config.home}. Continue?", self.assume_yes
        ):
            cx_print("Uninstall cancelled", "info")
            return 0
        self._require_engine()
        self.cleaner.uninstall()
        return 0

    # --------------------------------------------------------- Cleanup
    def cleanup(self, command: str) -> int:
        if command in ("emergency", "uninstall") and not confirm_action(
            f"Run '{command}' cleanup? This cannot be undone.", self.assume_yes
        ):
            cx_print("Cleanup cancelled", "info")
            return 0

        if command == "data":
            failed = self.cleaner.data()
            return 1 if failed else 0

        self._require_engine()
        if command == "docker":
            report = self.cleaner.docker()
        elif command == "emergency":
            report = self.cleaner.emergency()
        elif command == "uninstall":
            report = self.cleaner.uninstall()
        else:
            report = self.cleaner.all()
        return 0 if report.clean else 1


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--home", type=Path, help="Configuration root (default: ~/.mcp)")
    parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def _run(action) -> int:
    try:
        return action()
    except MemstackError as e:
        cx_print(str(e), "error")
        return 1
    except KeyboardInterrupt:
        print("\n❌ Operation cancelled by user", file=sys.stderr)
        return 130


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="memstack",
        description="Install and manage the local memory services (Qdrant, Ollama, memory API)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  memstack install
  memstack status
  memstack stop
  memstack clean --yes

Environment Variables:
  MEMSTACK_HOME       Configuration root (default: ~/.mcp)
  QDRANT_PORT         Vector store port (default: 6333)
  OLLAMA_HOST         Model runtime URL (default: http://localhost:11434)
  MEM0_PORT           Memory API port (default: 8765)
  EMBEDDING_MODEL     Embedding model to pull (default: mxbai-embed-large)
        """,
    )
    _add_common_args(parser)
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("install", help="Generate configuration and start the services")
    subparsers.add_parser("start", help="Start the services and install the embedding model")
    subparsers.add_parser("stop", help="Stop the services")
    subparsers.add_parser("status", help="Show service health")
    subparsers.add_parser("clean", help="Remove containers, volumes and data")
    subparsers.add_parser("uninstall", help="Remove everything, including configuration")
    subparsers.add_parser("help", help="Show this help")

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.command or args.command == "help":
        parser.print_help()
        return 0 if args.command == "help" else 1

    def action() -> int:
        cli = MemstackCLI(home=args.home, assume_yes=args.yes)
        return getattr(cli, args.command)()

    return _run(action)


def cleanup_main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="memstack-cleanup", description="Tear down memory services"
    )
    _add_common_args(parser)
    parser.add_argument(
        "command",
        nargs="?",
        default="docker",
        choices=CLEANUP_COMMANDS,
        help="What to remove (default: docker)",
    )
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    return _run(lambda: MemstackCLI(home=args.home, assume_yes=args.yes).cleanup(args.command))


def services_main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="memstack-services", description="Manage running memory services"
    )
    _add_common_args(parser)
    parser.add_argument(
        "command",
        nargs="?",
        default="status",
        choices=SERVICE_COMMANDS,
        help="Operation (default: status)",
    )
    parser.add_argument("service", nargs="?", help="Service name for 'logs'")
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.service and args.command != "logs":
        parser.error("a service name is only accepted by 'logs'")

    def action() -> int:
        cli = MemstackCLI(home=args.home, assume_yes=args.yes)
        if args.command == "logs":
            return cli.logs(args.service)
        return getattr(cli, args.command)()

    return _run(action)


if __name__ == "__main__":
    sys.exit(main())
