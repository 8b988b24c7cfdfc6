"""
First-time installation of the memory service stack.

Checks prerequisites, writes the configuration, brings the services up and
prints a summary. A missing prerequisite stops everything before any file is
written.
"""

import logging

from memstack.branding import console, cx_header, cx_print
from memstack.config import StackConfig
from memstack.engine import ContainerEngine
from memstack.orchestrator import BringUpReport, Orchestrator
from memstack.preflight import PreflightChecker
from memstack.templates import write_configuration, write_ide_config

logger = logging.getLogger(__name__)


class Installer:
    def __init__(
        self,
        config: StackConfig,
        engine: ContainerEngine,
        orchestrator: Orchestrator | None = None,
    ) -> None:
        self.config = config
        self.engine = engine
        self.orchestrator = orchestrator or Orchestrator(config, engine)
        self.preflight = PreflightChecker(engine)

    def install(self) -> BringUpReport:
        cx_header("Memory Services", "Installation")

        self.preflight.require()
        write_configuration(self.config)
        write_ide_config(self.config)

        missing = self.config.missing_credentials()
        if missing:
            logger.info("Optional credentials not set: %s", ", ".join(missing))
            cx_print("Optional API keys not set - edit .env for full functionality", "info")

        report = self.orchestrator.bring_up()
        self._show_summary(report)
        return report

    def _show_summary(self, report: BringUpReport) -> None:
        console.print()
        if report.healthy:
            cx_print("Installation completed!", "success")
        else:
            cx_print("Installation finished, but some services are not healthy yet", "warning")
            cx_print("Check with: memstack status", "info")

        compose = self.config.compose_file
        console.print("\n[bold]What's Running:[/bold]")
        console.print(f"   • Memory API:        http://localhost:{self.config.mem0_port}")
        console.print(f"   • Qdrant Vector DB:  http://localhost:{self.config.qdrant_port}")
        console.print(f"   • Ollama Embeddings: http://localhost:{self.config.ollama_port}")
        console.print("\n[bold]Quick Commands:[/bold]")
        console.print("   • Check status: memstack status")
        console.print("   • View logs:    memstack-services logs [service]")
        console.print("   • Stop:         memstack stop")
        console.print("\n[bold]Configuration:[/bold]")
        console.print(f"   • Compose file: {compose}")
        console.print(f"   • Environment:  {self.config.env_file}")
        console.print(f"   • IDE config:   {self.config.ide_config_dir}")
        if report.model is not None and not report.model.present:
            console.print(
                f"\n[yellow]Embedding model {self.config.embedding_model} is not installed yet; "
                "it will be pulled on the next 'memstack start'.[/yellow]"
            )
        console.print()
