"""
Container engine boundary.

The orchestrator and lifecycle manager only talk to ``ContainerEngine``.
``DockerEngine`` implements it by shelling out to the docker CLI; tests
substitute an in-memory fake.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

# Return codes used when the command never produced one
NOT_FOUND_RC = 127
TIMEOUT_RC = 124

DEFAULT_TIMEOUT = 60
COMPOSE_UP_TIMEOUT = 1800

STANDALONE_COMPOSE = ["docker-compose"]


@dataclass
class EngineResult:
    """Result of one container engine command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    def succeeded(self) -> bool:
        """Return ``True`` when the command exited successfully."""
        return self.returncode == 0


@dataclass
class ContainerState:
    """One row of ``compose ps``."""

    name: str
    service: str
    state: str
    health: str = ""

    @property
    def running(self) -> bool:
        return self.state == "running"

    def describe(self) -> str:
        if self.health:
            return f"{self.state} ({self.health})"
        return self.state


class ContainerEngine(ABC):
    """Operations the stack needs from a container engine."""

    @abstractmethod
    def is_available(self) -> bool:
        """Engine CLI is installed."""

    @abstractmethod
    def daemon_running(self) -> bool:
        """Engine daemon answers."""

    @abstractmethod
    def compose_available(self) -> bool:
        """Compose support is installed."""

    @abstractmethod
    def compose_up(self, compose_file: Path, build: bool = True) -> EngineResult:
        pass

    @abstractmethod
    def compose_down(self, compose_file: Path, volumes: bool = False) -> EngineResult:
        pass

    @abstractmethod
    def compose_ps(self, compose_file: Path) -> list[ContainerState]:
        pass

    @abstractmethod
    def compose_logs(
        self,
        compose_file: Path,
        service: Optional[str] = None,
        tail: int = 100,
        follow: bool = True,
    ) -> EngineResult:
        pass

    @abstractmethod
    def list_containers(self, all: bool = True) -> list[str]:
        pass

    @abstractmethod
    def stop_container(self, name: str) -> EngineResult:
        pass

    @abstractmethod
    def remove_container(self, name: str, force: bool = True) -> EngineResult:
        pass

    @abstractmethod
    def list_volumes(self) -> list[str]:
        pass

    @abstractmethod
    def remove_volume(self, name: str, force: bool = True) -> EngineResult:
        pass

    @abstractmethod
    def exec_in(self, container: str, command: Sequence[str], timeout: int = DEFAULT_TIMEOUT) -> EngineResult:
        pass


def parse_compose_ps(output: str) -> list[ContainerState]:
    """
    Parse ``compose ps --format json`` output.

    Compose v2 releases disagree on the shape: older ones print one JSON
    array, newer ones print one object per line.
    """
    output = output.strip()
    if not output:
        return []

    try:
        payload = json.loads(output)
        rows = payload if isinstance(payload, list) else [payload]
    except json.JSONDecodeError:
        rows = []
        for line in output.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug("Skipping unparsable compose ps line: %s", line)

    states = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        states.append(
            ContainerState(
                name=row.get("Name", ""),
                service=row.get("Service", ""),
                state=str(row.get("State", "")).lower(),
                health=str(row.get("Health", "") or "").lower(),
            )
        )
    return states


class DockerEngine(ContainerEngine):
    """ContainerEngine backed by the docker CLI."""

    def __init__(self, binary: str = "docker", project: Optional[str] = None) -> None:
        self.binary = binary
        self.project = project
        self._compose_cmd: Optional[list[str]] = None

    def _run(
        self,
        cmd: list[str],
        timeout: Optional[int] = DEFAULT_TIMEOUT,
        cwd: Optional[Path] = None,
        capture: bool = True,
    ) -> EngineResult:
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=capture,
                text=True,
                timeout=timeout,
                cwd=str(cwd) if cwd else None,
            )
        except FileNotFoundError:
            return EngineResult(NOT_FOUND_RC, "", f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            return EngineResult(TIMEOUT_RC, "", f"Timed out after {timeout}s: {' '.join(cmd)}")
        return EngineResult(result.returncode, result.stdout or "", result.stderr or "")

    # ------------------------------------------------------- Availability
    def is_available(self) -> bool:
        if not shutil.which(self.binary):
            return False
        return self._run([self.binary, "--version"], timeout=5).succeeded()

    def daemon_running(self) -> bool:
        return self._run([self.binary, "info"], timeout=10).succeeded()

    def get_compose_command(self) -> Optional[list[str]]:
        """Prefer the compose plugin, fall back to standalone docker-compose."""
        if self._compose_cmd is not None:
            return self._compose_cmd

        if self._run([self.binary, "compose", "version"], timeout=10).succeeded():
            self._compose_cmd = [self.binary, "compose"]
        elif shutil.which("docker-compose"):
            self._compose_cmd = list(STANDALONE_COMPOSE)
        return self._compose_cmd

    def compose_available(self) -> bool:
        return self.get_compose_command() is not None

    def _compose(self, compose_file: Path, *args: str) -> list[str]:
        base = self.get_compose_command() or [self.binary, "compose"]
        cmd = [*base, "-f", str(compose_file)]
        if self.project:
            cmd.extend(["-p", self.project])
        cmd.extend(args)
        return cmd

    # ------------------------------------------------------------ Compose
    def compose_up(self, compose_file: Path, build: bool = True) -> EngineResult:
        args = ["up", "-d"]
        if build:
            args.append("--build")
        return self._run(
            self._compose(compose_file, *args), timeout=COMPOSE_UP_TIMEOUT, cwd=compose_file.parent
        )

    def compose_down(self, compose_file: Path, volumes: bool = False) -> EngineResult:
        args = ["down"]
        if volumes:
            args.append("--volumes")
        return self._run(self._compose(compose_file, *args), timeout=300, cwd=compose_file.parent)

    def compose_ps(self, compose_file: Path) -> list[ContainerState]:
        if self.get_compose_command() == STANDALONE_COMPOSE:
            # docker-compose v1 has neither --all nor --format json
            logger.warning(
                "Container status needs the docker compose plugin; standalone "
                "docker-compose cannot report it as JSON"
            )
            return []
        result = self._run(
            self._compose(compose_file, "ps", "--all", "--format", "json"), cwd=compose_file.parent
        )
        if not result.succeeded():
            logger.debug("compose ps failed: %s", result.stderr.strip())
            return []
        return parse_compose_ps(result.stdout)

    def compose_logs(
        self,
        compose_file: Path,
        service: Optional[str] = None,
        tail: int = 100,
        follow: bool = True,
    ) -> EngineResult:
        args = ["logs", f"--tail={tail}"]
        if follow:
            args.append("-f")
        if service:
            args.append(service)
        # Following streams straight to the terminal until interrupted
        return self._run(
            self._compose(compose_file, *args),
            timeout=None if follow else DEFAULT_TIMEOUT,
            cwd=compose_file.parent,
            capture=not follow,
        )

    # --------------------------------------------------------- Containers
    def list_containers(self, all: bool = True) -> list[str]:
        cmd = [self.binary, "ps", "--format", "{{.Names}}"]
        if all:
            cmd.insert(2, "-a")
        result = self._run(cmd)
        if not result.succeeded():
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def stop_container(self, name: str) -> EngineResult:
        return self._run([self.binary, "stop", name], timeout=120)

    def remove_container(self, name: str, force: bool = True) -> EngineResult:
        cmd = [self.binary, "rm", name]
        if force:
            cmd.insert(2, "-f")
        return self._run(cmd)

    # ------------------------------------------------------------ Volumes
    def list_volumes(self) -> list[str]:
        result = self._run([self.binary, "volume", "ls", "--format", "{{.Name}}"])
        if not result.succeeded():
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def remove_volume(self, name: str, force: bool = True) -> EngineResult:
        cmd = [self.binary, "volume", "rm", name]
        if force:
            cmd.insert(3, "-f")
        return self._run(cmd)

    # --------------------------------------------------------------- Exec
    def exec_in(self, container: str, command: Sequence[str], timeout: int = DEFAULT_TIMEOUT) -> EngineResult:
        return self._run([self.binary, "exec", container, *command], timeout=timeout)
