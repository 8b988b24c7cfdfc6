"""Pytest configuration for the `tests/` suite.

Provides an in-memory container engine so orchestration and lifecycle tests
never touch a real Docker daemon, and a StackConfig rooted in ``tmp_path``.

The repo root is prepended to ``sys.path`` so the suite also runs from a
plain checkout without an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from memstack.config import StackConfig  # noqa: E402
from memstack.engine import ContainerEngine, ContainerState, EngineResult  # noqa: E402

MODEL_LIST_HEADER = "NAME                        ID              SIZE      MODIFIED"


class FakeEngine(ContainerEngine):
    """Container engine that keeps its state in dicts and records every call."""

    def __init__(self, config: StackConfig | None = None) -> None:
        self.config = config
        self.containers: dict[str, str] = {}
        self.volumes: set[str] = set()
        self.models: list[str] = []
        self.pull_failures = 0
        self.pulls = 0
        self.calls: list[tuple] = []
        self.available = True
        self.compose = True
        self.daemon = True
        self.up_fails = False
        self.exec_fails = False
        self.unremovable: set[str] = set()

    # Availability
    def is_available(self) -> bool:
        return self.available

    def daemon_running(self) -> bool:
        return self.daemon

    def compose_available(self) -> bool:
        return self.compose

    # Compose
    def compose_up(self, compose_file: Path, build: bool = True) -> EngineResult:
        self.calls.append(("compose_up", compose_file))
        if self.up_fails:
            return EngineResult(1, "", "Conflict. The container name is already in use")
        names = self.config.container_names if self.config else []
        for name in names:
            if name in self.containers:
                return EngineResult(1, "", f"Conflict. The container name \"/{name}\" is already in use")
        for name in names:
            self.containers[name] = "running"
        if self.config:
            self.volumes.update(self.config.volume_names)
        return EngineResult(0)

    def compose_down(self, compose_file: Path, volumes: bool = False) -> EngineResult:
        self.calls.append(("compose_down", compose_file))
        names = self.config.container_names if self.config else []
        for name in names:
            self.containers.pop(name, None)
        return EngineResult(0)

    def compose_ps(self, compose_file: Path) -> list[ContainerState]:
        self.calls.append(("compose_ps", compose_file))
        return [
            ContainerState(name=name, service=name.split("-", 1)[-1], state=state)
            for name, state in self.containers.items()
        ]

    def compose_logs(self, compose_file, service=None, tail=100, follow=True) -> EngineResult:
        self.calls.append(("compose_logs", service, tail, follow))
        return EngineResult(0, "log line\n")

    # Containers
    def list_containers(self, all: bool = True) -> list[str]:
        return [n for n, s in self.containers.items() if all or s == "running"]

    def stop_container(self, name: str) -> EngineResult:
        self.calls.append(("stop", name))
        if name not in self.containers:
            return EngineResult(1, "", f"Error response from daemon: No such container: {name}")
        self.containers[name] = "exited"
        return EngineResult(0)

    def remove_container(self, name: str, force: bool = True) -> EngineResult:
        self.calls.append(("rm", name))
        if name in self.unremovable:
            return EngineResult(1, "", "Error response from daemon: removal already in progress")
        if name not in self.containers:
            return EngineResult(1, "", f"Error response from daemon: No such container: {name}")
        del self.containers[name]
        return EngineResult(0)

    # Volumes
    def list_volumes(self) -> list[str]:
        return sorted(self.volumes)

    def remove_volume(self, name: str, force: bool = True) -> EngineResult:
        self.calls.append(("volume_rm", name))
        if name in self.unremovable:
            return EngineResult(1, "", "Error response from daemon: volume is in use")
        if name not in self.volumes:
            return EngineResult(1, "", f"Error: No such volume: {name}")
        self.volumes.discard(name)
        return EngineResult(0)

    # Exec
    def exec_in(self, container, command, timeout=60) -> EngineResult:
        self.calls.append(("exec", container, tuple(command)))
        if self.exec_fails or self.containers.get(container) != "running":
            return EngineResult(1, "", f"Error response from daemon: container {container} is not running")
        if list(command[:2]) == ["ollama", "list"]:
            rows = [f"{m:<28}0a1b2c3d4e5f    669 MB    2 days ago" for m in self.models]
            return EngineResult(0, "\n".join([MODEL_LIST_HEADER, *rows]) + "\n")
        if list(command[:2]) == ["ollama", "pull"]:
            self.pulls += 1
            if self.pull_failures > 0:
                self.pull_failures -= 1
                return EngineResult(1, "", "Error: pull model manifest: connection reset")
            model = command[2]
            self.models.append(model if ":" in model else f"{model}:latest")
            return EngineResult(0, "success\n")
        return EngineResult(0)

    def pulls_attempted(self) -> int:
        return self.pulls


@pytest.fixture
def config(tmp_path) -> StackConfig:
    return StackConfig(
        home=tmp_path / "mcp",
        extra_data_dirs=[tmp_path / "qdrant-data"],
        ide_config_dir=tmp_path / "claude",
    )


@pytest.fixture
def installed_config(config) -> StackConfig:
    config.docker_dir.mkdir(parents=True)
    config.compose_file.write_text("services: {}\n")
    return config


@pytest.fixture
def engine(config) -> FakeEngine:
    return FakeEngine(config)
