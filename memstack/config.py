"""
Configuration for the memory service stack.

Holds the install root, naming scheme, ports and embedding model, and builds
the fixed three-service topology from them. Everything is injectable so tests
can point at a sandbox directory instead of the user's home.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from dotenv import dotenv_values

from memstack.errors import ConfigError

DEFAULT_HOME = Path.home() / ".mcp"
DEFAULT_PREFIX = "claude-"
DEFAULT_PROJECT = "claude-memory"
DEFAULT_EMBEDDING_MODEL = "mxbai-embed-large"

QDRANT_SERVICE = "qdrant"
OLLAMA_SERVICE = "ollama"
MEM0_SERVICE = "mem0"

# Volumes declared in the compose file (before compose adds the project prefix)
VOLUME_KEYS = ("qdrant_storage", "ollama_models")

# Any volume matching this is considered ours during emergency cleanup
VOLUME_PATTERN = r"(qdrant|ollama|mem0)"

# Optional credentials; their absence only degrades features that need them
OPTIONAL_CREDENTIALS = [
    "PERPLEXITY_API_KEY",
    "GITHUB_TOKEN",
    "ATLASSIAN_DOMAIN",
    "ATLASSIAN_EMAIL",
    "ATLASSIAN_API_TOKEN",
    "GITLAB_TOKEN",
    "GITLAB_URL",
]


@dataclass(frozen=True)
class HealthProbe:
    """How to decide whether a service answers."""

    kind: str  # "tcp" or "http"
    host: str
    port: int
    path: str = "/"
    timeout: float = 5.0

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    def describe(self) -> str:
        if self.kind == "http":
            return self.url
        return f"tcp://{self.host}:{self.port}"


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static description of one service in the stack."""

    name: str
    container_name: str
    port: int
    probe: HealthProbe
    depends_on: tuple[str, ...] = ()


@dataclass
class StackConfig:
    """Everything the orchestrator needs to know about an installation."""

    home: Path = DEFAULT_HOME
    prefix: str = DEFAULT_PREFIX
    project: str = DEFAULT_PROJECT
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    ollama_host: str = "localhost"
    ollama_port: int = 11434
    mem0_port: int = 8765
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    extra_data_dirs: list[Path] = field(
        default_factory=lambda: [Path.home() / ".qdrant", Path.home() / ".ollama"]
    )
    ide_config_dir: Path = field(default_factory=lambda: Path.home() / ".claude")
    # Optional credentials found in .env or the process environment
    credentials: dict[str, str] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.home = Path(self.home)
        self.ide_config_dir = Path(self.ide_config_dir)

    # ------------------------------------------------------------ Layout
    @property
    def docker_dir(self) -> Path:
        return self.home / "docker"

    @property
    def compose_file(self) -> Path:
        return self.docker_dir / "docker-compose.yml"

    @property
    def dockerfile(self) -> Path:
        return self.docker_dir / "Dockerfile.mem0"

    @property
    def server_script(self) -> Path:
        return self.docker_dir / "mem0_server.py"

    @property
    def env_template(self) -> Path:
        return self.docker_dir / ".env.template"

    @property
    def env_file(self) -> Path:
        return self.docker_dir / ".env"

    @property
    def data_dir(self) -> Path:
        return self.home / "data"

    def is_installed(self) -> bool:
        return self.compose_file.exists()

    # ------------------------------------------------------------ Naming
    def container_name(self, service: str) -> str:
        return f"{self.prefix}{service}"

    @property
    def container_names(self) -> list[str]:
        return [d.container_name for d in self.services()]

    @property
    def volume_names(self) -> list[str]:
        """Volume names as the engine reports them (project-prefixed)."""
        return [f"{self.project}_{key}" for key in VOLUME_KEYS]

    @property
    def container_pattern(self) -> re.Pattern:
        return re.compile(rf"^/?{re.escape(self.prefix)}")

    @property
    def volume_pattern(self) -> re.Pattern:
        return re.compile(VOLUME_PATTERN)

    @property
    def ollama_container(self) -> str:
        return self.container_name(OLLAMA_SERVICE)

    # ---------------------------------------------------------- Topology
    def services(self) -> list[ServiceDescriptor]:
        """The three services in dependency order."""
        return [
            ServiceDescriptor(
                name=QDRANT_SERVICE,
                container_name=self.container_name(QDRANT_SERVICE),
                port=self.qdrant_port,
                probe=HealthProbe("tcp", self.qdrant_host, self.qdrant_port),
            ),
            ServiceDescriptor(
                name=OLLAMA_SERVICE,
                container_name=self.container_name(OLLAMA_SERVICE),
                port=self.ollama_port,
                probe=HealthProbe("tcp", self.ollama_host, self.ollama_port),
            ),
            ServiceDescriptor(
                name=MEM0_SERVICE,
                container_name=self.container_name(MEM0_SERVICE),
                port=self.mem0_port,
                probe=HealthProbe("http", "localhost", self.mem0_port, path="/health"),
                depends_on=(QDRANT_SERVICE, OLLAMA_SERVICE),
            ),
        ]

    def service(self, name: str) -> ServiceDescriptor:
        for descriptor in self.services():
            if descriptor.name == name:
                return descriptor
        raise KeyError(name)

    def base_services(self) -> list[ServiceDescriptor]:
        return [d for d in self.services() if not d.depends_on]

    def dependent_services(self) -> list[ServiceDescriptor]:
        return [d for d in self.services() if d.depends_on]

    # ------------------------------------------------------------ Loading
    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, home: Path | None = None) -> "StackConfig":
        """
        Build a config from environment variables.

        Values in ``<home>/docker/.env`` are read first; the process
        environment overrides them.
        """
        env = dict(os.environ if environ is None else environ)
        root = Path(home or env.get("MEMSTACK_HOME") or DEFAULT_HOME).expanduser()

        env_file = root / "docker" / ".env"
        merged: dict[str, str] = {}
        if env_file.exists():
            merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        merged.update(env)

        ollama_host, ollama_port = _split_ollama_host(
            merged.get("OLLAMA_HOST", ""), _int_var(merged, "OLLAMA_PORT", 11434)
        )

        return cls(
            home=root,
            prefix=merged.get("MEMSTACK_PREFIX") or DEFAULT_PREFIX,
            project=merged.get("MEMSTACK_PROJECT") or DEFAULT_PROJECT,
            qdrant_host=merged.get("QDRANT_HOST") or "localhost",
            qdrant_port=_int_var(merged, "QDRANT_PORT", 6333),
            ollama_host=ollama_host,
            ollama_port=ollama_port,
            mem0_port=_int_var(merged, "MEM0_PORT", 8765),
            embedding_model=merged.get("EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL,
            ide_config_dir=Path(merged.get("CLAUDE_HOME") or Path.home() / ".claude").expanduser(),
            credentials={k: merged[k] for k in OPTIONAL_CREDENTIALS if merged.get(k)},
        )

    def missing_credentials(self, environ: dict[str, str] | None = None) -> list[str]:
        """Optional credentials with no value in ``environ`` or in the loaded .env."""
        env = {**(os.environ if environ is None else environ), **self.credentials}
        return [name for name in OPTIONAL_CREDENTIALS if not env.get(name)]


def _int_var(env: dict[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if not 0 < value < 65536:
        raise ConfigError(f"{name} must be a valid port number, got {value}")
    return value


def _split_ollama_host(raw: str, default_port: int) -> tuple[str, int]:
    """Accept OLLAMA_HOST as ``http://host:port``, ``host:port`` or ``host``."""
    raw = raw.strip()
    if not raw:
        return "localhost", default_port
    if "://" not in raw:
        raw = f"http://{raw}"
    parsed = urlparse(raw)
    try:
        port = parsed.port
    except ValueError as e:
        raise ConfigError(f"OLLAMA_HOST has an invalid port: {raw!r}") from e
    return parsed.hostname or "localhost", port or default_port
