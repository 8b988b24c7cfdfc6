"""
Generated files for the memory service stack.

Writes the compose definition, the memory API Dockerfile and server script,
and the environment template into ``<home>/docker``. The ``.env`` file is
created from the template on first run and never overwritten afterwards.
"""

import json
import logging
from pathlib import Path
from string import Template
from typing import Any

import yaml

from memstack.branding import cx_print
from memstack.config import MEM0_SERVICE, OLLAMA_SERVICE, QDRANT_SERVICE, StackConfig

logger = logging.getLogger(__name__)

QDRANT_IMAGE = "qdrant/qdrant:latest"
OLLAMA_IMAGE = "ollama/ollama:latest"

# Port-reachability check that needs neither curl nor wget inside the image
TCP_HEALTHCHECK = "timeout 5 bash -c ':> /dev/tcp/127.0.0.1/{port}' || exit 1"

DOCKERFILE_TEMPLATE = Template(
    """FROM python:3.11-slim

WORKDIR /app

RUN apt-get update && apt-get install -y \\
    curl \\
    gcc \\
    && rm -rf /var/lib/apt/lists/*

RUN pip install --no-cache-dir \\
    mem0ai \\
    qdrant-client \\
    ollama \\
    fastapi \\
    uvicorn \\
    requests

COPY mem0_server.py .

EXPOSE $port

CMD ["python", "mem0_server.py"]
"""
)

SERVER_TEMPLATE = Template(
    '''#!/usr/bin/env python3
"""Memory API server with health endpoint."""

import os

import uvicorn
from fastapi import FastAPI
from mem0 import Memory

app = FastAPI()

config = {
    "vector_store": {
        "provider": "qdrant",
        "config": {
            "host": os.getenv("QDRANT_HOST", "$qdrant_service"),
            "port": int(os.getenv("QDRANT_PORT", "6333")),
        },
    },
    "embedder": {
        "provider": "ollama",
        "config": {
            "model": os.getenv("EMBEDDING_MODEL", "$model"),
            "ollama_base_url": os.getenv("OLLAMA_HOST", "http://$ollama_service:11434"),
        },
    },
}

try:
    memory = Memory.from_config(config)
    memory_healthy = True
except Exception as e:
    print(f"Failed to initialize memory backend: {e}")
    memory_healthy = False


@app.get("/health")
async def health():
    return {"status": "healthy" if memory_healthy else "unhealthy"}


@app.get("/")
async def root():
    return {"service": "Memory Server", "status": "running"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=$port)
'''
)

ENV_TEMPLATE = Template(
    """# Memory services - environment variables

# API keys (optional - set these for full functionality)
PERPLEXITY_API_KEY=
GITHUB_TOKEN=
ATLASSIAN_DOMAIN=
ATLASSIAN_EMAIL=
ATLASSIAN_API_TOKEN=
GITLAB_TOKEN=
GITLAB_URL=

# Memory services
QDRANT_HOST=$qdrant_host
QDRANT_PORT=$qdrant_port
OLLAMA_HOST=http://$ollama_host:$ollama_port
OLLAMA_PORT=$ollama_port
EMBEDDING_MODEL=$model
MEM0_PORT=$mem0_port
"""
)


def _healthcheck(test: list[str], retries: int = 3, start_period: str = "10s") -> dict[str, Any]:
    return {
        "test": test,
        "interval": "30s",
        "timeout": "10s",
        "retries": retries,
        "start_period": start_period,
    }


def build_compose(config: StackConfig) -> dict[str, Any]:
    """Compose definition for the three services as a plain dict."""
    qdrant = config.service(QDRANT_SERVICE)
    ollama = config.service(OLLAMA_SERVICE)
    mem0 = config.service(MEM0_SERVICE)

    services = {
        QDRANT_SERVICE: {
            "image": QDRANT_IMAGE,
            "container_name": qdrant.container_name,
            "restart": "unless-stopped",
            "ports": [f"{qdrant.port}:6333", "6334:6334"],
            "volumes": ["qdrant_storage:/qdrant/storage"],
            "environment": [
                "QDRANT__SERVICE__HTTP_PORT=6333",
                "QDRANT__SERVICE__ENABLE_TLS=false",
            ],
            "healthcheck": _healthcheck(["CMD-SHELL", TCP_HEALTHCHECK.format(port=6333)]),
        },
        OLLAMA_SERVICE: {
            "image": OLLAMA_IMAGE,
            "container_name": ollama.container_name,
            "restart": "unless-stopped",
            "ports": [f"{ollama.port}:11434"],
            "volumes": ["ollama_models:/root/.ollama"],
            "environment": ["OLLAMA_HOST=0.0.0.0"],
            "healthcheck": _healthcheck(["CMD-SHELL", TCP_HEALTHCHECK.format(port=11434)]),
        },
        MEM0_SERVICE: {
            "build": {"context": ".", "dockerfile": config.dockerfile.name},
            "container_name": mem0.container_name,
            "restart": "unless-stopped",
            "ports": [f"{mem0.port}:{mem0.port}"],
            "environment": [
                f"QDRANT_HOST={QDRANT_SERVICE}",
                "QDRANT_PORT=6333",
                f"OLLAMA_HOST=http://{OLLAMA_SERVICE}:11434",
                f"EMBEDDING_MODEL={config.embedding_model}",
            ],
            "depends_on": {
                dep: {"condition": "service_healthy"} for dep in mem0.depends_on
            },
            "healthcheck": _healthcheck(
                [
                    "CMD-SHELL",
                    "python -c 'import requests; "
                    f"requests.get(\"http://localhost:{mem0.port}/health\").raise_for_status()' "
                    "|| exit 1",
                ],
                retries=5,
                start_period="30s",
            ),
        },
    }

    return {
        "name": config.project,
        "services": services,
        "volumes": {"qdrant_storage": {}, "ollama_models": {}},
    }


def render_compose(config: StackConfig) -> str:
    header = "# Memory services - generated by memstack, edits are overwritten on install\n\n"
    return header + yaml.safe_dump(build_compose(config), sort_keys=False, default_flow_style=False)


def render_dockerfile(config: StackConfig) -> str:
    return DOCKERFILE_TEMPLATE.substitute(port=config.mem0_port)


def render_server(config: StackConfig) -> str:
    return SERVER_TEMPLATE.substitute(
        port=config.mem0_port,
        model=config.embedding_model,
        qdrant_service=QDRANT_SERVICE,
        ollama_service=OLLAMA_SERVICE,
    )


def render_env_template(config: StackConfig) -> str:
    return ENV_TEMPLATE.substitute(
        qdrant_host=config.qdrant_host,
        qdrant_port=config.qdrant_port,
        ollama_host=config.ollama_host,
        ollama_port=config.ollama_port,
        model=config.embedding_model,
        mem0_port=config.mem0_port,
    )


def _write(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")
    logger.debug("Wrote %s", path)


def write_configuration(config: StackConfig) -> list[Path]:
    """
    Write all generated files and return the paths that were written.

    Generated files are rewritten on every call. ``.env`` is only created
    when it does not exist yet.
    """
    config.docker_dir.mkdir(parents=True, exist_ok=True)
    written = []

    cx_print("Creating Docker Compose configuration...", "info")
    _write(config.compose_file, render_compose(config))
    written.append(config.compose_file)

    cx_print("Creating memory API Dockerfile and server...", "info")
    _write(config.dockerfile, render_dockerfile(config))
    _write(config.server_script, render_server(config))
    written.extend([config.dockerfile, config.server_script])

    cx_print("Creating environment template...", "info")
    template = render_env_template(config)
    _write(config.env_template, template)
    written.append(config.env_template)

    if not config.env_file.exists():
        _write(config.env_file, template)
        written.append(config.env_file)
        cx_print("Created .env file (configure API keys if needed)", "info")
    else:
        cx_print(".env file already exists", "info")

    cx_print(f"Services configured in: {config.docker_dir}", "success")
    return written


def build_ide_mcp_config(config: StackConfig) -> dict[str, Any]:
    """MCP client entry pointing the IDE assistant at the memory API."""
    return {
        "mcpServers": {
            "memory": {
                "type": "http",
                "url": f"http://localhost:{config.mem0_port}",
            }
        }
    }


def write_ide_config(config: StackConfig) -> list[Path]:
    """
    Create the IDE assistant's config directory and register the memory API.

    Existing files belong to the user and are left alone.
    """
    cx_print("Setting up IDE assistant configuration...", "info")
    config.ide_config_dir.mkdir(parents=True, exist_ok=True)

    mcp_file = config.ide_config_dir / "mcp.json"
    if mcp_file.exists():
        cx_print(f"{mcp_file} already exists, leaving it unchanged", "info")
        return []

    _write(mcp_file, json.dumps(build_ide_mcp_config(config), indent=2) + "\n")
    cx_print("IDE assistant configuration installed", "success")
    return [mcp_file]
