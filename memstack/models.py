"""
Embedding model management inside the model runtime container.

The model is optional for a working stack: a missing model is reported and
retried a few times, but never aborts installation. It can be pulled later
or lazily on first use.
"""

import logging
import time
from dataclasses import dataclass

from memstack.branding import cx_print
from memstack.engine import ContainerEngine
from memstack.utils.retry import DEFAULT_POLICIES, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_TAG = "latest"
PULL_TIMEOUT = 900  # 15 minutes per attempt


@dataclass(frozen=True)
class ModelReference:
    """A model name with its tag, e.g. ``mxbai-embed-large:latest``."""

    name: str
    tag: str = DEFAULT_TAG

    @classmethod
    def parse(cls, ref: str) -> "ModelReference":
        ref = ref.strip()
        if not ref:
            raise ValueError("Model reference cannot be empty")
        # A colon inside a registry host (host:5000/model) is not a tag separator
        last = ref.rsplit("/", 1)[-1]
        if ":" in last:
            name, _, tag = ref.rpartition(":")
            return cls(name=name, tag=tag or DEFAULT_TAG)
        return cls(name=ref)

    def __str__(self) -> str:
        return f"{self.name}:{self.tag}"

    def matches(self, other: "ModelReference") -> bool:
        return self.name == other.name and self.tag == other.tag


@dataclass
class ModelStatus:
    model: str
    present: bool
    pulled: bool = False
    attempts: int = 0


def parse_model_list(output: str) -> list[ModelReference]:
    """
    Parse ``ollama list`` output into references.

    The first line is a header (NAME ID SIZE MODIFIED); the name is the first
    column of every following line.
    """
    refs = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if not parts:
            continue
        try:
            refs.append(ModelReference.parse(parts[0]))
        except ValueError:
            continue
    return refs


class ModelManager:
    """Checks for and pulls the embedding model in the model runtime."""

    def __init__(
        self,
        engine: ContainerEngine,
        container: str,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.engine = engine
        self.container = container
        self.policy = policy or DEFAULT_POLICIES["model_pull"]

    def list_models(self) -> list[ModelReference] | None:
        """Return installed models, or None when the runtime can't be queried."""
        result = self.engine.exec_in(self.container, ["ollama", "list"])
        if not result.succeeded():
            logger.debug("ollama list failed: %s", result.stderr.strip())
            return None
        return parse_model_list(result.stdout)

    def is_present(self, model: str) -> bool:
        wanted = ModelReference.parse(model)
        installed = self.list_models() or []
        return any(wanted.matches(ref) for ref in installed)

    def pull(self, model: str) -> bool:
        result = self.engine.exec_in(self.container, ["ollama", "pull", model], timeout=PULL_TIMEOUT)
        if not result.succeeded():
            logger.debug("ollama pull %s failed: %s", model, result.stderr.strip())
        return result.succeeded()

    def ensure(self, model: str) -> ModelStatus:
        """
        Make sure ``model`` is installed, pulling it if needed.

        Never raises on pull failure; the returned status says whether the
        model ended up present.
        """
        cx_print("Checking embedding model...", "info")
        if self.is_present(model):
            cx_print(f"Embedding model {model} already installed", "success")
            return ModelStatus(model=model, present=True)

        cx_print(f"Installing {model} embedding model (this may take a few minutes)...", "info")
        for attempt in range(1, self.policy.max_attempts + 1):
            if self.pull(model):
                cx_print("Embedding model installed successfully", "success")
                return ModelStatus(model=model, present=True, pulled=True, attempts=attempt)

            if attempt < self.policy.max_attempts:
                cx_print(f"Attempt {attempt} failed, retrying...", "warning")
                time.sleep(self.policy.delay_for(attempt))

        cx_print(
            f"Failed to install embedding model after {self.policy.max_attempts} attempts",
            "warning",
        )
        cx_print("You can install it later with:", "info")
        cx_print(f"  docker exec {self.container} ollama pull {model}", "info")
        return ModelStatus(model=model, present=False, attempts=self.policy.max_attempts)
