from memstack.models import ModelManager, ModelReference

from ..monitor import ERROR, OK, WARNING, CheckResult, HealthCheck


class ModelCheck(HealthCheck):
    """Is the embedding model present in the model runtime inventory."""

    category = "model"

    def __init__(self, manager: ModelManager, model: str) -> None:
        self.manager = manager
        self.model = model
        self.name = "Embedding Model"

    def run(self) -> CheckResult:
        installed = self.manager.list_models()
        if installed is None:
            return CheckResult(
                self.name,
                self.category,
                ERROR,
                f"Could not query {self.manager.container}",
            )
        wanted = ModelReference.parse(self.model)
        if any(wanted.matches(ref) for ref in installed):
            return CheckResult(self.name, self.category, OK, f"{self.model} installed")
        return CheckResult(
            self.name,
            self.category,
            WARNING,
            f"{self.model} not installed",
            recommendation="Run 'memstack start' to install the model automatically",
        )
