from importlib import metadata

from .config import ServiceDescriptor, StackConfig
from .lifecycle import LifecycleManager
from .orchestrator import Orchestrator, TeardownLevel

try:
    __version__ = metadata.version("memstack")
except metadata.PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "__version__",
    "LifecycleManager",
    "Orchestrator",
    "ServiceDescriptor",
    "StackConfig",
    "TeardownLevel",
]
