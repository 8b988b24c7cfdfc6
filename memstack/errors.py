"""
Exception hierarchy for memstack.
"""


class MemstackError(Exception):
    """Base class for all memstack failures."""


class PrerequisiteError(MemstackError):
    """Raised when the container engine or a required file is missing."""


class ConfigError(MemstackError):
    """Raised when environment configuration cannot be parsed."""


class NotInstalledError(MemstackError):
    """Raised when an operation needs the generated configuration and it is absent."""


class OrchestrationError(MemstackError):
    """Raised when the container engine refuses to start the service set."""
