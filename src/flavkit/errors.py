from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a likelihood block cannot be built from the given inputs."""


class UnsupportedOperationError(NotImplementedError):
    """Raised by blocks that deliberately do not implement an operation."""


class UnknownParameterError(KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Parameter '{self.name}' is unknown"
