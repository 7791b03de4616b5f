from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """Key/value persistence adapter for the engines' local history."""

    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the stored JSON-compatible value, or None when the key is absent."""
        pass

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value, replacing any previous one."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the key. Missing keys are ignored."""
        pass
