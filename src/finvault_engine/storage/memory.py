import copy
from typing import Any

from .base import StorageBackend


class InMemoryStorage(StorageBackend):
    """Process-local storage; nothing survives a restart."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    def read(self, key: str) -> Any | None:
        if key not in self.data:
            return None
        return copy.deepcopy(self.data[key])

    def write(self, key: str, value: Any) -> None:
        self.data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
