import json
import os
import re
from typing import Any

from finvault_engine.domain.exceptions import PersistenceError
from finvault_engine.logger import get_logger

from .base import StorageBackend

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStorage(StorageBackend):
    """One JSON file per key under `data_dir`."""

    def __init__(self, data_dir: str = "."):
        self.data_dir = data_dir
        if data_dir and data_dir not in {".", "./"}:
            os.makedirs(data_dir, exist_ok=True)

    def path_for(self, key: str) -> str:
        filename = _UNSAFE_KEY_CHARS.sub("_", key)
        return os.path.join(self.data_dir, f"{filename}.json")

    def read(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt payload in {path}: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Cannot read {path}: {exc}") from exc

    def write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            # Readers never see a half-written file.
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Cannot write {path}: {exc}") from exc
        logger.debug("[STORE] Wrote %s", path)

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PersistenceError(f"Cannot delete {path}: {exc}") from exc
