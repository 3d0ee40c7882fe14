import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemoryStore:
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class JsonFileStore(MemoryStore):
    """Store that writes the whole document back to disk on every change.

    The document is written to a temporary file beside the target and then
    renamed over it, so readers only ever see a complete document.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        super().__init__(_load_document(path))

    @property
    def path(self) -> str:
        return self._path

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if value is None and key not in self._data:
                return
            if key in self._data and self._data[key] == value:
                return
            super().set(key, value)
            _write_document(self._path, self._data)


def _write_document(path: str, data: Dict[str, Any]) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    fd, temp_path = tempfile.mkstemp(prefix=".state-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
            handle.write("\n")
        os.replace(temp_path, path)
    except BaseException:
        os.unlink(temp_path)
        raise


def _load_document(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return {}
    except ValueError:
        logger.warning("State file %s is not valid JSON, starting from empty state", path)
        return {}
    if not isinstance(data, dict):
        return {}
    return data
