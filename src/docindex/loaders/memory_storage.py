"""In-memory blob storage."""

import threading
from typing import Mapping, Optional


class MemoryStorage:
    """Blob storage held in a dict; useful for programmatic ingestion."""

    source_type = "memory"

    def __init__(self, files: Optional[Mapping[str, bytes]] = None):
        self._files: dict[str, bytes] = dict(files or {})
        self._lock = threading.Lock()

    def put(self, path: str, data: bytes) -> None:
        with self._lock:
            self._files[path] = data

    def delete(self, path: str) -> None:
        with self._lock:
            self._files.pop(path, None)

    def list(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(p for p in self._files if p.startswith(prefix))

    def read(self, path: str) -> bytes:
        with self._lock:
            try:
                return self._files[path]
            except KeyError:
                raise FileNotFoundError(path) from None

    def url(self, path: str) -> str:
        return f"memory://{path}"
