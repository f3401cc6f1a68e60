"""In-process credential store, used for tests and embedding."""

from __future__ import annotations

import threading
from typing import Any

from twofa_core.errors import RecordNotFound

from .base import CredentialStore, StoredRecord

_SEPARATOR = "/"


class MemoryCredentialStore(CredentialStore):
    """
    Dict-backed store with a real compare-and-swap on the record version.

    Records are kept as {"size": ..., "text": ..., "counter": ...} string maps
    keyed by full path, plus a version bumped on every write.
    """

    supports_conditional_write = True

    def __init__(self, records: dict[str, dict[str, Any]] | None = None) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, str]] = {}
        self._versions: dict[str, int] = {}
        for path, fields in (records or {}).items():
            self._write_locked(path, fields)

    def list(self, root: str) -> list[str]:
        prefix = root.rstrip(_SEPARATOR) + _SEPARATOR
        with self._lock:
            names = [p[len(prefix):] for p in self._data if p.startswith(prefix)]
        return [n for n in names if n and _SEPARATOR not in n]

    def read(self, path: str) -> StoredRecord:
        with self._lock:
            if path not in self._data:
                raise RecordNotFound(f"no secret at {path!r}")
            data = dict(self._data[path])
            version = self._versions[path]
        return StoredRecord.from_fields(data, path, version=version)

    def write(self, path: str, fields: dict[str, Any]) -> None:
        with self._lock:
            self._write_locked(path, fields)

    def replace_counter(self, path: str, seen: StoredRecord, counter: int) -> bool:
        with self._lock:
            if self._versions.get(path) != seen.version:
                return False
            self._write_locked(path, {"counter": counter})
            return True

    def raw(self, path: str) -> dict[str, str]:
        """Copy of the stored string fields at path (for inspection)."""
        with self._lock:
            return dict(self._data[path])

    def _write_locked(self, path: str, fields: dict[str, Any]) -> None:
        current = dict(self._data.get(path, {}))
        current.update({k: str(v) for k, v in fields.items()})
        # an empty value removes the field
        current = {k: v for k, v in current.items() if v != ""}
        self._data[path] = current
        self._versions[path] = self._versions.get(path, 0) + 1
