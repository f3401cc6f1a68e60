"""
Credential store adapter interface.

The keychain and the counter-sync protocol only ever talk to a store through
these four operations. Transport, authentication, TLS and retry policy are the
adapter's business.

Storage convention:
    {root}/{name}  →  {"size": "6", "text": "<base32>", "counter": "41"}

`counter` is present only for counter-based (HOTP) credentials.

Adapter requirements:
    - every write is atomic per key (a reader never sees half a record)
    - replace_counter() is a conditional write where the backend allows it;
      adapters that cannot do compare-and-swap set
      supports_conditional_write = False and fall back to a plain write
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any

from twofa_core.errors import MalformedCounter

SIZE_FIELD = "size"
TEXT_FIELD = "text"
COUNTER_FIELD = "counter"

_SEPARATOR = "/"


def join_path(root: str, name: str) -> str:
    """Build the store path for a credential name under root."""
    return f"{root.rstrip(_SEPARATOR)}{_SEPARATOR}{name}"


def parse_counter(value: Any, path: str = "") -> int | None:
    """
    Parse a stored counter value.

    Returns None when the field is absent. Raises MalformedCounter for anything
    that is not a non-negative integer (bools included).
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise MalformedCounter(f"malformed key counter for {path!r} ({value!r})")
    try:
        n = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedCounter(f"malformed key counter for {path!r} ({value!r})") from exc
    if n < 0:
        raise MalformedCounter(f"negative key counter for {path!r} ({value!r})")
    return n


@dataclass(frozen=True)
class StoredRecord:
    """
    One credential record as the store holds it.

    Attributes:
        size: digit count as stored (string, not yet validated)
        text: base32 secret text (not yet validated)
        counter: HOTP counter, or None for time-based credentials
        version: opaque revision token used by conditional writes, if any
    """

    size: str | None = None
    text: str | None = None
    counter: int | None = None
    version: int | None = None

    @classmethod
    def from_fields(cls, data: dict[str, Any], path: str = "", version: int | None = None) -> StoredRecord:
        size = data.get(SIZE_FIELD)
        text = data.get(TEXT_FIELD)
        return cls(
            size=None if size is None else str(size),
            text=None if text is None else str(text),
            counter=parse_counter(data.get(COUNTER_FIELD), path),
            version=version,
        )

    def to_fields(self) -> dict[str, str]:
        """Fields as written to a backend; all values are strings."""
        fields: dict[str, str] = {}
        if self.size is not None:
            fields[SIZE_FIELD] = self.size
        if self.text is not None:
            fields[TEXT_FIELD] = self.text
        if self.counter is not None:
            fields[COUNTER_FIELD] = str(self.counter)
        return fields


class CredentialStore(abc.ABC):
    """Abstract list/read/write access to a hierarchical secret namespace."""

    #: True when replace_counter() is a real compare-and-swap.
    supports_conditional_write: bool = False

    @abc.abstractmethod
    def list(self, root: str) -> list[str]:
        """
        Names directly under root.

        Raises:
            StoreUnavailable, PermissionDenied
        """

    @abc.abstractmethod
    def read(self, path: str) -> StoredRecord:
        """
        Read the record at path.

        Raises:
            RecordNotFound, StoreUnavailable, PermissionDenied
        """

    @abc.abstractmethod
    def write(self, path: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into the record at path, creating it if missing. An empty
        string value removes that field.

        Raises:
            StoreUnavailable, PermissionDenied
        """

    def replace_counter(self, path: str, seen: StoredRecord, counter: int) -> bool:
        """
        Persist a new counter only if the stored record still matches `seen`.

        Returns False on a lost race. The default has no way to detect one and
        always writes; callers serialize in-process around it.
        """
        self.write(path, {COUNTER_FIELD: str(counter)})
        return True

    def close(self) -> None:
        """Release any held resources."""
