"""
keychain.py — In-memory index of the credentials under one store root.

A Keychain is a read-only snapshot built once per invocation and handed to
whoever needs it; there is no module-level instance and no background refresh.
Keys added by another process show up on the next load.

Usage:
    keychain = Keychain.load(store, "secret/2fa")
    for name in keychain.names():
        print(name)
    print(code_for(keychain, "github"))
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Iterator, Union

from twofa_store.base import join_path

from .counter_sync import CounterSync
from .errors import InvalidCredential, InvalidEncoding, MalformedCounter, NoSuchKey, RecordNotFound
from .otp_core import DEFAULT_DIGITS, VALID_DIGITS, decode_key, format_code, parse_digits, totp

if TYPE_CHECKING:
    from twofa_store.base import CredentialStore, StoredRecord

logger = logging.getLogger(__name__)


class Mode(enum.Enum):
    TIME = "totp"
    COUNTER = "hotp"


def validate_name(name: str) -> str:
    """Reject empty names and names with whitespace or path separators."""
    if not name or any(c.isspace() for c in name):
        raise InvalidCredential(f"invalid key name {name!r}: name must not be empty or contain spaces")
    if "/" in name:
        raise InvalidCredential(f"invalid key name {name!r}: name must not contain '/'")
    return name


@dataclass(frozen=True)
class Credential:
    """
    A named secret plus the parameters its codes are generated with.

    Attributes:
        name: unique key name (no whitespace)
        secret: raw key bytes, never shown
        digits: code length, 6, 7 or 8
        counter: HOTP counter as loaded; None for time-based keys.
            Only a snapshot: counter advances always go through the store.
        path: store path the credential was loaded from
    """

    name: str
    secret: bytes = field(repr=False)
    digits: int = DEFAULT_DIGITS
    counter: int | None = None
    path: str = ""

    def __post_init__(self) -> None:
        validate_name(self.name)
        if not self.secret:
            raise InvalidCredential(f"key {self.name!r} has an empty secret")
        if self.digits not in VALID_DIGITS:
            raise InvalidCredential(f"key {self.name!r}: digit count must be 6, 7 or 8, got {self.digits}")
        if self.counter is not None and self.counter < 0:
            raise InvalidCredential(f"key {self.name!r}: counter must be non-negative")

    @property
    def mode(self) -> Mode:
        return Mode.TIME if self.counter is None else Mode.COUNTER

    @property
    def is_counter_based(self) -> bool:
        return self.counter is not None

    @classmethod
    def from_record(cls, name: str, record: StoredRecord, path: str) -> Credential:
        """
        Build a Credential from a raw store record.

        Raises:
            InvalidEncoding: bad base32 text (or none at all)
            InvalidCredential: bad digit count or name
        """
        if record.text is None:
            raise InvalidEncoding(f"key {name!r} has no secret text")
        return cls(
            name=name,
            secret=decode_key(record.text),
            digits=parse_digits(record.size),
            counter=record.counter,
            path=path,
        )


class Keychain:
    """Credentials loaded from one store root, indexed by name."""

    def __init__(self, store: CredentialStore, root: str, credentials: dict[str, Credential] | None = None) -> None:
        self.store = store
        self.root = root
        self._keys: dict[str, Credential] = dict(credentials or {})

    @classmethod
    def load(cls, store: CredentialStore, root: str) -> Keychain:
        """
        List the root and read every entry.

        Entries with a bad digit count, bad secret text or bad counter (or
        which vanished between list and read) are skipped with a warning; one
        broken key must not block the others.

        Raises:
            StoreUnavailable, PermissionDenied: the store itself failed
        """
        keychain = cls(store, root)
        for name in store.list(root):
            path = join_path(root, name)
            try:
                record = store.read(path)
                credential = Credential.from_record(name, record, path)
            except RecordNotFound:
                logger.warning("skipping key %s: removed while loading", name)
                continue
            except (InvalidEncoding, InvalidCredential, MalformedCounter) as exc:
                logger.warning("skipping key %s: %s", name, exc)
                continue
            keychain._keys[name] = credential

        logger.debug("loaded %d keys from %s", len(keychain), root)
        return keychain

    def names(self) -> list[str]:
        """All key names, sorted."""
        return sorted(self._keys)

    def resolve(self, name: str) -> Credential:
        try:
            return self._keys[name]
        except KeyError:
            raise NoSuchKey(name) from None

    def code(self, name: str, timestamp: Union[float, datetime, None] = None) -> str:
        """
        Current code for a key.

        Time-based keys are computed directly. Counter-based keys advance the
        stored counter through CounterSync before the code is returned.

        Raises:
            NoSuchKey: unknown name (the store is not touched)
        """
        credential = self.resolve(name)
        if credential.is_counter_based:
            return CounterSync(self.store).next_code(credential)
        return format_code(totp(credential.secret, timestamp, credential.digits), credential.digits)

    def __contains__(self, name: object) -> bool:
        return name in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Credential]:
        return (self._keys[name] for name in self.names())


def code_for(keychain: Keychain, name: str, timestamp: Union[float, datetime, None] = None) -> str:
    """Code for `name`, zero-padded to the key's digit count."""
    return keychain.code(name, timestamp)
