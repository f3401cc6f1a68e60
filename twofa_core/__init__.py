"""
twofa_core package
==================

Shared two-factor keychain: TOTP / HOTP code derivation (RFC 4226 & RFC 6238)
for named keys whose secrets live in a secret store, plus the counter
synchronization protocol for HOTP keys.

Quick example:
>>> from twofa_store import MemoryCredentialStore
>>> from twofa_core import Keychain, code_for
>>> store = MemoryCredentialStore({"secret/2fa/github": {"size": "6", "text": "nzxxiidbebvwk6jb"}})
>>> keychain = Keychain.load(store, "secret/2fa")
>>> keychain.names()
['github']
>>> len(code_for(keychain, "github"))
6
"""

from .counter_sync import CounterSync, SyncState
from .errors import (
    CounterConflict,
    InvalidCredential,
    InvalidEncoding,
    MalformedCounter,
    NoSuchKey,
    PermissionDenied,
    RecordNotFound,
    StoreError,
    StoreUnavailable,
    TwoFAError,
)
from .keychain import Credential, Keychain, Mode, code_for
from .otp_core import decode_key, encode_key, format_code, hotp, totp

__all__ = [
    "CounterConflict",
    "CounterSync",
    "Credential",
    "InvalidCredential",
    "InvalidEncoding",
    "Keychain",
    "MalformedCounter",
    "Mode",
    "NoSuchKey",
    "PermissionDenied",
    "RecordNotFound",
    "StoreError",
    "StoreUnavailable",
    "SyncState",
    "TwoFAError",
    "code_for",
    "decode_key",
    "encode_key",
    "format_code",
    "hotp",
    "totp",
]
