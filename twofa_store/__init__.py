"""
Credential store adapters for the twofa keychain.

Usage:
    from twofa_store import open_store
    from twofa_core.config import load_settings

    store = open_store(load_settings())
    names = store.list("secret/2fa")
"""

from twofa_core.config import Settings

from .base import CredentialStore, StoredRecord, join_path
from .db_manager import SQLiteCredentialStore
from .memory_store import MemoryCredentialStore
from .vault_store import VaultCredentialStore


def open_store(settings: Settings) -> CredentialStore:
    """Build the store adapter selected by settings.backend."""
    if settings.backend == "vault":
        return VaultCredentialStore(
            addr=settings.vault_addr,
            token=settings.vault_token,
            kv_version=settings.vault_kv_version,
            timeout=settings.vault_timeout,
        )
    if settings.backend == "sqlite":
        return SQLiteCredentialStore(settings.db_file)
    if settings.backend == "memory":
        return MemoryCredentialStore()
    raise ValueError(f"unknown backend {settings.backend!r}")


__all__ = [
    "CredentialStore",
    "MemoryCredentialStore",
    "SQLiteCredentialStore",
    "StoredRecord",
    "VaultCredentialStore",
    "join_path",
    "open_store",
]
