"""
config.py — Runtime settings read from the environment.

A `.env` file in the working directory is loaded first (python-dotenv), then
the variables below are read. Nothing here is cached at import time: every
invocation calls load_settings() and passes the result down explicitly.

    TWOFA_PATH        keychain root path             (default: secret/2fa)
    TWOFA_BACKEND     vault | sqlite | memory         (default: vault)
    TWOFA_DB          sqlite file                    (default: ~/.2fa-vault.db)
    VAULT_ADDR        Vault address                  (default: https://127.0.0.1:8200)
    VAULT_TOKEN       Vault token                    (default: ~/.vault-token)
    VAULT_KV_VERSION  KV secrets engine version 1|2  (default: 1)
    VAULT_TIMEOUT     request timeout, seconds       (default: 10)
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_PATH = "secret/2fa"
DEFAULT_BACKEND = "vault"
DEFAULT_DB_FILE = os.path.join("~", ".2fa-vault.db")
DEFAULT_VAULT_ADDR = "https://127.0.0.1:8200"
DEFAULT_VAULT_TIMEOUT = 10.0
TOKEN_FILE = os.path.join("~", ".vault-token")

BACKENDS = ("vault", "sqlite", "memory")


@dataclass
class Settings:
    path: str = DEFAULT_PATH
    backend: str = DEFAULT_BACKEND
    db_file: str = DEFAULT_DB_FILE
    vault_addr: str = DEFAULT_VAULT_ADDR
    vault_token: Optional[str] = None
    vault_kv_version: int = 1
    vault_timeout: float = DEFAULT_VAULT_TIMEOUT


def _read_token_file(path: str = TOKEN_FILE) -> Optional[str]:
    path = os.path.expanduser(path)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return f.read().strip() or None


def load_settings(dotenv: bool = True) -> Settings:
    """
    Build Settings from the environment.

    Raises:
        ValueError: on an unknown backend or a non-numeric numeric variable
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    backend = os.getenv("TWOFA_BACKEND", DEFAULT_BACKEND).strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"unknown TWOFA_BACKEND {backend!r} (expected one of {', '.join(BACKENDS)})")

    kv_version = int(os.getenv("VAULT_KV_VERSION", "1"))
    if kv_version not in (1, 2):
        raise ValueError(f"VAULT_KV_VERSION must be 1 or 2, got {kv_version}")

    return Settings(
        path=os.getenv("TWOFA_PATH") or DEFAULT_PATH,
        backend=backend,
        db_file=os.path.expanduser(os.getenv("TWOFA_DB") or DEFAULT_DB_FILE),
        vault_addr=(os.getenv("VAULT_ADDR") or DEFAULT_VAULT_ADDR).rstrip("/"),
        vault_token=os.getenv("VAULT_TOKEN") or _read_token_file(),
        vault_kv_version=kv_version,
        vault_timeout=float(os.getenv("VAULT_TIMEOUT", DEFAULT_VAULT_TIMEOUT)),
    )
