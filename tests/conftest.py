"""Shared fixtures for twofa tests."""

from __future__ import annotations

import pytest

from twofa_core.config import Settings
from twofa_core.errors import StoreUnavailable
from twofa_store import MemoryCredentialStore

ROOT = "secret/2fa"

# RFC 4226 Appendix D key "12345678901234567890", base32-encoded
RFC_KEY_TEXT = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
RFC_KEY = b"12345678901234567890"

RFC4226_VECTORS = [
    "755224",
    "287082",
    "359152",
    "969429",
    "338314",
    "254676",
    "287922",
    "162583",
    "399871",
    "520489",
]


class FlakyStore(MemoryCredentialStore):
    """Memory store whose counter writes can be made to fail."""

    def __init__(self, records=None) -> None:
        super().__init__(records)
        self.fail_writes = False
        self.reads = 0
        self.writes = 0

    def read(self, path):
        self.reads += 1
        return super().read(path)

    def write(self, path, fields):
        self.writes += 1
        super().write(path, fields)

    def replace_counter(self, path, seen, counter):
        if self.fail_writes:
            raise StoreUnavailable(f"write to {path!r} timed out")
        return super().replace_counter(path, seen, counter)


@pytest.fixture
def settings() -> Settings:
    return Settings(path=ROOT, backend="memory")


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore(
        {
            f"{ROOT}/github": {"size": "6", "text": "nzxxiidbebvwk6jb"},
            f"{ROOT}/aws": {"size": "8", "text": RFC_KEY_TEXT.lower()},
            f"{ROOT}/vpn": {"size": "6", "text": RFC_KEY_TEXT, "counter": "0"},
        }
    )
