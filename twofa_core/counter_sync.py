"""
counter_sync.py — Read-increment-write protocol for counter-based (HOTP) keys.

Per request:

    IDLE -> READING -> COMPUTING -> WRITING -> DONE
      \\________\\___________\\__________\\---> FAILED

1. READING   re-read the record from the store; the counter, secret and digit
             count loaded with the keychain are treated as stale.
2. COMPUTING n' = n + 1, code = hotp(secret, n', digits) from the re-read record.
3. WRITING   store.replace_counter(path, seen, n'). The code is returned only
             after this succeeds. A lost compare-and-swap goes back to READING.

A failed request never reveals a code and never changes the stored counter, so
retrying it yields the same code.

The whole sequence holds a process-wide lock for the credential name. For
stores with a real conditional write this only saves pointless retries; for
stores without one (Vault KV v1) it is the only protection, and two processes
sharing a credential can still race.
"""

from __future__ import annotations

import enum
import logging
import threading
import weakref
from typing import TYPE_CHECKING

from .errors import CounterConflict, InvalidEncoding, MalformedCounter
from .otp_core import MAX_COUNTER, decode_key, format_code, hotp, parse_digits

if TYPE_CHECKING:
    from twofa_store.base import CredentialStore

    from .keychain import Credential

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

# entries disappear once no request holds a reference to the lock
_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(path)
        if lock is None:
            lock = _locks[path] = threading.Lock()
        return lock


class SyncState(enum.Enum):
    IDLE = "idle"
    READING = "reading"
    COMPUTING = "computing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class CounterSync:
    """
    Produces HOTP codes for counter-based credentials, persisting each advance.

    Arguments:
        store: credential store adapter holding the counter
        max_attempts: READING/WRITING rounds before giving up on a contended key
    """

    def __init__(self, store: CredentialStore, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.state = SyncState.IDLE

    def next_code(self, credential: Credential) -> str:
        """
        Advance the stored counter by one and return the code for the new value.

        Raises:
            MalformedCounter: the stored record has no usable counter
            InvalidEncoding, InvalidCredential: the stored secret or size is bad
            CounterConflict: every conditional write lost to another writer
            StoreError: any store failure, passed through unchanged
        """
        self._enter(SyncState.IDLE, credential)
        with _lock_for(credential.path):
            try:
                code = self._run(credential)
            except Exception:
                self._enter(SyncState.FAILED, credential)
                raise
        self._enter(SyncState.DONE, credential)
        return code

    def _run(self, credential: Credential) -> str:
        for attempt in range(1, self.max_attempts + 1):
            self._enter(SyncState.READING, credential)
            seen = self.store.read(credential.path)
            if seen.counter is None:
                raise MalformedCounter(f"key {credential.name!r} has no stored counter")
            if seen.counter >= MAX_COUNTER:
                raise MalformedCounter(f"key counter for {credential.name!r} is exhausted")

            self._enter(SyncState.COMPUTING, credential)
            # the key may have been re-added since the keychain was loaded
            if seen.text is None:
                raise InvalidEncoding(f"key {credential.name!r} has no secret text")
            secret = decode_key(seen.text)
            digits = parse_digits(seen.size)
            counter = seen.counter + 1
            code = format_code(hotp(secret, counter, digits), digits)

            self._enter(SyncState.WRITING, credential)
            if self.store.replace_counter(credential.path, seen, counter):
                return code
            logger.info("counter for %s changed concurrently, retrying (%d/%d)",
                        credential.name, attempt, self.max_attempts)

        raise CounterConflict(
            f"could not update counter for {credential.name!r} after {self.max_attempts} attempts"
        )

    def _enter(self, state: SyncState, credential: Credential) -> None:
        self.state = state
        logger.debug("%s: %s", credential.name, state.value)
