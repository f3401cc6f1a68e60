"""
errors.py — Exception taxonomy for twofa.

Every error raised by the codec, keychain, counter-sync protocol or a store
adapter derives from TwoFAError, so a caller (CLI, HTTP backend) can catch one
base class and still tell the cases apart.
"""


class TwoFAError(Exception):
    """Base class for all twofa errors."""


class InvalidEncoding(TwoFAError, ValueError):
    """Secret text is not valid RFC 4648 base32."""


class InvalidCredential(TwoFAError, ValueError):
    """A credential violates the model invariants (digits, counter, name)."""


class NoSuchKey(TwoFAError, KeyError):
    """Lookup of a name that is not in the keychain."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"no such key {self.name!r}"


class MalformedCounter(TwoFAError):
    """Stored counter state for a counter-based credential is missing or unparsable."""


class CounterConflict(TwoFAError):
    """Conditional counter write kept losing to concurrent writers."""


# --- Store errors ----------------------------------------------------------
class StoreError(TwoFAError):
    """Base class for errors reported by a credential store adapter."""


class StoreUnavailable(StoreError):
    """The backing store could not be reached or failed the request."""


class PermissionDenied(StoreError):
    """The backing store refused the operation."""


class RecordNotFound(StoreError):
    """No record exists at the requested path."""
