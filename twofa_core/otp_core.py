#!/usr/bin/env python3
"""
otp_core.py — Core library for TOTP / HOTP code derivation.

Goals:
- Pure functions only: no store access, no argparse, no printing.
- Bit-exact HMAC-SHA1 HOTP (RFC 4226) and TOTP (RFC 6238, 30s step) so codes
  match external verifiers (GitHub, Vault's TOTP engine, Google Authenticator).

Security note:
- The raw secret bytes returned by decode_key() must never be logged or printed.
- TOTP correctness depends on the local clock being accurate to within ~30s;
  there is no skew window or look-ahead here.
"""

import base64
import binascii
import hashlib
import hmac
import struct
import time
from datetime import datetime
from typing import Optional, Union

from .errors import InvalidCredential, InvalidEncoding

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # standard: 6 digits
VALID_DIGITS = (6, 7, 8)
DEFAULT_TIME_STEP = 30      # TOTP step (seconds)
MAX_COUNTER = 2 ** 64 - 1


# --- Secret codec ----------------------------------------------------------
def decode_key(text: str) -> bytes:
    """
    Decode a user-supplied base32 secret into raw key bytes.

    - Case-insensitive: the text is upper-cased before decoding.
    - Strict RFC 4648 alphabet (A-Z, 2-7) with standard '=' padding; any other
      character, or wrong padding, is rejected instead of being coerced.

    Arguments:
        text: base32 secret, e.g. "nzxxiidbebvwk6jb"

    Returns:
        bytes: decoded key material (never empty)

    Raises:
        InvalidEncoding: if the text is not valid base32 or decodes to nothing
    """
    if not isinstance(text, str):
        raise InvalidEncoding("secret must be a string")
    try:
        raw = base64.b32decode(text.upper())
    except (binascii.Error, ValueError) as e:
        raise InvalidEncoding(f"invalid base32 secret: {e}") from e
    if not raw:
        raise InvalidEncoding("secret is empty")
    return raw


def encode_key(raw: bytes) -> str:
    """Encode raw key bytes as canonical (upper-case, padded) base32 text."""
    return base64.b32encode(raw).decode("ascii")


def parse_digits(size: Optional[str]) -> int:
    """Parse a stored digit count; a missing value means DEFAULT_DIGITS."""
    if size is None or size == "":
        return DEFAULT_DIGITS
    try:
        digits = int(size)
    except (TypeError, ValueError) as exc:
        raise InvalidCredential(f"unparsable digit count {size!r}") from exc
    if digits not in VALID_DIGITS:
        raise InvalidCredential(f"digit count must be 6, 7 or 8, got {digits}")
    return digits


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Convert the counter to the 8-byte big-endian message RFC 4226 requires.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    if i < 0 or i > MAX_COUNTER:
        raise ValueError(f"counter out of range: {i}")
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Apply RFC 4226 dynamic truncation.

    - offset = low 4 bits of the last digest byte
    - read 4 bytes from offset as a big-endian integer, clearing the sign bit

    Returns:
        int: 31-bit unsigned value
    """
    offset = hmac_digest[-1] & 0x0F
    code = (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )
    return code


def hotp(secret: bytes, counter: int, digits: int = DEFAULT_DIGITS) -> int:
    """
    Compute an HOTP value (RFC 4226).

    Steps:
    1. message = 8-byte big-endian counter
    2. HMAC-SHA1(key=secret, message)
    3. dynamic truncation -> 31-bit integer
    4. reduce modulo 10^digits

    The result is an integer in [0, 10^digits); use format_code() to render it,
    since leading zeros are significant.

    Arguments:
        secret: raw key bytes (see decode_key)
        counter: non-negative counter, at most 2^64 - 1
        digits: number of code digits

    Raises:
        ValueError: if the counter is out of range
    """
    msg = int_to_bytes(counter)
    digest = hmac.new(secret, msg, hashlib.sha1).digest()
    return dynamic_truncate(digest) % (10 ** digits)


def time_counter(timestamp: Union[float, int, datetime, None] = None) -> int:
    """Return the TOTP step counter floor(unix_seconds / 30) for a timestamp."""
    if timestamp is None:
        timestamp = time.time()
    elif isinstance(timestamp, datetime):
        timestamp = timestamp.timestamp()
    return int(timestamp // DEFAULT_TIME_STEP)


def totp(
    secret: bytes,
    timestamp: Union[float, int, datetime, None] = None,
    digits: int = DEFAULT_DIGITS,
) -> int:
    """
    Compute a TOTP value (RFC 6238): hotp(secret, floor(t / 30), digits).

    Arguments:
        secret: raw key bytes
        timestamp: epoch seconds or an aware datetime (None -> time.time())
        digits: number of code digits
    """
    return hotp(secret, time_counter(timestamp), digits)


def format_code(code: int, digits: int) -> str:
    """Render a code as a decimal string left-zero-padded to `digits`."""
    return str(code).zfill(digits)
