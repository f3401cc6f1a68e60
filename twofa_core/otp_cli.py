#!/usr/bin/env python3
"""
otp_cli.py — CLI for the shared two-factor keychain.

Subcommands:
- add  : store a new key (prompts for the base32 secret on stderr)
- list : list key names
- show : print the current code for one key
- (none): print codes for every time-based key, dashes for counter-based ones

Examples:
    $ twofa add github
    2fa key for github: nzxxiidbebvwk6jb
    $ twofa show github
    268346
    $ twofa
    268346	github
"""

import argparse
import logging
import sys

from twofa_store import open_store
from twofa_store.base import COUNTER_FIELD, SIZE_FIELD, TEXT_FIELD, join_path

from .config import load_settings
from .errors import TwoFAError
from .keychain import Keychain, validate_name
from .otp_core import DEFAULT_DIGITS, VALID_DIGITS, decode_key

logger = logging.getLogger("twofa")


# --- CLI command handlers ---
def cmd_add(args, store):
    name = validate_name(args.name)
    print(f"2fa key for {name}: ", end="", file=sys.stderr, flush=True)
    text = sys.stdin.readline().rstrip("\r\n")
    decode_key(text)

    # an empty counter clears the one left by an earlier --hotp add
    fields = {SIZE_FIELD: str(args.digits), TEXT_FIELD: text, COUNTER_FIELD: "0" if args.hotp else ""}
    store.write(join_path(args.path, name), fields)
    logger.debug("added %s key %s (%d digits)", "hotp" if args.hotp else "totp", name, args.digits)


def cmd_list(args, store):
    keychain = Keychain.load(store, args.path)
    for name in keychain.names():
        print(name)


def cmd_show(args, store):
    keychain = Keychain.load(store, args.path)
    print(keychain.code(args.name))


def cmd_all(args, store):
    keychain = Keychain.load(store, args.path)
    width = max((c.digits for c in keychain), default=DEFAULT_DIGITS)
    for credential in keychain:
        if credential.is_counter_based:
            code = "-" * credential.digits
        else:
            code = keychain.code(credential.name)
        print(f"{code:<{width}}\t{credential.name}")


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="twofa", description="Shared TOTP/HOTP keychain backed by a secret store")
    p.add_argument("--path", help="Keychain root path (default: $TWOFA_PATH or secret/2fa)")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_all)

    # add
    pa = sub.add_parser("add", help="Add a key (secret is read from stdin)")
    pa.add_argument("name", help="Key name (no spaces)")
    pa.add_argument("--digits", type=int, choices=VALID_DIGITS, default=DEFAULT_DIGITS,
                    help="Number of code digits")
    pa.add_argument("--hotp", action="store_true", help="Add as HOTP (counter-based) key")
    pa.set_defaults(func=cmd_add)

    # list
    pl = sub.add_parser("list", help="List key names")
    pl.set_defaults(func=cmd_list)

    # show
    ps = sub.add_parser("show", help="Print the code for a key")
    ps.add_argument("name", help="Key name")
    ps.set_defaults(func=cmd_show)

    return p


def main(argv=None, store=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(format="2fa: %(message)s", level=logging.DEBUG if args.verbose else logging.WARNING)

    owned = store is None
    try:
        settings = load_settings()
        args.path = args.path or settings.path
        if owned:
            store = open_store(settings)
        args.func(args, store)
    except (TwoFAError, ValueError) as e:
        logger.error("%s", e)
        return 1
    finally:
        if owned and store is not None:
            store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
