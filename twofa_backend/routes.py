"""
TWOFA BACKEND API ROUTES - FLASK BLUEPRINT

HTTP view of the shared keychain. Every request loads a fresh
Keychain from the configured store, so keys added from the CLI show up
immediately.

EXAMPLES:
curl http://localhost:5000/api/keys
curl http://localhost:5000/api/code/github
curl -X POST http://localhost:5000/api/code/vpn
curl http://localhost:5000/api/codes
"""

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import MethodNotAllowed

from twofa_core.keychain import Keychain

otp_bp = Blueprint("twofa", __name__, url_prefix="/api")


def _keychain() -> Keychain:
    return Keychain.load(current_app.config["TWOFA_STORE"], current_app.config["TWOFA_PATH"])


@otp_bp.route("/keys", methods=["GET"])
def list_keys():
    """
    LIST KEY NAMES

      curl http://localhost:5000/api/keys

    Output:
      {"keys": ["aws", "github"]}
    """
    return jsonify({"keys": _keychain().names()})


@otp_bp.route("/code/<string:name>", methods=["POST", "GET"])
def get_code(name):
    """
    CODE FOR ONE KEY

      curl http://localhost:5000/api/code/github
      curl -X POST http://localhost:5000/api/code/vpn

    Time-based keys answer GET or POST. Counter-based (HOTP) keys need POST:
    each request advances the stored counter, and the code is only returned
    once the new counter has been written. GET or HEAD on one is refused
    with 405 and leaves the counter alone.

    Output:
      {"name": "github", "code": "268346"}
    """
    keychain = _keychain()
    if request.method != "POST" and keychain.resolve(name).is_counter_based:
        raise MethodNotAllowed(valid_methods=["POST"],
                               description=f"key {name!r} is counter-based; use POST to advance it")
    return jsonify({"name": name, "code": keychain.code(name)})


@otp_bp.route("/codes", methods=["GET"])
def get_codes():
    """
    CODES FOR ALL TIME-BASED KEYS

      curl http://localhost:5000/api/codes

    Counter-based keys are listed with "code": null and are not advanced.
    """
    keychain = _keychain()
    codes = []
    for credential in keychain:
        code = None if credential.is_counter_based else keychain.code(credential.name)
        codes.append({"name": credential.name, "mode": credential.mode.value, "code": code})
    return jsonify({"codes": codes})
