"""
FLASK APP ENTRY POINT - TWOFA BACKEND SERVER
============================================

Sets up the Flask app, enables CORS and registers the API blueprint.

Error mapping (JSON body {"error": ...}):
- NoSuchKey          -> 404
- PermissionDenied   -> 403
- CounterConflict    -> 409
- StoreUnavailable   -> 503
- other TwoFAError   -> 500
- GET on an HOTP key -> 405 (Allow: POST)
"""

import logging
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from twofa_core.config import Settings, load_settings
from twofa_core.errors import CounterConflict, NoSuchKey, PermissionDenied, StoreUnavailable, TwoFAError
from twofa_store import CredentialStore, open_store

from .routes import otp_bp

logger = logging.getLogger(__name__)

_STATUS = (
    (NoSuchKey, 404),
    (PermissionDenied, 403),
    (CounterConflict, 409),
    (StoreUnavailable, 503),
)


def create_app(store: Optional[CredentialStore] = None, settings: Optional[Settings] = None) -> Flask:
    """
    Build the Flask app.

    Arguments:
        store: credential store; defaults to open_store(settings)
        settings: runtime settings; defaults to load_settings()
    """
    settings = settings or load_settings()
    app = Flask(__name__)
    app.config["TWOFA_PATH"] = settings.path
    app.config["TWOFA_STORE"] = store if store is not None else open_store(settings)

    # Allow a browser frontend on another origin to call the API
    CORS(app)

    app.register_blueprint(otp_bp)

    @app.errorhandler(TwoFAError)
    def handle_twofa_error(e):
        for exc_type, status in _STATUS:
            if isinstance(e, exc_type):
                break
        else:
            status = 500
        if status >= 500:
            logger.error("request failed: %s", e)
        return jsonify({"error": str(e)}), status

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        # keep headers such as Allow on 405, but answer in JSON
        headers = [(k, v) for k, v in e.get_headers() if k.lower() != "content-type"]
        return jsonify({"error": e.description}), e.code, headers

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "twofa",
            "endpoints": ["/api/keys", "/api/code/<name>", "/api/codes"],
        })

    return app


# Only runs when executed directly (not on import)
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(host="127.0.0.1", port=5000)
