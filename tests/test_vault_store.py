"""
Tests for the Vault credential store.

Covers:
- KV v1 / v2 URL layout for list, read and write
- HTTP status mapping (403, 404, 5xx, connection errors)
- KV v2 check-and-set counter writes
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from twofa_core.errors import PermissionDenied, RecordNotFound, StoreUnavailable
from twofa_core.keychain import Keychain, code_for
from twofa_store.base import StoredRecord
from twofa_store.vault_store import VaultCredentialStore

from .conftest import RFC4226_VECTORS, RFC_KEY_TEXT, ROOT

ADDR = "https://vault.example:8200"


def _response(status_code=200, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body if body is not None else {}
    response.text = text
    return response


def _store(kv_version=1):
    session = MagicMock()
    store = VaultCredentialStore(addr=ADDR + "/", token="s.test", kv_version=kv_version, timeout=3, session=session)
    return store, session


class TestVaultKV1:
    def setup_method(self):
        self.store, self.session = _store()

    def test_token_header(self):
        self.session.headers.__setitem__.assert_called_with("X-Vault-Token", "s.test")

    def test_no_conditional_write(self):
        assert self.store.supports_conditional_write is False

    def test_list(self):
        self.session.request.return_value = _response(body={"data": {"keys": ["github", "team/", "vpn"]}})
        assert self.store.list(ROOT) == ["github", "vpn"]
        self.session.request.assert_called_once_with(
            "LIST", f"{ADDR}/v1/secret/2fa", json=None, timeout=3
        )

    def test_list_missing_path(self):
        self.session.request.return_value = _response(404, {"errors": []})
        assert self.store.list(ROOT) == []

    def test_read(self):
        self.session.request.return_value = _response(
            body={"data": {"size": "6", "text": RFC_KEY_TEXT, "counter": "12"}}
        )
        record = self.store.read(f"{ROOT}/vpn")
        assert record == StoredRecord(size="6", text=RFC_KEY_TEXT, counter=12, version=None)
        self.session.request.assert_called_once_with(
            "GET", f"{ADDR}/v1/secret/2fa/vpn", json=None, timeout=3
        )

    def test_read_missing(self):
        self.session.request.return_value = _response(404, {"errors": []})
        with pytest.raises(RecordNotFound):
            self.store.read(f"{ROOT}/nope")

    def test_write_merges_existing(self):
        self.session.request.side_effect = [
            _response(body={"data": {"size": "6", "text": RFC_KEY_TEXT, "counter": "3"}}),
            _response(204),
        ]
        self.store.write(f"{ROOT}/vpn", {"counter": 4})
        self.session.request.assert_called_with(
            "POST",
            f"{ADDR}/v1/secret/2fa/vpn",
            json={"size": "6", "text": RFC_KEY_TEXT, "counter": "4"},
            timeout=3,
        )

    def test_write_empty_value_drops_field(self):
        self.session.request.side_effect = [
            _response(body={"data": {"size": "6", "text": RFC_KEY_TEXT, "counter": "3"}}),
            _response(204),
        ]
        self.store.write(f"{ROOT}/vpn", {"text": "jbswy3dpehpk3pxp", "counter": ""})
        self.session.request.assert_called_with(
            "POST",
            f"{ADDR}/v1/secret/2fa/vpn",
            json={"size": "6", "text": "jbswy3dpehpk3pxp"},
            timeout=3,
        )

    def test_write_new(self):
        self.session.request.side_effect = [_response(404, {"errors": []}), _response(204)]
        self.store.write(f"{ROOT}/github", {"size": "6", "text": "nzxxiidbebvwk6jb"})
        self.session.request.assert_called_with(
            "POST", f"{ADDR}/v1/secret/2fa/github", json={"size": "6", "text": "nzxxiidbebvwk6jb"}, timeout=3
        )

    def test_replace_counter_writes_full_record(self):
        self.session.request.return_value = _response(204)
        seen = StoredRecord(size="6", text=RFC_KEY_TEXT, counter=3)
        assert self.store.replace_counter(f"{ROOT}/vpn", seen, 4) is True
        self.session.request.assert_called_once_with(
            "POST",
            f"{ADDR}/v1/secret/2fa/vpn",
            json={"size": "6", "text": RFC_KEY_TEXT, "counter": "4"},
            timeout=3,
        )

    def test_permission_denied(self):
        self.session.request.return_value = _response(403, {"errors": ["permission denied"]})
        with pytest.raises(PermissionDenied) as info:
            self.store.read(f"{ROOT}/vpn")
        assert "secret/2fa/vpn" in str(info.value)

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_server_errors(self, status):
        self.session.request.return_value = _response(status, {"errors": ["Vault is sealed"]})
        with pytest.raises(StoreUnavailable) as info:
            self.store.list(ROOT)
        assert "Vault is sealed" in str(info.value)

    @pytest.mark.parametrize(
        "error", [requests.exceptions.ConnectionError("refused"), requests.exceptions.Timeout("slow")]
    )
    def test_transport_errors(self, error):
        self.session.request.side_effect = error
        with pytest.raises(StoreUnavailable):
            self.store.list(ROOT)

    def test_invalid_json(self):
        response = _response()
        response.json.side_effect = ValueError("no json")
        self.session.request.return_value = response
        with pytest.raises(StoreUnavailable):
            self.store.read(f"{ROOT}/vpn")

    def test_keychain_over_vault(self):
        def fake(method, url, json=None, timeout=None):
            if method == "LIST":
                return _response(body={"data": {"keys": ["vpn", "broken"]}})
            if url.endswith("/vpn") and method == "GET":
                return _response(body={"data": {"size": "6", "text": RFC_KEY_TEXT, "counter": "0"}})
            if url.endswith("/broken"):
                return _response(body={"data": {"size": "6", "text": "???"}})
            return _response(204)

        self.session.request.side_effect = fake
        keychain = Keychain.load(self.store, ROOT)
        assert keychain.names() == ["vpn"]
        assert code_for(keychain, "vpn") == RFC4226_VECTORS[1]


class TestVaultKV2:
    def setup_method(self):
        self.store, self.session = _store(kv_version=2)

    def test_conditional_write(self):
        assert self.store.supports_conditional_write is True

    def test_list_uses_metadata(self):
        self.session.request.return_value = _response(body={"data": {"keys": ["github"]}})
        assert self.store.list(ROOT) == ["github"]
        self.session.request.assert_called_once_with(
            "LIST", f"{ADDR}/v1/secret/metadata/2fa", json=None, timeout=3
        )

    def test_read_uses_data_and_version(self):
        self.session.request.return_value = _response(
            body={"data": {"data": {"size": "8", "text": RFC_KEY_TEXT, "counter": "5"}, "metadata": {"version": 9}}}
        )
        record = self.store.read(f"{ROOT}/vpn")
        assert record == StoredRecord(size="8", text=RFC_KEY_TEXT, counter=5, version=9)
        self.session.request.assert_called_once_with(
            "GET", f"{ADDR}/v1/secret/data/2fa/vpn", json=None, timeout=3
        )

    def test_replace_counter_uses_cas(self):
        self.session.request.return_value = _response(200, {"data": {"version": 10}})
        seen = StoredRecord(size="8", text=RFC_KEY_TEXT, counter=5, version=9)
        assert self.store.replace_counter(f"{ROOT}/vpn", seen, 6) is True
        self.session.request.assert_called_once_with(
            "POST",
            f"{ADDR}/v1/secret/data/2fa/vpn",
            json={"data": {"size": "8", "text": RFC_KEY_TEXT, "counter": "6"}, "options": {"cas": 9}},
            timeout=3,
        )

    def test_replace_counter_cas_mismatch(self):
        self.session.request.return_value = _response(
            400, {"errors": ["check-and-set parameter did not match the current version"]}
        )
        seen = StoredRecord(size="8", text=RFC_KEY_TEXT, counter=5, version=9)
        assert self.store.replace_counter(f"{ROOT}/vpn", seen, 6) is False

    def test_other_bad_request(self):
        self.session.request.return_value = _response(400, {"errors": ["invalid request"]})
        seen = StoredRecord(size="8", text=RFC_KEY_TEXT, counter=5, version=9)
        with pytest.raises(StoreUnavailable):
            self.store.replace_counter(f"{ROOT}/vpn", seen, 6)

    def test_write_wraps_data(self):
        self.session.request.side_effect = [_response(404, {"errors": []}), _response(200, {"data": {}})]
        self.store.write(f"{ROOT}/github", {"size": "6", "text": "nzxxiidbebvwk6jb"})
        self.session.request.assert_called_with(
            "POST",
            f"{ADDR}/v1/secret/data/2fa/github",
            json={"data": {"size": "6", "text": "nzxxiidbebvwk6jb"}},
            timeout=3,
        )


def test_rejects_unknown_kv_version():
    with pytest.raises(ValueError):
        VaultCredentialStore(kv_version=3, session=MagicMock())


def test_close_closes_session():
    store, session = _store()
    store.close()
    session.close.assert_called_once_with()
