"""
HashiCorp Vault credential store (KV secrets engine, HTTP API).

Paths are the logical Vault paths used on the command line, e.g.
"secret/2fa/github". With KV version 2 the mount (first path segment) is
rewritten to the data/ and metadata/ API prefixes.

Vault's KV v1 engine has no conditional write, so counter updates there are
last-writer-wins across processes and only serialized within one process.
KV v2 uses check-and-set on the secret version.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from twofa_core.config import DEFAULT_VAULT_ADDR, DEFAULT_VAULT_TIMEOUT
from twofa_core.errors import PermissionDenied, RecordNotFound, StoreUnavailable

from .base import COUNTER_FIELD, CredentialStore, StoredRecord

logger = logging.getLogger(__name__)

_CAS_MISMATCH = "check-and-set"


class VaultCredentialStore(CredentialStore):
    """Credential store on a Vault KV mount."""

    def __init__(
        self,
        addr: str = DEFAULT_VAULT_ADDR,
        token: str | None = None,
        kv_version: int = 1,
        timeout: float = DEFAULT_VAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        if kv_version not in (1, 2):
            raise ValueError(f"unsupported KV version {kv_version}")
        self.addr = addr.rstrip("/")
        self.kv_version = kv_version
        self.timeout = timeout
        self._session = session or requests.Session()
        if token:
            self._session.headers["X-Vault-Token"] = token

    @property
    def supports_conditional_write(self) -> bool:  # type: ignore[override]
        return self.kv_version == 2

    # ------------------------------------------------------------------
    # Store operations
    # ------------------------------------------------------------------

    def list(self, root: str) -> list[str]:
        try:
            body = self._request("LIST", self._api_path(root, "metadata"), root)
        except RecordNotFound:
            return []
        keys = (body.get("data") or {}).get("keys") or []
        # trailing "/" marks a sub-folder, not a credential
        return [k for k in keys if isinstance(k, str) and not k.endswith("/")]

    def read(self, path: str) -> StoredRecord:
        body = self._request("GET", self._api_path(path, "data"), path)
        data = body.get("data") or {}
        if self.kv_version == 2:
            version = (data.get("metadata") or {}).get("version")
            return StoredRecord.from_fields(data.get("data") or {}, path, version=version)
        return StoredRecord.from_fields(data, path)

    def write(self, path: str, fields: dict[str, Any]) -> None:
        # KV writes replace the whole secret, so merge with what is there.
        try:
            current = self.read(path).to_fields()
        except RecordNotFound:
            current = {}
        current.update({k: str(v) for k, v in fields.items()})
        # an empty value removes the field
        self._put(path, {k: v for k, v in current.items() if v != ""})

    def replace_counter(self, path: str, seen: StoredRecord, counter: int) -> bool:
        fields = seen.to_fields()
        fields[COUNTER_FIELD] = str(counter)
        if self.kv_version == 1:
            self._put(path, fields)
            return True
        try:
            self._put(path, fields, cas=seen.version or 0)
        except _CasMismatch:
            logger.debug("check-and-set lost at %s (version %s)", path, seen.version)
            return False
        return True

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _api_path(self, path: str, kind: str) -> str:
        path = path.strip("/")
        if self.kv_version == 1:
            return path
        mount, _, rest = path.partition("/")
        return f"{mount}/{kind}/{rest}" if rest else f"{mount}/{kind}"

    def _put(self, path: str, fields: dict[str, str], cas: int | None = None) -> None:
        if self.kv_version == 1:
            payload: dict[str, Any] = fields
        else:
            payload = {"data": fields}
            if cas is not None:
                payload["options"] = {"cas": cas}
        self._request("POST", self._api_path(path, "data"), path, json=payload)

    def _request(self, method: str, api_path: str, path: str, json: dict | None = None) -> dict:
        url = f"{self.addr}/v1/{api_path}"
        try:
            response = self._session.request(method, url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise StoreUnavailable(f"unable to connect to vault at {self.addr}: {exc}") from exc
        return self._handle_response(response, path)

    def _handle_response(self, response: requests.Response, path: str) -> dict:
        status = response.status_code
        if status == 204:
            return {}
        if 200 <= status < 300:
            try:
                return response.json()
            except ValueError as exc:
                raise StoreUnavailable(f"invalid response from vault for {path!r}: {exc}") from exc

        errors = _error_text(response)
        if status == 404:
            raise RecordNotFound(f"no secret at {path!r}")
        if status == 403:
            raise PermissionDenied(f"permission denied on {path!r}: {errors}")
        if status == 400 and _CAS_MISMATCH in errors:
            raise _CasMismatch(path)
        raise StoreUnavailable(f"vault returned {status} for {path!r}: {errors}")


class _CasMismatch(Exception):
    """Internal: KV v2 check-and-set did not match the current version."""


def _error_text(response: requests.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except ValueError:
        return response.text
    return "; ".join(str(e) for e in errors) or response.text
