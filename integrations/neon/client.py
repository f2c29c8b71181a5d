# ==============================
# Control-Plane HTTP Client
# ==============================
"""
Thin requests-based client for the database control-plane API.

Rules:
- Stateless: one pre-configured Session carries base URL, bearer auth and JSON headers.
- Built only when an API key exists; otherwise the backend stays unconfigured.
- Non-2xx responses raise BackendError with the API's own "message" when present.
- Transport failures raise BackendError too (no retries here).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from broker.errors import BackendError


class NeonClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        try:
            resp = self.session.request(method, url, params=query or None, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BackendError(f"Request failed: {exc}") from exc

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = None

        if not resp.ok:
            message = body.get("message") if isinstance(body, dict) else None
            raise BackendError(message or f"API error: {resp.status_code}", status=resp.status_code)

        return body if body is not None else {}

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", path, payload=payload or {})

    def patch(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("PATCH", path, payload=payload or {})

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    def query(self, project_id: str, branch_id: str, database: str, sql: str) -> Any:
        return self.post(
            f"/projects/{project_id}/branches/{branch_id}/databases/{database}/query",
            {"query": sql},
        )

    def close(self) -> None:
        self.session.close()
