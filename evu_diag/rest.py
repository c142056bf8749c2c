# evu_diag/rest.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from evu_diag.config import Settings, get_settings


logger = logging.getLogger(__name__)


@dataclass
class RestError:
    code: Optional[str]
    message: str
    details: Optional[str] = None
    hint: Optional[str] = None
    status: Optional[int] = None


@dataclass
class RestResponse:
    """The managed backend's ``{data, error}`` envelope."""

    data: Any = None
    error: Optional[RestError] = None
    status: Optional[int] = None


def _split_table(table: str) -> Tuple[str, str]:
    # "schema.table" targets a non-public schema.
    if "." in table:
        schema, name = table.split(".", 1)
        if schema and name:
            return schema, name
    return "public", table


def parse_error(resp: requests.Response) -> RestError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        return RestError(
            code=str(code) if code is not None else None,
            message=str(body.get("message") or body.get("error") or resp.reason or ""),
            details=body.get("details"),
            hint=body.get("hint"),
            status=resp.status_code,
        )
    return RestError(code=None, message=(resp.text or "")[:200], status=resp.status_code)


class SupabaseRest:
    """Minimal PostgREST client: insert and select addressed by table name."""

    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url.rstrip("/")
        self._key = service_key
        self._session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "SupabaseRest":
        settings = settings or get_settings()
        return cls(
            settings.require("SUPABASE_URL"),
            settings.require("SUPABASE_SERVICE_ROLE_KEY"),
            timeout=settings.HTTP_TIMEOUT,
            **kwargs,
        )

    def _headers(self, schema: str, *, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }
        if schema != "public":
            headers["Content-Profile"] = schema
            headers["Accept-Profile"] = schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _send(self, method: str, table: str, **kwargs: Any) -> RestResponse:
        try:
            resp = self._session.request(method, f"{self.url}/rest/v1/{table}", timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("[REST] %s %s failed: %s", method, table, exc)
            return RestResponse(error=RestError(code=None, message=str(exc)))

        if not (200 <= resp.status_code < 300):
            error = parse_error(resp)
            logger.info("[REST] %s %s -> HTTP %s code=%s", method, table, resp.status_code, error.code)
            return RestResponse(error=error, status=resp.status_code)

        data: Any = None
        if resp.content:
            try:
                data = resp.json()
            except ValueError:
                data = resp.text
        return RestResponse(data=data, status=resp.status_code)

    def insert(
        self,
        table: str,
        rows: Union[Dict[str, Any], List[Dict[str, Any]]],
        *,
        returning: bool = True,
    ) -> RestResponse:
        schema, name = _split_table(table)
        prefer = "return=representation" if returning else "return=minimal"
        return self._send("POST", name, json=rows, headers=self._headers(schema, prefer=prefer))

    def select(
        self,
        table: str,
        columns: str = "*",
        *,
        limit: Optional[int] = None,
        order: Optional[str] = None,
    ) -> RestResponse:
        """``order`` uses PostgREST syntax, e.g. ``created_at.desc``."""
        schema, name = _split_table(table)
        params: Dict[str, Any] = {"select": columns}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return self._send("GET", name, params=params, headers=self._headers(schema))
