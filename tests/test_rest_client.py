from typing import Any, Dict, List

import pytest
import requests

from evu_diag.config import MissingSettingError, Settings
from evu_diag.rest import SupabaseRest


class _Resp:
    def __init__(self, status_code: int, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.reason = "Bad Request" if status_code >= 400 else "OK"
        self.text = text
        self.content = b"x" if payload is not None or text else b""

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _Session:
    def __init__(self, resp: Any) -> None:
        self.resp = resp
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        if isinstance(self.resp, Exception):
            raise self.resp
        return self.resp


def test_insert_sends_service_key_and_representation() -> None:
    session = _Session(_Resp(201, [{"id": 1}]))
    client = SupabaseRest("https://proj.supabase.co/", "service-key", session=session)

    result = client.insert("customers", {"email": "a@example.com"})

    assert result.error is None
    assert result.data == [{"id": 1}]
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://proj.supabase.co/rest/v1/customers"
    assert call["headers"]["apikey"] == "service-key"
    assert call["headers"]["Authorization"] == "Bearer service-key"
    assert call["headers"]["Prefer"] == "return=representation"
    assert "Content-Profile" not in call["headers"]


def test_select_with_schema_and_limit() -> None:
    session = _Session(_Resp(200, []))
    client = SupabaseRest("https://proj.supabase.co", "k", session=session)

    client.select("billing.pricing_margins", limit=1)

    call = session.calls[0]
    assert call["url"].endswith("/rest/v1/pricing_margins")
    assert call["params"] == {"select": "*", "limit": 1}
    assert call["headers"]["Accept-Profile"] == "billing"


def test_error_envelope_carries_code() -> None:
    session = _Session(
        _Resp(400, {"code": "42703", "message": 'column "agb_akzeptiert" does not exist', "hint": None})
    )
    client = SupabaseRest("https://proj.supabase.co", "k", session=session)

    result = client.insert("customers", {})

    assert result.data is None
    assert result.status == 400
    assert result.error.code == "42703"
    assert "agb_akzeptiert" in result.error.message


def test_non_json_error_body() -> None:
    session = _Session(_Resp(502, None, text="<html>Bad gateway</html>"))
    client = SupabaseRest("https://proj.supabase.co", "k", session=session)

    result = client.select("customers")

    assert result.error.code is None
    assert "Bad gateway" in result.error.message


def test_transport_failure_is_returned_not_raised() -> None:
    session = _Session(requests.ConnectionError("connection reset"))
    client = SupabaseRest("https://proj.supabase.co", "k", session=session)

    result = client.select("customers")

    assert result.error is not None
    assert "connection reset" in result.error.message


def test_from_settings_requires_credentials() -> None:
    with pytest.raises(MissingSettingError):
        SupabaseRest.from_settings(Settings(_env_file=None, SUPABASE_URL="https://proj.supabase.co"))


def test_select_newest_row() -> None:
    session = _Session(_Resp(200, [{"id": 9}]))
    client = SupabaseRest("https://proj.supabase.co", "k", session=session)

    client.select("import_requests", limit=1, order="created_at.desc")

    assert session.calls[0]["params"] == {"select": "*", "order": "created_at.desc", "limit": 1}
