# evu_diag/db/__init__.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import ParseResult, parse_qsl, urlencode, urlparse, urlunparse

import psycopg

from evu_diag.config import Settings, get_settings


logger = logging.getLogger(__name__)


PGBOUNCER_PORT = 6543


def _parse_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    return text in {"1", "true", "t", "yes", "y", "on"}


def _rebuild_netloc(u: ParseResult, port: int) -> str:
    username = u.username or ""
    secret = u.password
    host = u.hostname or ""

    if not host:
        return u.netloc or ""

    userinfo = ""
    if username:
        userinfo = username
        if secret:
            userinfo += f":{secret}"
        userinfo += "@"

    if host and ":" in host and not host.startswith("["):
        host = f"[{host}]"

    return f"{userinfo}{host}:{port}"


def clean_database_url(dsn: str) -> tuple[ParseResult, bool]:
    """Drop query keys libpq rejects and default to ``sslmode=require``.

    Returns the cleaned URL and whether ``pgbouncer=true`` was requested.
    """
    parsed = urlparse(dsn)
    qs = dict(parse_qsl(parsed.query, keep_blank_values=True))
    use_pgbouncer = _parse_bool(qs.pop("pgbouncer", None))
    qs.pop("prepare_threshold", None)
    qs.setdefault("sslmode", "require")
    cleaned = parsed._replace(query=urlencode(qs))
    return cleaned, use_pgbouncer


def make_conninfo(parsed: ParseResult, *, port: Optional[int] = None) -> str:
    if port is None:
        return urlunparse(parsed)
    return urlunparse(parsed._replace(netloc=_rebuild_netloc(parsed, port)))


def redact_conninfo(conninfo: str) -> str:
    """Replace the password of a postgres URL with ``***``."""
    parsed = urlparse(conninfo)
    if not parsed.password:
        return conninfo
    # Only the password changes; host and port text stay as written.
    userinfo, hostport = parsed.netloc.rsplit("@", 1)
    username = userinfo.split(":", 1)[0]
    return urlunparse(parsed._replace(netloc=f"{username}:***@{hostport}"))


def get_pool_configuration(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Describe the primary/fallback DSNs the backend would use.

    The primary comes from ``DATABASE_URL`` (forced to the pgBouncer port when
    ``pgbouncer=true``); the fallback is ``DIRECT_URL`` when it differs.
    """
    settings = settings or get_settings()
    database_url = settings.require("DATABASE_URL")

    cleaned, use_pgbouncer = clean_database_url(database_url)
    primary_label = "direct"
    primary = make_conninfo(cleaned)
    if use_pgbouncer:
        primary = make_conninfo(cleaned, port=PGBOUNCER_PORT)
        primary_label = "pgbouncer"
        logger.info("[DB] pgBouncer mode requested; primary port=%s", PGBOUNCER_PORT)

    fallback: Optional[str] = None
    fallback_label: Optional[str] = None
    if settings.DIRECT_URL:
        direct_cleaned, _ = clean_database_url(settings.DIRECT_URL)
        candidate = make_conninfo(direct_cleaned)
        if candidate != primary:
            fallback = candidate
            fallback_label = "direct"

    return {
        "primary": {"label": primary_label, "conninfo": primary},
        "fallback": {"label": fallback_label, "conninfo": fallback} if fallback else None,
    }


async def probe_conninfo(label: str, conninfo: str, timeout: float) -> Dict[str, Any]:
    """Open one connection, run ``select 1`` and report latency or the error."""
    started = time.perf_counter()
    error: Optional[str] = None
    ok = False
    try:
        conn = await asyncio.wait_for(
            psycopg.AsyncConnection.connect(
                conninfo,
                connect_timeout=max(2, int(timeout)),
                prepare_threshold=None,
            ),
            timeout=timeout,
        )
        try:
            async with conn.cursor() as cur:
                await cur.execute("select 1;")
                await cur.fetchone()
        finally:
            await conn.close()
        ok = True
    except (psycopg.Error, OSError, asyncio.TimeoutError) as exc:
        error = str(exc).strip() or exc.__class__.__name__
        logger.warning("[DB] probe %s failed: %s", label, error)

    latency_ms = int((time.perf_counter() - started) * 1000)
    return {
        "label": label,
        "conninfo": redact_conninfo(conninfo),
        "ok": ok,
        "latency_ms": latency_ms,
        "error": error,
    }


async def diagnose_connectivity(
    settings: Optional[Settings] = None, *, timeout: float = 5.0
) -> Dict[str, Any]:
    """Probe the primary DSN, then the fallback, one after the other."""
    config = get_pool_configuration(settings)
    primary = config["primary"]
    results: Dict[str, Any] = {
        "primary": await probe_conninfo(primary["label"], primary["conninfo"], timeout),
        "fallback": None,
    }
    fallback = config["fallback"]
    if fallback:
        results["fallback"] = await probe_conninfo(fallback["label"], fallback["conninfo"], timeout)
    return results
