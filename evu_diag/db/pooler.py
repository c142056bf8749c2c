# evu_diag/db/pooler.py
"""Brute-force discovery of the pooler endpoint for a hosted project.

Candidates are the cross product of region, username format and port. They are
attempted one at a time and the first one that accepts a connection wins; the
remaining candidates are never tried.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Iterator, Optional, Sequence
from urllib.parse import quote

import psycopg

from evu_diag.db import PGBOUNCER_PORT


logger = logging.getLogger(__name__)


EXTENDED_USER_FORMAT = "postgres.{project_ref}"

# Substrings of pooler/libpq errors, checked in order.
_ERROR_REASONS = (
    ("tenant or user not found", "wrong region/tenant"),
    ("could not translate host name", "dns"),
    ("name or service not known", "dns"),
    ("nodename nor servname", "dns"),
    ("getaddrinfo", "dns"),
    ("password authentication failed", "auth"),
    ("timeout", "timeout"),
    ("timed out", "timeout"),
    ("network is unreachable", "network"),
    ("connection refused", "network"),
)


@dataclass(frozen=True)
class PoolerCandidate:
    region: str
    user: str
    port: int
    pooler_domain: str = "pooler.supabase.com"

    @property
    def host(self) -> str:
        return f"aws-0-{self.region}.{self.pooler_domain}"

    def conninfo(self, password: str, database: str = "postgres") -> str:
        user = quote(self.user, safe="")
        secret = quote(password, safe="")
        return f"postgresql://{user}:{secret}@{self.host}:{self.port}/{database}?sslmode=require"

    def label(self) -> str:
        return f"{self.region} | user={self.user} | port={self.port}"


@dataclass
class AttemptOutcome:
    candidate: PoolerCandidate
    ok: bool
    error: Optional[str] = None
    latency_ms: int = 0

    @property
    def reason(self) -> Optional[str]:
        return classify_error(self.error) if self.error else None


@dataclass
class SweepResult:
    winner: Optional[PoolerCandidate] = None
    attempts: list[AttemptOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.winner is not None


def classify_error(message: str) -> str:
    text = (message or "").lower()
    for needle, reason in _ERROR_REASONS:
        if needle in text:
            return reason
    return "error"


def render_user(user_format: str, project_ref: str) -> str:
    return user_format.format(project_ref=project_ref)


def iter_candidates(
    regions: Sequence[str],
    user_formats: Sequence[str],
    ports: Sequence[int],
    *,
    project_ref: str,
    pooler_domain: str = "pooler.supabase.com",
) -> Iterator[PoolerCandidate]:
    """Yield candidates ordered region, then username format, then port.

    Each call returns a fresh generator, so the sequence can be replayed.
    """
    users = [render_user(fmt, project_ref) for fmt in user_formats]
    for region, user, port in itertools.product(regions, users, ports):
        yield PoolerCandidate(region=region, user=user, port=int(port), pooler_domain=pooler_domain)


def extended_candidates(
    regions: Sequence[str],
    *,
    project_ref: str,
    pooler_domain: str = "pooler.supabase.com",
    port: int = PGBOUNCER_PORT,
) -> Iterator[PoolerCandidate]:
    """Single user format and fixed port; only the region varies."""
    return iter_candidates(
        regions,
        [EXTENDED_USER_FORMAT],
        [port],
        project_ref=project_ref,
        pooler_domain=pooler_domain,
    )


async def connect_candidate(
    candidate: PoolerCandidate,
    *,
    password: str,
    database: str = "postgres",
    timeout_ms: int = 3000,
) -> None:
    """Open and immediately close a connection; raise on any failure.

    ``sslmode=require`` encrypts without verifying the server certificate.
    """
    timeout = timeout_ms / 1000.0
    conn = await asyncio.wait_for(
        psycopg.AsyncConnection.connect(
            candidate.conninfo(password, database),
            connect_timeout=max(2, math.ceil(timeout)),
            prepare_threshold=None,
        ),
        timeout=timeout,
    )
    await conn.close()


AttemptFn = Callable[[PoolerCandidate], Awaitable[None]]


async def sweep(
    candidates: Iterable[PoolerCandidate],
    attempt: AttemptFn,
    *,
    on_attempt: Optional[Callable[[AttemptOutcome], None]] = None,
) -> SweepResult:
    """Try candidates in order, one at a time, stopping at the first success."""
    result = SweepResult()
    for candidate in candidates:
        logger.info("[POOLER] testing %s", candidate.label())
        started = time.perf_counter()
        try:
            await attempt(candidate)
        except Exception as exc:  # noqa: BLE001 - any failure means "next candidate"
            message = str(exc).strip() or exc.__class__.__name__
            outcome = AttemptOutcome(
                candidate=candidate,
                ok=False,
                error=message,
                latency_ms=int((time.perf_counter() - started) * 1000),
            )
            logger.info("[POOLER] failed %s (%s): %s", candidate.label(), outcome.reason, message)
        else:
            outcome = AttemptOutcome(
                candidate=candidate,
                ok=True,
                latency_ms=int((time.perf_counter() - started) * 1000),
            )
            result.winner = candidate

        result.attempts.append(outcome)
        if on_attempt is not None:
            on_attempt(outcome)
        if outcome.ok:
            logger.info("[POOLER] connected via %s (host=%s)", candidate.label(), candidate.host)
            break

    if result.winner is None:
        logger.warning("[POOLER] all %d candidates failed", len(result.attempts))
    return result
