#!/usr/bin/env python3
"""Find a working pooler region / username / port for the hosted database.

Candidates are tried one at a time (region, then username format, then port)
and the sweep stops at the first successful connection.

Env:
  SUPABASE_PROJECT_REF, SUPABASE_DB_PASSWORD
  POOLER_REGIONS, POOLER_EXTENDED_REGIONS, POOLER_USER_FORMATS, POOLER_PORTS,
  POOLER_DOMAIN, CONNECT_TIMEOUT_MS (optional)
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from evu_diag.config import MissingSettingError, configure_logging, get_settings
from evu_diag.db.pooler import (
    AttemptOutcome,
    PoolerCandidate,
    connect_candidate,
    extended_candidates,
    iter_candidates,
    sweep,
)


def _print_outcome(outcome: AttemptOutcome) -> None:
    label = outcome.candidate.label()
    if outcome.ok:
        print(f"SUCCESS! Connected: {label} ({outcome.latency_ms} ms)")
    else:
        print(f"Failed:  {label} [{outcome.reason}] {outcome.error}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--extended", action="store_true", help="Sweep the extended region list (one user, port 6543)")
    parser.add_argument("--region", action="append", default=None, help="Region to try (repeatable)")
    parser.add_argument("--user-format", action="append", default=None, help="Username template (repeatable)")
    parser.add_argument("--port", action="append", type=int, default=None, help="Port to try (repeatable)")
    parser.add_argument("--timeout-ms", type=int, default=None, help="Per-attempt connect timeout")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    settings = get_settings()
    try:
        project_ref = settings.require("SUPABASE_PROJECT_REF")
        password = settings.require("SUPABASE_DB_PASSWORD")
    except MissingSettingError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    timeout_ms = args.timeout_ms or settings.CONNECT_TIMEOUT_MS
    if args.extended:
        candidates = extended_candidates(
            args.region or settings.POOLER_EXTENDED_REGIONS,
            project_ref=project_ref,
            pooler_domain=settings.POOLER_DOMAIN,
        )
    else:
        candidates = iter_candidates(
            args.region or settings.POOLER_REGIONS,
            args.user_format or settings.POOLER_USER_FORMATS,
            args.port or settings.POOLER_PORTS,
            project_ref=project_ref,
            pooler_domain=settings.POOLER_DOMAIN,
        )

    async def _attempt(candidate: PoolerCandidate) -> None:
        await connect_candidate(
            candidate,
            password=password,
            database=settings.DB_NAME,
            timeout_ms=timeout_ms,
        )

    result = asyncio.run(sweep(candidates, _attempt, on_attempt=_print_outcome))
    if result.winner is None:
        print("All combinations failed.")
        return 1

    winner = result.winner
    print(f"\nHost: {winner.host}\nPort: {winner.port}\nUser: {winner.user}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
