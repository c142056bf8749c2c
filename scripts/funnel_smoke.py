#!/usr/bin/env python3
"""Smoke-test a locally running funnel backend: pricing API and frontend.

Env:
  LOCAL_BASE_URL  (optional) - default http://localhost:3000
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

from evu_diag.config import configure_logging, get_settings
from evu_diag.funnel import FunnelClient
from evu_diag.funnel.smoke import CheckResult, run_smoke


async def _run(args: argparse.Namespace) -> List[CheckResult]:
    settings = get_settings()
    async with FunnelClient(args.base_url or settings.LOCAL_BASE_URL, timeout=settings.HTTP_TIMEOUT) as client:
        return await run_smoke(
            client,
            include_health=args.health,
            include_alt_route=args.alt_route,
            voucher=args.voucher,
            voucher_tariff=args.voucher_tariff,
        )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--base-url", default=None, help="Override LOCAL_BASE_URL")
    parser.add_argument("--health", action="store_true", help="Also check GET /health")
    parser.add_argument("--alt-route", action="store_true", help="Also check /api/v1/pricing/berechnen")
    parser.add_argument("--voucher", default=None, help="Voucher code to validate (e.g. WELCOME2025)")
    parser.add_argument("--voucher-tariff", default="standard-10115", help="Tariff ID for the voucher check")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    results = asyncio.run(_run(args))
    return 0 if all(r.ok for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
