#!/usr/bin/env python3
"""Run pricing and a contract import against the deployed backend.

The import writes a real contract draft, using a fresh customer email.
--audit-log then reads the newest import_requests row through the managed
backend, and --malo-draft fetches the contract's MaLo draft from the ops API.

Env:
  API_URL   (optional) - production API base URL
  FUNNEL_ID (optional)
  SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY (only with --audit-log)
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
from evu_diag.funnel import FunnelClient
from evu_diag.funnel.production import run
from evu_diag.rest import SupabaseRest


async def _run(args: argparse.Namespace, audit: Optional[SupabaseRest]) -> int:
    settings = get_settings()
    async with FunnelClient(args.api_url or settings.API_URL, timeout=settings.HTTP_TIMEOUT) as client:
        return await run(
            client,
            funnel_id=args.funnel_id or settings.FUNNEL_ID,
            plz=args.plz,
            consumption=args.consumption,
            audit=audit,
            malo_draft=args.malo_draft,
        )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--api-url", default=None, help="Override API_URL")
    parser.add_argument("--funnel-id", default=None, help="Override FUNNEL_ID")
    parser.add_argument("--plz", default="10115", help="Postal code for the pricing request")
    parser.add_argument("--consumption", type=int, default=3500, help="Annual consumption in kWh")
    parser.add_argument("--audit-log", action="store_true", help="Check that the import was written to import_requests")
    parser.add_argument("--malo-draft", action="store_true", help="Fetch the MaLo draft from the ops API")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    audit: Optional[SupabaseRest] = None
    if args.audit_log:
        try:
            audit = SupabaseRest.from_settings(get_settings())
        except MissingSettingError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2

    return asyncio.run(_run(args, audit))


if __name__ == "__main__":
    sys.exit(main())
