#!/usr/bin/env python3
"""Resolve the hosted project's database, API and pooler hostnames.

Env:
  SUPABASE_PROJECT_REF  project identifier used to build the hostnames
  DNS_SERVICES, PROJECT_DOMAIN, POOLER_REGIONS, POOLER_DOMAIN (optional)
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
from evu_diag.dns_probe import candidate_hostnames, diagnose, format_result, probe_hostnames


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--project-ref", default=None, help="Override SUPABASE_PROJECT_REF")
    parser.add_argument("--aaaa", action="store_true", help="Also query AAAA (IPv6) records")
    parser.add_argument("--no-pooler", action="store_true", help="Skip the regional pooler hostnames")
    parser.add_argument("--host", action="append", default=[], help="Extra hostname to resolve (repeatable)")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    settings = get_settings()
    try:
        project_ref = args.project_ref or settings.require("SUPABASE_PROJECT_REF")
    except MissingSettingError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    hostnames = candidate_hostnames(
        project_ref,
        services=settings.DNS_SERVICES,
        project_domain=settings.PROJECT_DOMAIN,
        regions=[] if args.no_pooler else settings.POOLER_REGIONS,
        pooler_domain=settings.POOLER_DOMAIN,
    )
    hostnames.extend(args.host)
    record_types = ("A", "AAAA") if args.aaaa else ("A",)

    print(f"Testing DNS resolution for {len(hostnames)} hostnames...")
    results = asyncio.run(probe_hostnames(hostnames, record_types=record_types))
    for result in results:
        print(format_result(result))

    db_host = f"db.{project_ref}.{settings.PROJECT_DOMAIN}"
    db_results = [r for r in results if r.hostname == db_host]
    if db_results:
        print(f"\nDiagnosis ({db_host}): {diagnose(db_results[0])}")

    resolved = sum(1 for r in results if r.ok)
    print(f"\n{resolved}/{len(results)} lookups resolved.")
    return 0 if resolved == len(results) else 1


if __name__ == "__main__":
    sys.exit(main())
