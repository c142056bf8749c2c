#!/usr/bin/env python3
"""Check whether a column exists by inserting a probe row through the REST API.

The inserted row is not cleaned up. With --ping only a one-row select is
issued, which is enough to tell "API reachable" from "table missing".

Env:
  SUPABASE_URL
  SUPABASE_SERVICE_ROLE_KEY
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from evu_diag.config import MissingSettingError, configure_logging, get_settings
from evu_diag.rest import SupabaseRest
from evu_diag.schema_probe import describe, ping, probe_column


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--table", default=None, help="Target table (default: customers, or pricing_margins with --ping)")
    parser.add_argument("--column", default="agb_akzeptiert", help="Column whose existence is checked")
    parser.add_argument("--ping", action="store_true", help="Only select one row to check connectivity")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        client = SupabaseRest.from_settings(get_settings())
    except MissingSettingError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.ping:
        table = args.table or "pricing_margins"
        print(f"Testing REST connection via {table}...")
        result = ping(client, table=table)
    else:
        table = args.table or "customers"
        print(f"Checking {table} for column {args.column}...")
        result = probe_column(client, table=table, column=args.column)

    print(describe(result))
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
