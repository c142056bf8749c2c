#!/usr/bin/env python3
"""Probe the configured DATABASE_URL (and DIRECT_URL fallback).

Mirrors how the funnel backend derives its DSNs, so the pgBouncer port and the
direct fallback are tested exactly as the service would use them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from evu_diag.config import MissingSettingError, configure_logging, get_settings
from evu_diag.db import diagnose_connectivity, get_pool_configuration, redact_conninfo


def _redacted_configuration(config: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, entry in config.items():
        if entry is None:
            out[key] = None
            continue
        out[key] = {"label": entry["label"], "conninfo": redact_conninfo(entry["conninfo"])}
    return out


async def _run(timeout: float) -> Dict[str, Any]:
    settings = get_settings()
    config = get_pool_configuration(settings)
    results = await diagnose_connectivity(settings, timeout=timeout)
    return {
        "configuration": _redacted_configuration(config),
        "results": results,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Seconds to wait for each connection probe (default: 5.0)",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print JSON output",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        payload = asyncio.run(_run(args.timeout))
    except MissingSettingError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    dumps = json.dumps(payload, indent=2 if args.pretty else None, sort_keys=args.pretty)
    print(dumps)
    primary_ok = bool(payload["results"]["primary"]["ok"])
    return 0 if primary_ok else 1


if __name__ == "__main__":
    sys.exit(main())
