# evu_diag/funnel/smoke.py
"""Smoke checks against a locally running funnel backend.

Every check runs on its own: an exception in one is recorded as a failed
check and the remaining checks still run and the summary is still printed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from evu_diag.funnel.client import FunnelClient, response_body, tariff_list


logger = logging.getLogger(__name__)


PRICING_PATH = "/api/v1/tarife/berechnen"
ALT_PRICING_PATH = "/api/v1/pricing/berechnen"
VOUCHER_PATH = "/api/v1/voucher/validate"

DEFAULT_PRICING_REQUEST: Dict[str, Any] = {
    "plz": "10115",
    "jahresverbrauch": 3500,
    "haushaltgroesse": 2,
}


@dataclass
class CheckResult:
    name: str
    ok: bool
    status_code: Optional[int] = None
    detail: str = ""
    error: Optional[str] = None


def count_tariffs(body: Any) -> int:
    return len(tariff_list(body) or [])


async def check_health(client: FunnelClient) -> CheckResult:
    resp = await client.get("/health")
    return CheckResult("health", resp.status_code == 200, resp.status_code)


async def check_pricing(
    client: FunnelClient,
    *,
    path: str = PRICING_PATH,
    payload: Optional[Dict[str, Any]] = None,
) -> CheckResult:
    resp = await client.post_json(path, payload or DEFAULT_PRICING_REQUEST)
    body = response_body(resp)
    status_field = body.get("status") if isinstance(body, dict) else None
    tariffs = count_tariffs(body)
    detail = f"status={status_field} tariffs={tariffs}"
    if resp.status_code != 200:
        detail = f"{detail} body={body}"
    return CheckResult(f"pricing {path}", resp.status_code == 200, resp.status_code, detail)


async def check_frontend(client: FunnelClient) -> CheckResult:
    resp = await client.get("/")
    content_type = resp.headers.get("content-type", "")
    detail = "HTML served" if "html" in content_type else content_type
    return CheckResult("frontend", resp.status_code == 200, resp.status_code, detail)


async def check_voucher(client: FunnelClient, code: str, tariff_id: str) -> CheckResult:
    resp = await client.post_json(VOUCHER_PATH, {"voucherCode": code, "tariffId": tariff_id})
    body = response_body(resp)
    body = body if isinstance(body, dict) else {}
    ok = resp.status_code == 200 and bool(body.get("erfolg"))
    if ok:
        discounts = (body.get("daten") or {}).get("discounts") or {}
        unit = "%" if discounts.get("type") == "percentage" else "€"
        detail = f"{code} valid, discount {discounts.get('value')}{unit}"
    else:
        detail = f"{code} rejected: {body.get('nachricht') or body.get('message') or 'Unknown error'}"
    return CheckResult(f"voucher {code}", ok, resp.status_code, detail)


def format_check(result: CheckResult) -> str:
    mark = "PASS" if result.ok else "FAIL"
    status = result.status_code if result.status_code is not None else "-"
    text = f"{mark} {result.name}: {status}"
    if result.detail:
        text += f" - {result.detail}"
    if result.error:
        text += f" - {result.error}"
    return text


async def run_check(name: str, check: Callable[[], Awaitable[CheckResult]]) -> CheckResult:
    try:
        return await check()
    except Exception as exc:  # noqa: BLE001 - one failing check must not abort the rest
        logger.warning("[FUNNEL] %s check raised: %s", name, exc)
        return CheckResult(name, False, error=str(exc) or exc.__class__.__name__)


async def run_smoke(
    client: FunnelClient,
    *,
    include_health: bool = False,
    include_alt_route: bool = False,
    voucher: Optional[str] = None,
    voucher_tariff: str = "standard-10115",
) -> List[CheckResult]:
    checks: List[tuple[str, Callable[[], Awaitable[CheckResult]]]] = []
    if include_health:
        checks.append(("health", lambda: check_health(client)))
    checks.append((f"pricing {PRICING_PATH}", lambda: check_pricing(client)))
    if include_alt_route:
        checks.append((f"pricing {ALT_PRICING_PATH}", lambda: check_pricing(client, path=ALT_PRICING_PATH)))
    checks.append(("frontend", lambda: check_frontend(client)))
    if voucher:
        checks.append((f"voucher {voucher}", lambda: check_voucher(client, voucher, voucher_tariff)))

    print(f"Testing EVU funnel at {client.base_url}")
    results: List[CheckResult] = []
    for name, check in checks:
        result = await run_check(name, check)
        results.append(result)
        print(format_check(result))

    passed = sum(1 for r in results if r.ok)
    print(f"\nSummary: {passed}/{len(results)} checks passed")
    return results
