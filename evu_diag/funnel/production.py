# evu_diag/funnel/production.py
"""End-to-end check of a deployed backend: pricing, then contract import.

The import writes through to the hosted database, so every run uses a fresh
customer email to stay clear of the unique constraint.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from evu_diag.funnel.client import FunnelClient, response_body, tariff_list
from evu_diag.funnel.smoke import CheckResult, format_check, run_check
from evu_diag.rest import SupabaseRest


logger = logging.getLogger(__name__)


PRICING_PATH = "/pricing/berechnen"
IMPORT_PATH = "/contracting/import"
MALO_DRAFTS_PATH = "/contracting/ops/malo-drafts/{contract_id}"
AUDIT_TABLE = "import_requests"


class IntegrationCheckError(Exception):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class PricingError(IntegrationCheckError):
    pass


class ContractImportError(IntegrationCheckError):
    pass


@dataclass
class Tariff:
    id: str
    monthly_cost: Any = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProductionReport:
    tariff_id: str
    monthly_cost: Any
    email: str
    contract_id: Any = None
    draft_id: Any = None
    followups: List[CheckResult] = field(default_factory=list)


def unique_email(prefix: str = "railway.test") -> str:
    millis = int(time.time() * 1000)
    return f"{prefix}.{millis}.{uuid.uuid4().hex[:8]}@example.com"


def build_import_payload(
    tariff_id: str,
    *,
    email: str,
    funnel_id: str = "enfinitus-website",
    consumption: int = 3500,
    start_date: Optional[dt.date] = None,
) -> Dict[str, Any]:
    start = start_date or dt.date.today()
    return {
        "funnelId": funnel_id,
        "customer": {
            "firstName": "Railway",
            "lastName": "Test",
            "email": email,
            "phone": "+49 30 123456",
            "street": "Teststrasse",
            "houseNumber": "1",
            "zipCode": "10115",
            "city": "Berlin",
            "termsAccepted": True,
            "privacyAccepted": True,
        },
        "contract": {
            "campaignKey": tariff_id,
            "tariffId": tariff_id,
            "estimatedConsumption": consumption,
            "desiredStartDate": start.isoformat(),
            "iban": "DE12345678901234567890",
            "sepaMandate": True,
        },
        "meterLocation": {
            "maloId": "41234567890",
            "meterNumber": "METER-RAILWAY-TEST",
        },
    }


async def request_pricing(
    client: FunnelClient,
    *,
    plz: str = "10115",
    jahresverbrauch: int = 3500,
    funnel_id: str = "enfinitus-website",
) -> Tariff:
    resp = await client.post_json(
        PRICING_PATH,
        {"plz": plz, "jahresverbrauch": jahresverbrauch, "funnelId": funnel_id},
    )
    resp.raise_for_status()
    body = response_body(resp)
    if not isinstance(body, dict) or not body.get("erfolg"):
        message = body.get("nachricht") if isinstance(body, dict) else None
        raise PricingError(
            f"Pricing failed: {message or 'unknown error'}",
            status_code=resp.status_code,
            payload=body,
        )

    tarife = tariff_list(body)
    if tarife is None:
        raise PricingError("Pricing response has no tariff list", status_code=resp.status_code, payload=body)
    if not tarife:
        raise PricingError("Pricing returned no tariffs", status_code=resp.status_code, payload=body)

    first = tarife[0]
    if not isinstance(first, dict) or not first.get("id"):
        raise PricingError("First tariff has no id", status_code=resp.status_code, payload=body)
    kosten = first.get("kosten")
    monthly = kosten.get("monatliche_kosten") if isinstance(kosten, dict) else None
    return Tariff(id=first["id"], monthly_cost=monthly, raw=first)


async def import_contract(client: FunnelClient, payload: Dict[str, Any]) -> Dict[str, Any]:
    resp = await client.post_json(IMPORT_PATH, payload)
    resp.raise_for_status()
    body = response_body(resp)
    if not isinstance(body, dict) or not body.get("success"):
        message = body.get("message") if isinstance(body, dict) else None
        raise ContractImportError(
            message or "Import failed",
            status_code=resp.status_code,
            payload=body,
        )
    return body


async def check_audit_log(rest: SupabaseRest, *, table: str = AUDIT_TABLE) -> CheckResult:
    """The newest audit row should exist once an import went through."""
    name = f"audit log {table}"
    response = await asyncio.to_thread(rest.select, table, limit=1, order="created_at.desc")
    if response.error is not None:
        err = response.error
        return CheckResult(name, False, response.status, error=f"[{err.code}] {err.message}")
    if not response.data:
        # Logged asynchronously or hidden by row-level security.
        return CheckResult(name, False, response.status, "no import request logged")
    return CheckResult(name, True, response.status, "import request logged")


async def check_malo_draft(client: FunnelClient, contract_id: Any) -> CheckResult:
    path = MALO_DRAFTS_PATH.format(contract_id=contract_id)
    resp = await client.get(path)
    body = response_body(resp)
    name = f"malo draft {contract_id}"
    drafts = body.get("data") if isinstance(body, dict) else None
    if resp.status_code != 200 or not isinstance(drafts, list) or not drafts or not body.get("success"):
        return CheckResult(name, False, resp.status_code, f"no MaLo draft: {body}")
    first = drafts[0]
    draft_id = first.get("id") if isinstance(first, dict) else first
    return CheckResult(name, True, resp.status_code, f"draft {draft_id}")


async def run_production_check(
    client: FunnelClient,
    *,
    funnel_id: str = "enfinitus-website",
    plz: str = "10115",
    consumption: int = 3500,
    email: Optional[str] = None,
    audit: Optional[SupabaseRest] = None,
    malo_draft: bool = False,
) -> ProductionReport:
    """Pricing first; a failed pricing step raises before any import request.

    With ``audit`` the newest ``import_requests`` row is read back, and with
    ``malo_draft`` the ops endpoint is asked for the contract's MaLo draft.
    Both are reported as check lines and never abort the run.
    """
    print(f"1) Pricing {PRICING_PATH}")
    tariff = await request_pricing(client, plz=plz, jahresverbrauch=consumption, funnel_id=funnel_id)
    print(f"   OK. First tariff ID: {tariff.id} Monthly: {tariff.monthly_cost}")

    print(f"\n2) Contract import {IMPORT_PATH}")
    customer_email = email or unique_email()
    payload = build_import_payload(
        tariff.id,
        email=customer_email,
        funnel_id=funnel_id,
        consumption=consumption,
    )
    logger.info("[PROD] importing contract for %s (tariff=%s)", customer_email, tariff.id)
    body = await import_contract(client, payload)
    report = ProductionReport(
        tariff_id=tariff.id,
        monthly_cost=tariff.monthly_cost,
        email=customer_email,
        contract_id=body.get("contractId"),
        draft_id=body.get("draftId"),
    )
    print(f"   OK. ContractID: {report.contract_id} DraftID: {report.draft_id}")

    step = 3
    if audit is not None:
        print(f"\n{step}) Audit log {AUDIT_TABLE}")
        result = await run_check(f"audit log {AUDIT_TABLE}", lambda: check_audit_log(audit))
        report.followups.append(result)
        print(f"   {format_check(result)}")
        step += 1
    if malo_draft:
        print(f"\n{step}) MaLo draft {MALO_DRAFTS_PATH.format(contract_id=report.contract_id)}")
        result = await run_check(
            f"malo draft {report.contract_id}", lambda: check_malo_draft(client, report.contract_id)
        )
        report.followups.append(result)
        print(f"   {format_check(result)}")
    return report


async def run(client: FunnelClient, **kwargs: Any) -> int:
    """Run the check and print a diagnosis for any failure; returns an exit code."""
    print(f"Testing deployed backend at {client.base_url}\n")
    try:
        report = await run_production_check(client, **kwargs)
    except IntegrationCheckError as exc:
        print(f"\nIntegration test failed: {exc}")
        if exc.status_code is not None:
            print(f"Status: {exc.status_code}")
        if exc.payload is not None:
            print(f"Response data: {exc.payload}")
        return 1
    except httpx.HTTPStatusError as exc:
        print(f"\nIntegration test failed: {exc}")
        print(f"Status: {exc.response.status_code}")
        print(f"Response data: {response_body(exc.response)}")
        return 1
    except Exception as exc:  # noqa: BLE001 - top-level diagnostic output
        logger.exception("[PROD] unexpected failure")
        print(f"\nIntegration test failed: {str(exc) or exc.__class__.__name__}")
        return 1

    print("\nPricing and contract import succeeded.")
    failed = [r.name for r in report.followups if not r.ok]
    if failed:
        print(f"Follow-up checks failed: {', '.join(failed)}")
        return 1
    return 0
