# evu_diag/schema_probe.py
"""Black-box column existence check through the managed backend's insert API.

One synthetic row is inserted and the outcome is read back from the
``{data, error}`` envelope. No DDL is issued and the row is left in place.
"""

from __future__ import annotations

import enum
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from evu_diag.rest import RestError, RestResponse, SupabaseRest


logger = logging.getLogger(__name__)


UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"
# PostgREST schema-cache misses
PGRST_TABLE_NOT_FOUND = "PGRST205"
PGRST_COLUMN_NOT_FOUND = "PGRST204"


class SchemaStatus(str, enum.Enum):
    COLUMN_PRESENT = "column_present"
    TABLE_MISSING = "table_missing"
    COLUMN_MISSING = "column_missing"
    OTHER_ERROR = "other_error"


@dataclass
class SchemaProbeResult:
    status: SchemaStatus
    table: str
    column: Optional[str] = None
    data: Any = None
    error: Optional[RestError] = None

    @property
    def ok(self) -> bool:
        return self.status is SchemaStatus.COLUMN_PRESENT


def build_probe_record(now: Optional[float] = None) -> Dict[str, Any]:
    millis = int((time.time() if now is None else now) * 1000)
    return {
        "email": f"test-schema-{millis}@example.com",
        "vorname": "Test",
        "nachname": "Schema",
        "agb_akzeptiert": True,
    }


# Message fallbacks, only used when the backend sent no error code.
_RELATION_MISSING = re.compile(r'^(error:\s*)?relation "[^"]+" does not exist')
_COLUMN_MISSING = re.compile(r"""column "?[^"]+"? .*does not exist|could not find the '[^']+' column""")


def _names_column(error: RestError, column: Optional[str]) -> bool:
    message = (error.message or "").lower()
    if not column or not message:
        return True
    return re.search(rf"\b{re.escape(column.lower())}\b", message) is not None


def _status_for(error: RestError, column: Optional[str]) -> SchemaStatus:
    if error.code in (UNDEFINED_TABLE, PGRST_TABLE_NOT_FOUND):
        return SchemaStatus.TABLE_MISSING
    if error.code in (UNDEFINED_COLUMN, PGRST_COLUMN_NOT_FOUND):
        # A miss on some other column of the probe row is not an answer about ours.
        if _names_column(error, column):
            return SchemaStatus.COLUMN_MISSING
        return SchemaStatus.OTHER_ERROR
    if error.code is not None:
        return SchemaStatus.OTHER_ERROR

    message = (error.message or "").strip().lower()
    if _RELATION_MISSING.search(message):
        return SchemaStatus.TABLE_MISSING
    if _COLUMN_MISSING.search(message) and _names_column(error, column):
        return SchemaStatus.COLUMN_MISSING
    return SchemaStatus.OTHER_ERROR


def classify(response: RestResponse, table: str, column: Optional[str] = None) -> SchemaProbeResult:
    """Error codes decide first; message text is only consulted without a code."""
    error = response.error
    if error is None:
        return SchemaProbeResult(SchemaStatus.COLUMN_PRESENT, table, column, data=response.data)
    return SchemaProbeResult(_status_for(error, column), table, column, error=error)


def probe_column(
    client: SupabaseRest,
    *,
    table: str = "customers",
    column: str = "agb_akzeptiert",
    record: Optional[Dict[str, Any]] = None,
) -> SchemaProbeResult:
    row = dict(record) if record is not None else build_probe_record()
    row.setdefault(column, True)
    logger.info("[SCHEMA] inserting probe row into %s (column=%s)", table, column)
    result = classify(client.insert(table, row), table, column)
    logger.info("[SCHEMA] %s.%s -> %s", table, column, result.status.value)
    return result


def ping(client: SupabaseRest, *, table: str = "pricing_margins") -> SchemaProbeResult:
    """Read one row; a missing table still proves the API is reachable."""
    result = classify(client.select(table, limit=1), table)
    logger.info("[SCHEMA] ping %s -> %s", table, result.status.value)
    return result


def describe(result: SchemaProbeResult) -> str:
    target = f"{result.table}.{result.column}" if result.column else result.table
    if result.status is SchemaStatus.COLUMN_PRESENT and not result.column:
        return f"Connection OK: read from {result.table}. Data: {result.data}"
    if result.status is SchemaStatus.COLUMN_PRESENT:
        return f"Schema check passed: {target} accepted the probe row. Data: {result.data}"
    err = result.error
    detail = f"[{err.code}] {err.message}" if err else ""
    if result.status is SchemaStatus.TABLE_MISSING:
        return f"Connection OK, but table {result.table} does not exist {detail}".rstrip()
    if result.status is SchemaStatus.COLUMN_MISSING:
        return f"Schema check failed: column {target} is missing {detail}".rstrip()
    return f"Schema check failed: {detail or 'unknown error'}"
