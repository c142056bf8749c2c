# evu_diag/dns_probe.py
from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence


logger = logging.getLogger(__name__)


_FAMILIES = {
    "A": socket.AF_INET,
    "AAAA": socket.AF_INET6,
}

# errno -> symbolic getaddrinfo code; only names this platform defines.
_GAI_CODES = {
    getattr(socket, name): name
    for name in (
        "EAI_ADDRFAMILY",
        "EAI_AGAIN",
        "EAI_BADFLAGS",
        "EAI_FAIL",
        "EAI_FAMILY",
        "EAI_MEMORY",
        "EAI_NODATA",
        "EAI_NONAME",
        "EAI_SERVICE",
        "EAI_SOCKTYPE",
        "EAI_SYSTEM",
    )
    if hasattr(socket, name)
}


@dataclass
class DnsResult:
    hostname: str
    record_type: str
    addresses: List[str] = field(default_factory=list)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.addresses) and self.error_code is None


Resolver = Callable[[str, str], Awaitable[List[str]]]


def candidate_hostnames(
    project_ref: str,
    *,
    services: Sequence[str] = ("db", "api", "auth"),
    project_domain: str = "supabase.co",
    regions: Sequence[str] = (),
    pooler_domain: str = "pooler.supabase.com",
) -> List[str]:
    """Project service hosts first, then the regional pooler hosts."""
    hosts = [f"{service}.{project_ref}.{project_domain}" for service in services]
    hosts.extend(f"aws-0-{region}.{pooler_domain}" for region in regions)
    return hosts


def error_code(exc: BaseException) -> str:
    errno = getattr(exc, "errno", None)
    if isinstance(exc, socket.gaierror) and errno in _GAI_CODES:
        return _GAI_CODES[errno]
    if errno is not None:
        return str(errno)
    return exc.__class__.__name__


async def resolve_host(hostname: str, record_type: str = "A") -> List[str]:
    """Resolve through the system resolver; ``A`` maps to IPv4, ``AAAA`` to IPv6."""
    family = _FAMILIES.get(record_type.upper())
    if family is None:
        raise ValueError(f"Unsupported record type {record_type!r}; expected one of {sorted(_FAMILIES)}")
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, family=family, type=socket.SOCK_STREAM)
    addresses: List[str] = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)
    return addresses


async def probe_hostnames(
    hostnames: Iterable[str],
    *,
    record_types: Sequence[str] = ("A",),
    resolver: Optional[Resolver] = None,
) -> List[DnsResult]:
    """Resolve every hostname for every record type, in order.

    One failing lookup never stops the others; there are no retries. Record
    types are checked before the first lookup.
    """
    unknown = [t for t in record_types if t.upper() not in _FAMILIES]
    if unknown:
        raise ValueError(f"Unsupported record types {unknown}; expected one of {sorted(_FAMILIES)}")
    resolve = resolver or resolve_host
    results: List[DnsResult] = []
    for hostname in hostnames:
        for record_type in record_types:
            try:
                addresses = await resolve(hostname, record_type)
            except (OSError, UnicodeError) as exc:
                result = DnsResult(
                    hostname=hostname,
                    record_type=record_type,
                    error_code=error_code(exc),
                    error_message=str(exc),
                )
                logger.info("[DNS] %s %s failed: %s", record_type, hostname, result.error_code)
            else:
                if addresses:
                    result = DnsResult(hostname=hostname, record_type=record_type, addresses=list(addresses))
                    logger.info("[DNS] %s %s -> %s", record_type, hostname, ", ".join(addresses))
                else:
                    result = DnsResult(
                        hostname=hostname,
                        record_type=record_type,
                        error_code="NODATA",
                        error_message="No address",
                    )
                    logger.info("[DNS] %s %s returned no addresses", record_type, hostname)
            results.append(result)
    return results


def diagnose(result: DnsResult) -> str:
    if result.ok:
        return (
            "Hostname resolves. If the connection still fails, a firewall is likely "
            "blocking the database port (5432/6543)."
        )
    return (
        "Hostname does not resolve. The network or ISP DNS may be blocking the "
        "database domain, or the local DNS configuration is broken."
    )


def format_result(result: DnsResult) -> str:
    if result.ok:
        return f"OK   {result.record_type:<4} {result.hostname} -> {', '.join(result.addresses)}"
    return f"FAIL {result.record_type:<4} {result.hostname}: {result.error_code} {result.error_message or ''}".rstrip()
