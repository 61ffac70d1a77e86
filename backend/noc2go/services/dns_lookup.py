"""DNS lookups with a short-lived in-memory cache.

A lookup is keyed by (query name, record type, server). Successful answers
and definitive errors are both cached for ``ttl`` seconds, so a burst of
identical requests from the dashboard costs one query. Identical lookups
that arrive while a query is still in flight wait for that query instead of
issuing their own.
"""

import asyncio
import ipaddress
import logging
import os
import re
import socket
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Callable

import dns.exception
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype
import dns.resolver
import dns.reversename

from noc2go.core.errors import (
    DiagnosticsError,
    InvalidInput,
    ResolutionFailure,
    TransientQueryError,
    UnsupportedType,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 53
DEFAULT_TIMEOUT = 5.0
DEFAULT_TTL = 60.0
FALLBACK_SERVER = "8.8.8.8:53"

SUPPORTED_TYPES: dict[str, dns.rdatatype.RdataType] = {
    "A": dns.rdatatype.A,
    "AAAA": dns.rdatatype.AAAA,
    "MX": dns.rdatatype.MX,
    "NS": dns.rdatatype.NS,
    "PTR": dns.rdatatype.PTR,
    "TXT": dns.rdatatype.TXT,
    "SRV": dns.rdatatype.SRV,
}

_RECORD_SHAPES: dict[dns.rdatatype.RdataType, Callable[[object], dict]] = {
    dns.rdatatype.A: lambda rd: {"address": rd.address},
    dns.rdatatype.AAAA: lambda rd: {"address": rd.address},
    dns.rdatatype.MX: lambda rd: {"host": rd.exchange.to_text(), "priority": rd.preference},
    dns.rdatatype.NS: lambda rd: {"host": rd.target.to_text()},
    dns.rdatatype.PTR: lambda rd: {"host": rd.target.to_text()},
    dns.rdatatype.TXT: lambda rd: {"text": b"".join(rd.strings).decode("utf-8", errors="replace")},
    dns.rdatatype.SRV: lambda rd: {
        "target": rd.target.to_text(),
        "port": rd.port,
        "priority": rd.priority,
        "weight": rd.weight,
    },
}

_OCTET_LABEL = re.compile(r"[0-9]{1,3}")
_NIBBLE_LABEL = re.compile(r"[0-9a-f]")


# ---------------------------------------------------------------------------
# Server strings
# ---------------------------------------------------------------------------

def split_server(raw: str) -> tuple[str, int]:
    """Split ``host``, ``host:port``, ``[v6]:port`` or a bare IPv6 literal."""
    raw = (raw or "").strip()
    port_text = ""
    if raw.startswith("["):
        host, _, rest = raw[1:].partition("]")
        if rest.startswith(":"):
            port_text = rest[1:]
    elif raw.count(":") == 1:
        host, _, port_text = raw.partition(":")
    else:
        host = raw
    if not host:
        raise InvalidInput("server address is empty")
    if not port_text:
        return host, DEFAULT_PORT
    if not port_text.isdigit() or not 0 < int(port_text) < 65536:
        raise InvalidInput(f"invalid server port {port_text!r}")
    return host, int(port_text)


def join_server(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def normalize_server(raw: str) -> str:
    """Return ``host:port``, appending the standard DNS port when none is given."""
    return join_server(*split_server(raw))


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def server_address(host: str) -> str:
    """First address of a name server given by host name."""
    infos = socket.getaddrinfo(host, DEFAULT_PORT, socket.AF_UNSPEC, socket.SOCK_DGRAM)
    if not infos:
        raise OSError(f"no address for {host}")
    return infos[0][4][0]


def system_nameservers() -> list[str]:
    """Name servers configured for this host, or ``DNS_SERVERS`` from the environment."""
    try:
        servers = [str(s) for s in dns.resolver.Resolver().nameservers]
    except dns.resolver.NoResolverConfiguration:
        servers = []
    if not servers:
        env = os.getenv("DNS_SERVERS", "")
        servers = [s.strip() for s in env.split(",") if s.strip()]
    return servers


# ---------------------------------------------------------------------------
# Query names
# ---------------------------------------------------------------------------

def is_reverse_domain(name: str) -> bool:
    lowered = name.lower().rstrip(".")
    if lowered.endswith(".in-addr.arpa"):
        labels = lowered[: -len(".in-addr.arpa")].split(".")
        return 1 <= len(labels) <= 4 and all(
            _OCTET_LABEL.fullmatch(label) and int(label) <= 255 for label in labels
        )
    if lowered.endswith(".ip6.arpa"):
        labels = lowered[: -len(".ip6.arpa")].split(".")
        return 1 <= len(labels) <= 32 and all(_NIBBLE_LABEL.fullmatch(label) for label in labels)
    return False


def query_name(name: str, rtype: str) -> str:
    """Validate ``name`` for ``rtype``; PTR lookups of IP literals are rewritten."""
    name = (name or "").strip()
    if not name:
        raise InvalidInput("name is required")

    if rtype == "PTR":
        try:
            ip = ipaddress.ip_address(name)
        except ValueError:
            ip = None
        if ip is not None:
            return dns.reversename.from_address(str(ip)).to_text(omit_final_dot=True)
        if is_reverse_domain(name):
            return name.lower().rstrip(".")
        raise InvalidInput(f"{name!r} is neither an IP address nor a reverse-lookup domain")

    try:
        dns.name.from_text(name)
    except dns.exception.DNSException as exc:
        raise InvalidInput(f"invalid name {name!r}: {exc}") from exc
    return name.rstrip(".")


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LookupKey:
    name: str
    rtype: str
    server: str

    @classmethod
    def of(cls, name: str, rtype: str, server: str) -> "LookupKey":
        return cls(name.lower(), rtype.lower(), server.lower())

    def __str__(self) -> str:
        return f"{self.name}|{self.rtype}|{self.server}"


@dataclass(frozen=True)
class CacheEntry:
    timestamp: float
    records: tuple[dict, ...] | None = None
    error: DiagnosticsError | None = None


class DnsCache:
    """Thread-safe TTL map from :class:`LookupKey` to :class:`CacheEntry`.

    The lock is only ever held for a dictionary read or write. Entries are
    replaced on refresh, never modified. ``clock`` is injectable so tests can
    move time forward without sleeping.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[LookupKey, CacheEntry] = {}
        self._inflight: dict[LookupKey, Future] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: LookupKey) -> bool:
        with self._lock:
            return key in self._entries

    def _fresh(self, entry: CacheEntry | None) -> bool:
        return entry is not None and self._clock() - entry.timestamp < self.ttl

    def _prune(self) -> None:
        # Caller holds the lock
        stale = [key for key, entry in self._entries.items() if not self._fresh(entry)]
        for key in stale:
            del self._entries[key]

    def get(self, key: LookupKey) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
        return entry if self._fresh(entry) else None

    def claim(self, key: LookupKey) -> tuple[CacheEntry | None, Future | None, bool]:
        """Return ``(entry, None, False)`` on a fresh hit.

        On a miss return ``(None, future, owner)``. The first caller becomes
        the owner and must call :meth:`fulfil` or :meth:`abandon`; later
        callers wait on the same future.
        """
        with self._lock:
            entry = self._entries.get(key)
            if self._fresh(entry):
                return entry, None, False
            future = self._inflight.get(key)
            if future is not None:
                return None, future, False
            future = Future()
            self._inflight[key] = future
            return None, future, True

    def fulfil(
        self,
        key: LookupKey,
        records: tuple[dict, ...] | None = None,
        error: DiagnosticsError | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(timestamp=self._clock(), records=records, error=error)
        with self._lock:
            self._prune()
            self._entries[key] = entry
            future = self._inflight.pop(key, None)
        if future is not None:
            future.set_result(entry)
        return entry

    def abandon(self, key: LookupKey, exc: BaseException) -> None:
        """Release waiters of an owned key without caching anything."""
        with self._lock:
            future = self._inflight.pop(key, None)
        if future is not None:
            future.set_exception(exc)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

@dataclass
class LookupResult:
    server: str
    records: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"server": self.server, "records": self.records}


QueryFn = Callable[[dns.message.Message, str, int, float], dns.message.Message]


def udp_query(query: dns.message.Message, host: str, port: int, timeout: float) -> dns.message.Message:
    response, _used_tcp = dns.query.udp_with_fallback(query, host, timeout=timeout, port=port)
    return response


class DnsResolver:
    def __init__(
        self,
        cache: DnsCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        fallback_server: str = FALLBACK_SERVER,
        nameservers: Callable[[], list[str]] = system_nameservers,
        query: QueryFn = udp_query,
    ):
        self.cache = cache if cache is not None else DnsCache()
        self.timeout = timeout
        self.fallback_server = normalize_server(fallback_server)
        self._nameservers = nameservers
        self._query = query

    def select_server(self, override: str | None = None) -> str:
        """``host:port`` to report and cache under; an override is kept as given."""
        if override and override.strip():
            host, port = split_server(override)
            if not _is_ip(host):
                try:
                    dns.name.from_text(host)
                except dns.exception.DNSException as exc:
                    raise InvalidInput(f"invalid server {host!r}: {exc}") from exc
            return join_server(host, port)
        for candidate in self._nameservers():
            if candidate and candidate != "unavailable":
                return normalize_server(candidate)
        return self.fallback_server

    def resolve(self, name: str, rtype: str, server: str | None = None) -> LookupResult:
        rtype = (rtype or "").strip().upper()
        rdtype = SUPPORTED_TYPES.get(rtype)
        if rdtype is None:
            raise UnsupportedType(f"unsupported record type {rtype!r}")
        qname = query_name(name, rtype)
        server_used = self.select_server(server)
        key = LookupKey.of(qname, rtype, server_used)

        entry, future, owner = self.cache.claim(key)
        if entry is not None:
            logger.debug("DNS cache hit | key=%s", key)
        elif not owner:
            logger.debug("DNS lookup in flight, waiting | key=%s", key)
            try:
                entry = future.result(timeout=self.timeout * 2 + 1)
            except FutureTimeout as exc:
                raise TransientQueryError(f"timed out waiting for {qname} via {server_used}") from exc
        else:
            try:
                records, error = self._exchange(qname, rdtype, server_used)
            except BaseException as exc:
                self.cache.abandon(key, exc)
                raise
            entry = self.cache.fulfil(key, records=records, error=error)

        if entry.error is not None:
            raise type(entry.error)(entry.error.message)
        return LookupResult(server=server_used, records=[dict(r) for r in entry.records or ()])

    async def aresolve(self, name: str, rtype: str, server: str | None = None) -> LookupResult:
        return await asyncio.to_thread(self.resolve, name, rtype, server)

    def _exchange(
        self, qname: str, rdtype: dns.rdatatype.RdataType, server: str
    ) -> tuple[tuple[dict, ...] | None, DiagnosticsError | None]:
        host, port = split_server(server)
        query = dns.message.make_query(qname, rdtype)
        started = time.perf_counter()
        try:
            address = host if _is_ip(host) else server_address(host)
        except OSError as exc:
            logger.warning("DNS server unresolvable | server=%s error=%s", server, exc)
            return None, TransientQueryError(f"cannot resolve server {host}: {exc}")
        try:
            response = self._query(query, address, port, self.timeout)
        except dns.exception.Timeout:
            logger.warning("DNS query timed out | name=%s server=%s", qname, server)
            return None, TransientQueryError(f"timeout querying {server}")
        except (OSError, dns.exception.DNSException) as exc:
            logger.warning("DNS query failed | name=%s server=%s error=%s", qname, server, exc)
            return None, TransientQueryError(f"query to {server} failed: {exc}")
        elapsed = (time.perf_counter() - started) * 1000

        rcode = response.rcode()
        logger.info(
            "DNS query | name=%s type=%s server=%s rcode=%s elapsed=%.2fms",
            qname, dns.rdatatype.to_text(rdtype), server, dns.rcode.to_text(rcode), elapsed,
        )
        if rcode == dns.rcode.NXDOMAIN:
            return None, ResolutionFailure("NXDOMAIN")
        if rcode != dns.rcode.NOERROR:
            return None, TransientQueryError(dns.rcode.to_text(rcode))

        shape = _RECORD_SHAPES[rdtype]
        records = tuple(
            shape(rdata)
            for rrset in response.answer
            if rrset.rdtype == rdtype
            for rdata in rrset
        )
        return records, None
