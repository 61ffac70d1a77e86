"""Shared fixtures for the NOC2GO test suite.

Provides:
- a fake clock and a scripted DNS query function for the resolver
- a temporary YAML config store
- a TestClient wired to both, plus a logged-in bearer header
- a scripted stand-in for the ping process
"""

from __future__ import annotations

import asyncio
from typing import Iterable

import dns.message
import dns.rcode
import dns.rdatatype
import dns.rrset
import pytest
from fastapi.testclient import TestClient

from noc2go.main import app
from noc2go.models.config import ConfigStore
from noc2go.models.user import RoleEnum, UserEntry
from noc2go.core.security import hash_password
from noc2go.services.dns_lookup import DnsCache, DnsResolver

ADMIN_PASSWORD = "admin-pass-123"
USER_PASSWORD = "user-pass-456"


# =============================================================================
# DNS fakes
# =============================================================================

class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDns:
    """Stands in for the UDP query; answers from a table and counts calls.

    ``answers`` maps (query name without trailing dot, type) to rdata strings.
    """

    def __init__(self, answers: dict | None = None, rcode: int = dns.rcode.NOERROR, exc: Exception | None = None):
        self.answers = answers or {}
        self.rcode = rcode
        self.exc = exc
        self.calls: list[tuple[str, str, str, int]] = []

    def __call__(self, query, host, port, timeout):
        question = query.question[0]
        qname = question.name.to_text(omit_final_dot=True)
        rtype = dns.rdatatype.to_text(question.rdtype)
        self.calls.append((qname, rtype, host, port))
        if self.exc is not None:
            raise self.exc
        response = dns.message.make_response(query)
        rdatas = self.answers.get((qname.lower(), rtype), [])
        if rdatas:
            response.answer.append(dns.rrset.from_text(question.name, 300, "IN", rtype, *rdatas))
        response.set_rcode(self.rcode)
        return response


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_dns() -> FakeDns:
    return FakeDns(
        {
            ("example.com", "A"): ["93.184.216.34"],
            ("example.com", "AAAA"): ["2606:2800:220:1:248:1893:25c8:1946"],
            ("example.com", "MX"): ["10 mail.example.com."],
            ("example.com", "NS"): ["a.iana-servers.net.", "b.iana-servers.net."],
            ("example.com", "TXT"): ['"v=spf1 " "-all"'],
            ("_sip._tcp.example.com", "SRV"): ["10 60 5060 sip.example.com."],
            ("1.2.0.192.in-addr.arpa", "PTR"): ["host.example.net."],
        }
    )


@pytest.fixture
def resolver(fake_dns, clock) -> DnsResolver:
    return DnsResolver(
        cache=DnsCache(ttl=60.0, clock=clock),
        nameservers=lambda: ["192.0.2.53"],
        query=fake_dns,
    )


# =============================================================================
# Config and API client
# =============================================================================

@pytest.fixture
def config_store(tmp_path) -> ConfigStore:
    store = ConfigStore.load_or_init(tmp_path / "noc2go.yaml", port=8443, password=ADMIN_PASSWORD)
    store.config.auth.users.append(
        UserEntry(name="operator", role=RoleEnum.USER, pw_hash=hash_password(USER_PASSWORD))
    )
    store.save()
    return store


@pytest.fixture
def client(config_store, resolver):
    app.state.config_store = config_store
    app.state.dns_resolver = resolver
    with TestClient(app) as test_client:
        yield test_client
    app.state.config_store = None
    app.state.dns_resolver = None


def _login(client: TestClient, user: str, password: str) -> dict[str, str]:
    resp = client.post("/api/v1/auth/login", json={"user": user, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def admin_headers(client) -> dict[str, str]:
    return _login(client, "admin", ADMIN_PASSWORD)


@pytest.fixture
def user_headers(client) -> dict[str, str]:
    return _login(client, "operator", USER_PASSWORD)


# =============================================================================
# Ping process fake
# =============================================================================

class FakePingProcess:
    """Replays canned output lines like a finished ping process would."""

    def __init__(self, lines: Iterable[str], returncode: int = 0, pause: float = 0.0):
        self._lines = list(lines)
        self._final_returncode = returncode
        self._pause = pause
        self.returncode: int | None = None
        self.killed = False
        self.pid = 4242
        self.encoding = "utf-8"

    @property
    def running(self) -> bool:
        return self.returncode is None

    async def lines(self):
        for line in self._lines:
            if self.killed:
                return
            if self._pause:
                await asyncio.sleep(self._pause)
            yield line

    async def wait(self) -> int:
        if self.returncode is None:
            self.returncode = self._final_returncode
        return self.returncode

    def kill(self) -> None:
        if self.running:
            self.killed = True
            self.returncode = -9


class FakeSpawner:
    def __init__(self, process: FakePingProcess):
        self.process = process
        self.argv: list[str] | None = None

    async def __call__(self, argv, encoding):
        self.argv = argv
        return self.process
