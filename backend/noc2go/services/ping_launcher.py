"""Target resolution and ``ping`` process management."""

import asyncio
import contextlib
import ipaddress
import logging
import os
import socket
import subprocess
import sys
from dataclasses import dataclass
from typing import AsyncIterator
from urllib.parse import urlparse

from noc2go.core.errors import InvalidInput, LaunchError, ResolutionFailure
from noc2go.schemas.network import PingRequest
from noc2go.services.ping_dialects import PingDialect

logger = logging.getLogger(__name__)

_FAMILY_VERSIONS = {"ipv4": 4, "ipv6": 6}


@dataclass(frozen=True)
class ResolvedTarget:
    address: str
    version: int


def sanitize_target(raw: str) -> str:
    """Extract the host from a possibly-URL input, keeping IPv6 literals intact."""
    raw = (raw or "").strip()
    if raw.startswith("[") and "]" in raw:
        return raw[1:raw.index("]")]
    if "://" in raw:
        host = urlparse(raw).hostname
        if host:
            return host
    with contextlib.suppress(ValueError):
        return str(ipaddress.ip_address(raw))
    if raw.count(":") == 1:
        raw = raw.split(":")[0]
    if "/" in raw:
        raw = raw.split("/")[0]
    return raw


async def resolve_target(target: str, family: str = "auto") -> ResolvedTarget:
    """Resolve ``target`` to one address of the requested family.

    ``auto`` prefers IPv4 and falls back to whatever the name resolves to.
    """
    host = sanitize_target(target)
    if not host or host.startswith("-"):
        raise InvalidInput(f"invalid target {target!r}")
    wanted = _FAMILY_VERSIONS.get(family)

    try:
        literal = ipaddress.ip_address(host)
    except ValueError:
        literal = None
    if literal is not None:
        if wanted and literal.version != wanted:
            raise InvalidInput(f"{host} is not an {family} address")
        return ResolvedTarget(str(literal), literal.version)

    af = {4: socket.AF_INET, 6: socket.AF_INET6}.get(wanted, socket.AF_UNSPEC)
    try:
        infos = await asyncio.to_thread(socket.getaddrinfo, host, None, af, socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise ResolutionFailure(f"cannot resolve {host}: {exc}", status_code=400) from exc

    addresses = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        with contextlib.suppress(ValueError):
            addresses.append(ipaddress.ip_address(sockaddr[0].split("%")[0]))
    preferred = wanted or 4
    for address in addresses:
        if address.version == preferred:
            return ResolvedTarget(str(address), address.version)
    if wanted or not addresses:
        raise ResolutionFailure(f"cannot resolve {host} to an {family} address", status_code=400)
    return ResolvedTarget(str(addresses[0]), addresses[0].version)


def validate_options(options: PingRequest, dialect: PingDialect, privileged: bool = False) -> None:
    floor = dialect.min_interval_unprivileged
    if options.interval is not None and floor is not None and not privileged and options.interval < floor:
        raise InvalidInput(f"interval below {floor}s requires privileged mode")


def _format(value) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def build_command(
    dialect: PingDialect,
    target: ResolvedTarget,
    options: PingRequest,
    binary: str = "ping",
) -> list[str]:
    args = [binary, *dialect.extra_args, *dialect.family_flags.get(target.version, ())]
    values = {
        "count": options.count,
        "size": options.size,
        "interval": options.interval,
        "ttl": options.ttl,
    }
    for option, value in values.items():
        if value is None:
            continue
        flag = dialect.flags.get(option)
        if flag is None:
            logger.info("Ping option ignored | dialect=%s option=%s", dialect.name, option)
            continue
        args.extend((*flag, _format(value)))
    if options.df:
        flag = dialect.flags.get("df")
        if flag is None:
            logger.info("Ping option ignored | dialect=%s option=df", dialect.name)
        else:
            args.extend(flag)
    args.append(target.address)
    return args


class PingProcess:
    """A running ping process and its line-oriented output.

    The output can be read once; a new run needs a new process.
    """

    def __init__(self, process: asyncio.subprocess.Process, encoding: str = "utf-8"):
        self._process = process
        self.encoding = encoding
        self._consumed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    async def lines(self) -> AsyncIterator[str]:
        if self._consumed:
            raise RuntimeError("ping output has already been consumed")
        self._consumed = True
        stdout = self._process.stdout
        while True:
            raw = await stdout.readline()
            if not raw:
                break
            yield raw.decode(self.encoding, errors="replace").rstrip("\r\n")

    async def wait(self) -> int:
        return await self._process.wait()

    def kill(self) -> None:
        if self.running:
            # Already exited between the check and the signal
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()


async def start_process(argv: list[str], encoding: str = "utf-8") -> PingProcess:
    kwargs: dict = {}
    if sys.platform == "win32" and hasattr(subprocess, "CREATE_NO_WINDOW"):
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
    else:
        # Keep the tool's output in the wording the patterns expect
        kwargs["env"] = {**os.environ, "LC_ALL": "C"}
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            **kwargs,
        )
    except OSError as exc:
        raise LaunchError(f"failed to start {argv[0]}: {exc}") from exc
    if process.stdout is None:
        process.kill()
        raise LaunchError(f"no output stream from {argv[0]}")
    logger.info("Ping started | pid=%s argv=%s", process.pid, " ".join(argv))
    return PingProcess(process, encoding)
