"""Per-platform ``ping`` flavours.

Each :class:`PingDialect` row carries everything that differs between ping
implementations: how abstract options map to flags, what encoding the tool
writes, and the regexes used to classify its output. Supporting another
platform means adding a row here.
"""

import re
import sys
from dataclasses import dataclass, field

# Named groups used by the patterns below:
#   seq, ttl, rtt          per-reply lines
#   sent, recv, loss       packet statistics line
#   min, avg, max          round-trip statistics line


def _compile(*patterns: str, flags: int = 0) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, flags) for p in patterns)


@dataclass(frozen=True)
class PingDialect:
    name: str
    # option name -> flag; options missing here are not supported by the tool
    flags: dict[str, tuple[str, ...]]
    family_flags: dict[int, tuple[str, ...]]
    extra_args: tuple[str, ...] = ()
    encoding: str = "utf-8"

    reply: tuple[re.Pattern, ...] = ()
    unreachable: tuple[re.Pattern, ...] = ()
    timeout: tuple[re.Pattern, ...] = ()
    failure: tuple[re.Pattern, ...] = ()

    packets: tuple[re.Pattern, ...] = ()
    rtt: tuple[re.Pattern, ...] = ()

    min_interval_unprivileged: float | None = None
    notes: dict[str, str] = field(default_factory=dict)


_UNIX_REPLY = _compile(
    # 64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=12.3 ms
    # 16 bytes from ::1, icmp_seq=0 hlim=64 time=0.061 ms
    r"icmp_seq=(?P<seq>\d+)\s+(?:ttl|hlim)=(?P<ttl>\d+)\s+time[=<](?P<rtt>[\d.]+)\s*ms",
)

LINUX = PingDialect(
    name="linux",
    flags={
        "count": ("-c",),
        "size": ("-s",),
        "interval": ("-i",),
        "ttl": ("-t",),
        "df": ("-M", "do"),
    },
    family_flags={4: ("-4",), 6: ("-6",)},
    # -n: no reverse lookups, -O: print "no answer yet" for missed replies
    extra_args=("-n", "-O"),
    reply=_UNIX_REPLY,
    unreachable=_compile(
        r"icmp_seq=(?P<seq>\d+)\s+Destination\s+(?:\w+\s+)?Unreachable",
        r"icmp_seq=(?P<seq>\d+)\s+Time to live exceeded",
        r"icmp_seq=(?P<seq>\d+)\s+Packet filtered",
        flags=re.IGNORECASE,
    ),
    timeout=_compile(r"no answer yet for icmp_seq=(?P<seq>\d+)"),
    failure=_compile(r"^ping:\s+(?P<detail>.+)$", r"^connect:\s+(?P<detail>.+)$"),
    packets=_compile(
        # 3 packets transmitted, 2 received, +1 errors, 33.3333% packet loss, time 2003ms
        r"(?P<sent>\d+)\s+packets transmitted,\s+(?P<recv>\d+)\s+(?:packets\s+)?received,"
        r".*?(?P<loss>[\d.]+)%\s+packet loss",
    ),
    rtt=_compile(
        # rtt min/avg/max/mdev = 11.123/12.456/14.789/1.234 ms
        r"min/avg/max/\w+\s*=\s*(?P<min>[\d.]+)/(?P<avg>[\d.]+)/(?P<max>[\d.]+)",
    ),
    min_interval_unprivileged=0.2,
)

BSD = PingDialect(
    name="bsd",
    flags={
        "count": ("-c",),
        "size": ("-s",),
        "interval": ("-i",),
        "ttl": ("-m",),
        "df": ("-D",),
    },
    family_flags={4: ("-4",), 6: ("-6",)},
    extra_args=("-n",),
    reply=_UNIX_REPLY,
    unreachable=_compile(
        # 92 bytes from 10.0.0.1: Destination Host Unreachable
        r"Destination\s+(?:\w+\s+)?Unreachable",
        r"Time to live exceeded",
        flags=re.IGNORECASE,
    ),
    timeout=_compile(r"Request timeout for icmp_seq\s+(?P<seq>\d+)"),
    failure=_compile(r"^ping6?:\s+(?P<detail>.+)$"),
    packets=_compile(
        # 3 packets transmitted, 2 packets received, 33.3% packet loss
        r"(?P<sent>\d+)\s+packets transmitted,\s+(?P<recv>\d+)\s+(?:packets\s+)?received,"
        r".*?(?P<loss>[\d.]+)%\s+packet loss",
    ),
    rtt=_compile(
        # round-trip min/avg/max/stddev = 1.1/2.2/3.3/0.4 ms
        r"min/avg/max/\w+\s*=\s*(?P<min>[\d.]+)/(?P<avg>[\d.]+)/(?P<max>[\d.]+)",
    ),
    min_interval_unprivileged=0.1,
)

# Windows prints no sequence numbers and localises its output. The English
# wording is matched first, then a language-agnostic fallback
# (EN "Reply from", DE "Antwort von", HU "Válasz a következőtől").
WINDOWS = PingDialect(
    name="windows",
    flags={
        "count": ("-n",),
        "size": ("-l",),
        "ttl": ("-i",),
        "df": ("-f",),
    },
    family_flags={4: ("-4",), 6: ("-6",)},
    encoding="cp850",
    reply=_compile(
        r"Reply from \S+: bytes=\d+ time[=<](?P<rtt>[\d.]+)\s*ms TTL=(?P<ttl>\d+)",
        r"Reply from \S+: time[=<](?P<rtt>[\d.]+)\s*ms",
        r"\d+\.\d+\.\d+\.\d+.*?[=<](?P<rtt>\d+)\s*ms.*?TTL=(?P<ttl>\d+)",
        flags=re.IGNORECASE,
    ),
    unreachable=_compile(
        r"Destination (?:host|net|network|port|protocol) unreachable",
        r"TTL expired in transit",
        r"Zielhost nicht erreichbar",
        r"célállomás nem érhető el",
        flags=re.IGNORECASE,
    ),
    timeout=_compile(
        r"Request timed out",
        r"Zeitüberschreitung der Anforderung",
        r"időtúllépés",
        flags=re.IGNORECASE,
    ),
    failure=_compile(
        r"^(?P<detail>General failure.*)$",
        r"^PING: (?P<detail>transmit failed.*)$",
        r"^(?P<detail>Ping request could not find host.*)$",
        flags=re.IGNORECASE,
    ),
    packets=_compile(
        # Packets: Sent = 4, Received = 3, Lost = 1 (25% loss),
        r"=\s*(?P<sent>\d+),\s*\w+\s*=\s*(?P<recv>\d+),\s*\w+\s*=\s*\d+\s*\((?P<loss>[\d.]+)%",
    ),
    rtt=_compile(
        # Minimum = 1ms, Maximum = 3ms, Average = 2ms
        r"=\s*(?P<min>\d+)\s*ms.*?=\s*(?P<max>\d+)\s*ms.*?=\s*(?P<avg>\d+)\s*ms",
    ),
    notes={"interval": "ping.exe has no interval option"},
)

DIALECTS: dict[str, PingDialect] = {d.name: d for d in (LINUX, BSD, WINDOWS)}

_PLATFORM_PREFIXES: tuple[tuple[str, PingDialect], ...] = (
    ("linux", LINUX),
    ("darwin", BSD),
    ("freebsd", BSD),
    ("openbsd", BSD),
    ("netbsd", BSD),
    ("win32", WINDOWS),
    ("cygwin", WINDOWS),
)


def dialect_for_platform(platform: str | None = None) -> PingDialect:
    platform = platform or sys.platform
    for prefix, dialect in _PLATFORM_PREFIXES:
        if platform.startswith(prefix):
            return dialect
    return LINUX


def get_dialect(name: str | None = None) -> PingDialect:
    """Dialect by name, or the one matching the running platform."""
    if not name:
        return dialect_for_platform()
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise ValueError(f"unknown ping dialect {name!r}; expected one of {sorted(DIALECTS)}") from None
