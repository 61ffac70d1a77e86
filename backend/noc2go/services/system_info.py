import logging
import os
import platform
import socket
import subprocess
import time

import psutil

from noc2go.services.dns_lookup import system_nameservers

logger = logging.getLogger(__name__)

_PROXY_VARS = ("http_proxy", "https_proxy", "HTTP_PROXY", "HTTPS_PROXY")
_LINK_FAMILIES = {getattr(psutil, "AF_LINK", None), getattr(socket, "AF_PACKET", None)} - {None}


def format_uptime(seconds: float) -> str:
    """``4d3h12m`` style duration."""
    total = int(round(max(seconds, 0)))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    return f"{days}d{hours}h{rest // 60}m"


def system_uptime() -> str:
    try:
        return format_uptime(time.time() - psutil.boot_time())
    except (OSError, RuntimeError) as exc:
        logger.debug("Uptime unavailable: %s", exc)
        return "unknown"


def collect_interfaces() -> list[dict]:
    interfaces = []
    for name, addrs in sorted(psutil.net_if_addrs().items()):
        mac = ""
        addresses = []
        for addr in addrs:
            if addr.family in _LINK_FAMILIES:
                mac = addr.address
            elif addr.family in (socket.AF_INET, socket.AF_INET6):
                addresses.append(f"{addr.address}/{addr.netmask}" if addr.netmask else addr.address)
        interfaces.append({"name": name, "mac": mac, "addrs": addresses})
    return interfaces


def _run(cmd: list[str]) -> str | None:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5, check=True)
    except (OSError, subprocess.SubprocessError):
        return None
    return result.stdout


def collect_routes() -> list[str]:
    out = _run(["ip", "route", "show", "table", "main"])
    if out is not None:
        return [line for line in out.strip().splitlines() if line.strip()]
    out = _run(["netstat", "-rn"])
    if out is not None:
        return [
            line.strip()
            for line in out.splitlines()
            if line.strip() and not line.strip().startswith(("Kernel", "Destination", "Routing"))
        ]
    return ["unavailable"]


def collect_proxies() -> list[str]:
    proxies = [f"{key}={os.environ[key]}" for key in _PROXY_VARS if os.environ.get(key)]
    return proxies or ["none"]


def collect_system_info() -> dict:
    return {
        "hostname": socket.gethostname(),
        "os": f"{platform.system().lower()} {platform.machine()}",
        "kernel": platform.release() or platform.system(),
        "uptime": system_uptime(),
        "interfaces": collect_interfaces(),
        "routes": collect_routes(),
        "dns_servers": system_nameservers() or ["unavailable"],
        "proxies": collect_proxies(),
    }
