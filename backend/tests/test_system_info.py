"""Tests for host information collection."""

import pytest

from noc2go.services import system_info
from noc2go.services.system_info import collect_proxies, collect_routes, collect_system_info, format_uptime


class TestFormatUptime:
    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "0d0h0m"),
            (59, "0d0h0m"),
            (61, "0d0h1m"),
            (3 * 86400 + 4 * 3600 + 5 * 60, "3d4h5m"),
            (-10, "0d0h0m"),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_uptime(seconds) == expected


class TestCollectors:
    def test_proxies_none(self, monkeypatch):
        for key in ("http_proxy", "https_proxy", "HTTP_PROXY", "HTTPS_PROXY"):
            monkeypatch.delenv(key, raising=False)
        assert collect_proxies() == ["none"]

    def test_proxies_set(self, monkeypatch):
        for key in ("http_proxy", "HTTP_PROXY", "HTTPS_PROXY"):
            monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("https_proxy", "http://proxy.lan:3128")
        assert collect_proxies() == ["https_proxy=http://proxy.lan:3128"]

    def test_routes_from_ip(self, monkeypatch):
        outputs = {"ip": "default via 192.0.2.1 dev eth0\n192.0.2.0/24 dev eth0\n"}
        monkeypatch.setattr(system_info, "_run", lambda cmd: outputs.get(cmd[0]))
        assert collect_routes() == ["default via 192.0.2.1 dev eth0", "192.0.2.0/24 dev eth0"]

    def test_routes_from_netstat(self, monkeypatch):
        outputs = {
            "netstat": (
                "Kernel IP routing table\n"
                "Destination     Gateway         Genmask         Flags   MSS Window  irtt Iface\n"
                "0.0.0.0         192.0.2.1       0.0.0.0         UG        0 0          0 eth0\n"
            )
        }
        monkeypatch.setattr(system_info, "_run", lambda cmd: outputs.get(cmd[0]))
        assert collect_routes() == ["0.0.0.0         192.0.2.1       0.0.0.0         UG        0 0          0 eth0"]

    def test_routes_unavailable(self, monkeypatch):
        monkeypatch.setattr(system_info, "_run", lambda cmd: None)
        assert collect_routes() == ["unavailable"]

    def test_full_snapshot_shape(self, monkeypatch):
        monkeypatch.setattr(system_info, "_run", lambda cmd: None)
        data = collect_system_info()
        assert set(data) == {"hostname", "os", "kernel", "uptime", "interfaces", "routes", "dns_servers", "proxies"}
        assert data["dns_servers"]
        for iface in data["interfaces"]:
            assert set(iface) == {"name", "mac", "addrs"}
