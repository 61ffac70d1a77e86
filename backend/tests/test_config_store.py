"""Tests for the YAML config store."""

import os
import stat
import sys
from datetime import datetime, timedelta, timezone

import pytest
import yaml

from noc2go.core.security import verify_password
from noc2go.models.config import ConfigStore, random_password
from noc2go.models.user import RoleEnum, UserEntry


@pytest.fixture
def store(tmp_path):
    return ConfigStore.load_or_init(tmp_path / "conf" / "noc2go.yaml", port=9443, password="first-run-pass")


class TestFirstRun:
    def test_creates_admin(self, store):
        assert store.created is True
        assert store.initial_password == "first-run-pass"
        admin = store.lookup_user("admin")
        assert admin.role is RoleEnum.ADMIN
        assert verify_password("first-run-pass", admin.pw_hash)
        assert store.config.server.port == 9443

    def test_file_layout(self, store):
        doc = yaml.safe_load(store.path.read_text(encoding="utf-8"))
        assert list(doc) == ["server", "auth", "tools", "dns", "ping"]
        assert doc["auth"]["users"][0]["name"] == "admin"
        assert doc["auth"]["users"][0]["role"] == "admin"
        assert "expires" not in doc["auth"]["users"][0]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_private(self, store):
        assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600

    def test_generated_password(self, tmp_path):
        store = ConfigStore.load_or_init(tmp_path / "noc2go.yaml")
        assert len(store.initial_password) == 24
        assert verify_password(store.initial_password, store.lookup_user("admin").pw_hash)

    def test_random_password_alphabet(self):
        assert random_password(40).isalnum()


class TestReload:
    def test_existing_file_is_loaded_not_rewritten(self, store):
        store.add_dns_server("9.9.9.9:53")
        reloaded = ConfigStore.load_or_init(store.path, password="ignored")
        assert reloaded.created is False
        assert reloaded.initial_password is None
        assert reloaded.dns_servers == ["9.9.9.9:53"]
        assert not verify_password("ignored", reloaded.lookup_user("admin").pw_hash)

    def test_empty_file_gets_defaults(self, tmp_path):
        path = tmp_path / "noc2go.yaml"
        path.write_text("", encoding="utf-8")
        store = ConfigStore.load_or_init(path)
        assert store.config.server.port == 8443
        assert store.config.auth.users == []


class TestDnsServers:
    def test_add_and_remove(self, store):
        assert store.add_dns_server("1.1.1.1:53") == ["1.1.1.1:53"]
        assert store.add_dns_server("9.9.9.9:53") == ["1.1.1.1:53", "9.9.9.9:53"]
        assert store.remove_dns_server("1.1.1.1:53") == ["9.9.9.9:53"]
        assert ConfigStore.load_or_init(store.path).dns_servers == ["9.9.9.9:53"]

    def test_duplicate(self, store):
        store.add_dns_server("1.1.1.1:53")
        with pytest.raises(ValueError, match="duplicate server"):
            store.add_dns_server("1.1.1.1:53")

    def test_remove_unknown(self, store):
        with pytest.raises(ValueError, match="server not found"):
            store.remove_dns_server("1.1.1.1:53")

    def test_merge_skips_known(self, store):
        store.add_dns_server("1.1.1.1:53")
        added = store.merge_dns_servers(["1.1.1.1:53", "9.9.9.9:53", "9.9.9.9:53"])
        assert added == ["9.9.9.9:53"]
        assert store.dns_servers == ["1.1.1.1:53", "9.9.9.9:53"]

    def test_returned_list_is_a_copy(self, store):
        store.dns_servers.append("8.8.8.8:53")
        assert store.dns_servers == []


class TestPingTargets:
    def test_add_and_remove(self, store):
        assert store.add_ping_target(" gateway.lan ") == ["gateway.lan"]
        assert store.remove_ping_target("gateway.lan") == []

    def test_duplicate(self, store):
        store.add_ping_target("192.0.2.1")
        with pytest.raises(ValueError, match="duplicate target"):
            store.add_ping_target("192.0.2.1")
        assert store.add_ping_target("192.0.2.1", allow_existing=True) == ["192.0.2.1"]

    def test_empty(self, store):
        with pytest.raises(ValueError, match="empty target"):
            store.add_ping_target("   ")

    def test_remove_unknown(self, store):
        with pytest.raises(ValueError, match="target not found"):
            store.remove_ping_target("192.0.2.1")


class TestUsers:
    def test_set_password(self, store):
        store.lookup_user("admin").pw_oneuse = True
        store.set_password("admin", "a-new-password")
        admin = ConfigStore.load_or_init(store.path).lookup_user("admin")
        assert verify_password("a-new-password", admin.pw_hash)
        assert admin.pw_oneuse is False

    def test_set_password_unknown_user(self, store):
        with pytest.raises(ValueError):
            store.set_password("nobody", "whatever-123")

    def test_expiry(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        user = UserEntry(name="guest", pw_hash="x", expires=(now + timedelta(days=1)).isoformat())
        assert not user.is_expired(now)
        assert user.is_expired(now + timedelta(days=2))
        assert UserEntry(name="guest", pw_hash="x", expires="2025-12-31T00:00:00Z").is_expired(now)
        assert UserEntry(name="guest", pw_hash="x", expires="not a date").is_expired(now)
        assert not UserEntry(name="guest", pw_hash="x").is_expired(now)


def _failing_save():
    raise OSError("disk full")


class TestFailedSave:
    @pytest.fixture
    def broken(self, store, monkeypatch):
        monkeypatch.setattr(store, "save", _failing_save)
        return store

    def test_dns_server_add_rolled_back(self, broken):
        with pytest.raises(OSError):
            broken.add_dns_server("1.1.1.1:53")
        assert broken.dns_servers == []

    def test_dns_server_remove_rolled_back(self, store, monkeypatch):
        store.add_dns_server("1.1.1.1:53")
        monkeypatch.setattr(store, "save", _failing_save)
        with pytest.raises(OSError):
            store.remove_dns_server("1.1.1.1:53")
        assert store.dns_servers == ["1.1.1.1:53"]

    def test_merge_rolled_back(self, broken):
        with pytest.raises(OSError):
            broken.merge_dns_servers(["9.9.9.9:53"])
        assert broken.dns_servers == []

    def test_ping_target_add_rolled_back(self, broken):
        with pytest.raises(OSError):
            broken.add_ping_target("192.0.2.1")
        assert broken.ping_targets == []
        # The failed attempt left nothing behind to trip the duplicate check
        broken.save = lambda: None
        assert broken.add_ping_target("192.0.2.1") == ["192.0.2.1"]

    def test_password_kept(self, broken):
        admin = broken.lookup_user("admin")
        old_hash = admin.pw_hash
        admin.pw_oneuse = True
        with pytest.raises(OSError):
            broken.set_password("admin", "a-new-password")
        assert admin.pw_hash == old_hash
        assert admin.pw_oneuse is True
