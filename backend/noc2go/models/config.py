"""The persisted YAML configuration and its store."""

import logging
import os
import secrets
import string
import tempfile
import threading
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from noc2go.core.security import hash_password
from noc2go.models.user import RoleEnum, UserEntry

logger = logging.getLogger(__name__)

_PASSWORD_ALPHABET = string.ascii_letters + string.digits


class ServerSection(BaseModel):
    port: int = 8443
    https_key: str = "noc2go.pem"


class AuthSection(BaseModel):
    users: list[UserEntry] = Field(default_factory=list)


class ToolsSection(BaseModel):
    allow_privileged: bool = False


class DnsSection(BaseModel):
    custom_servers: list[str] = Field(default_factory=list)


class PingSection(BaseModel):
    targets: list[str] = Field(default_factory=list)


class NocConfig(BaseModel):
    server: ServerSection = Field(default_factory=ServerSection)
    auth: AuthSection = Field(default_factory=AuthSection)
    tools: ToolsSection = Field(default_factory=ToolsSection)
    dns: DnsSection = Field(default_factory=DnsSection)
    ping: PingSection = Field(default_factory=PingSection)


def random_password(length: int = 24) -> str:
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def default_config(port: int, password: str) -> NocConfig:
    config = NocConfig()
    config.server.port = port
    config.auth.users = [UserEntry(name="admin", role=RoleEnum.ADMIN, pw_hash=hash_password(password))]
    return config


class ConfigStore:
    """Owns the YAML document on disk; every mutation is saved immediately."""

    def __init__(self, path: str | Path, config: NocConfig):
        self.path = Path(path)
        self.config = config
        self.created = False
        self.initial_password: str | None = None
        self._lock = threading.RLock()

    @classmethod
    def load_or_init(cls, path: str | Path, port: int = 8443, password: str | None = None) -> "ConfigStore":
        path = Path(path)
        if path.exists():
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            store = cls(path, NocConfig.model_validate(raw))
            logger.info("Loaded config from %s", path)
            return store

        password = password or random_password()
        store = cls(path, default_config(port, password))
        store.created = True
        store.initial_password = password
        store.save()
        logger.info("Created config at %s", path)
        return store

    def save(self) -> None:
        with self._lock:
            self.path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
            data = yaml.safe_dump(
                self.config.model_dump(mode="json", exclude_none=True),
                sort_keys=False,
            )
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".noc2go-", suffix=".yaml")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(data)
                os.chmod(tmp, 0o600)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise

    def _commit(self, obj: BaseModel, **changes) -> None:
        """Apply ``changes`` to ``obj`` and save; on a failed save the old values come back."""
        previous = {name: getattr(obj, name) for name in changes}
        for name, value in changes.items():
            setattr(obj, name, value)
        try:
            self.save()
        except OSError:
            for name, value in previous.items():
                setattr(obj, name, value)
            raise

    # ── users ──

    def lookup_user(self, name: str) -> UserEntry | None:
        with self._lock:
            for user in self.config.auth.users:
                if user.name == name:
                    return user
        return None

    def set_password(self, name: str, password: str) -> None:
        with self._lock:
            user = self.lookup_user(name)
            if user is None:
                raise ValueError("user not found")
            self._commit(user, pw_hash=hash_password(password), pw_oneuse=False)

    # ── saved DNS servers ──

    @property
    def dns_servers(self) -> list[str]:
        with self._lock:
            return list(self.config.dns.custom_servers)

    def add_dns_server(self, server: str) -> list[str]:
        with self._lock:
            if server in self.config.dns.custom_servers:
                raise ValueError("duplicate server")
            self._commit(self.config.dns, custom_servers=[*self.config.dns.custom_servers, server])
            return list(self.config.dns.custom_servers)

    def remove_dns_server(self, server: str) -> list[str]:
        with self._lock:
            if server not in self.config.dns.custom_servers:
                raise ValueError("server not found")
            self._commit(self.config.dns, custom_servers=[s for s in self.config.dns.custom_servers if s != server])
            return list(self.config.dns.custom_servers)

    def merge_dns_servers(self, servers: list[str]) -> list[str]:
        """Append normalised ``servers`` that are not saved yet; returns those added."""
        with self._lock:
            added = []
            for server in servers:
                if server in self.config.dns.custom_servers or server in added:
                    continue
                added.append(server)
            if added:
                self._commit(self.config.dns, custom_servers=[*self.config.dns.custom_servers, *added])
            return added

    # ── saved ping targets ──

    @property
    def ping_targets(self) -> list[str]:
        with self._lock:
            return list(self.config.ping.targets)

    def add_ping_target(self, target: str, allow_existing: bool = False) -> list[str]:
        target = target.strip()
        if not target:
            raise ValueError("empty target")
        with self._lock:
            if target in self.config.ping.targets:
                if allow_existing:
                    return list(self.config.ping.targets)
                raise ValueError("duplicate target")
            self._commit(self.config.ping, targets=[*self.config.ping.targets, target])
            return list(self.config.ping.targets)

    def remove_ping_target(self, target: str) -> list[str]:
        target = target.strip()
        with self._lock:
            if target not in self.config.ping.targets:
                raise ValueError("target not found")
            self._commit(self.config.ping, targets=[t for t in self.config.ping.targets if t != target])
            return list(self.config.ping.targets)

    @property
    def privileged(self) -> bool:
        return self.config.tools.allow_privileged
