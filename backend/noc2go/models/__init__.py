from noc2go.models.config import (
    AuthSection,
    ConfigStore,
    DnsSection,
    NocConfig,
    PingSection,
    ServerSection,
    ToolsSection,
)
from noc2go.models.user import RoleEnum, UserEntry

__all__ = [
    "AuthSection",
    "ConfigStore",
    "DnsSection",
    "NocConfig",
    "PingSection",
    "RoleEnum",
    "ServerSection",
    "ToolsSection",
    "UserEntry",
]
