from pydantic import BaseModel, Field


class AppSettingsOut(BaseModel):
    dns_servers: list[str] = Field(default_factory=list)
    ping_targets: list[str] = Field(default_factory=list)
    privileged: bool = False


class DnsServerIn(BaseModel):
    server: str = Field(..., min_length=1, max_length=64)


class DnsServersOut(BaseModel):
    success: bool
    error: str | None = None
    servers: list[str] | None = None


class PingTargetsUpdateOut(BaseModel):
    success: bool
    error: str | None = None
    targets: list[str] | None = None
