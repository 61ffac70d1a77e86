from typing import Literal

from pydantic import BaseModel, Field

PingStatus = Literal["received", "timeout", "unreachable", "failure"]
AddressFamily = Literal["auto", "ipv4", "ipv6"]


class DnsLookupResponse(BaseModel):
    server: str
    records: list[dict]


class ErrorResponse(BaseModel):
    error: str


class PingRequest(BaseModel):
    target: str = Field(..., min_length=1, max_length=253)
    family: AddressFamily = "auto"
    count: int | None = Field(default=None, ge=1, le=1000)
    size: int | None = Field(default=None, ge=0, le=65500)
    interval: float | None = Field(default=None, gt=0, le=60)
    ttl: int | None = Field(default=None, ge=1, le=255)
    df: bool = False


class PingReplyEvent(BaseModel):
    seq: int
    ttl: int = 0
    time: float | None = None  # None: no round-trip measurement
    status: PingStatus
    timestamp: str
    ip: str
    detail: str | None = None


class PingSummaryEvent(BaseModel):
    sent: int = 0
    recv: int = 0
    loss: float = 0.0
    min: float = 0.0
    avg: float = 0.0
    max: float = 0.0


class PingTargetIn(BaseModel):
    target: str = Field(..., min_length=1, max_length=253)


class PingTargetsOut(BaseModel):
    success: bool = True
    targets: list[str]
    privileged: bool = False
