import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from noc2go.api.deps import get_config_store, get_current_user, get_dns_resolver
from noc2go.config import settings
from noc2go.core.errors import DiagnosticsError, LaunchError
from noc2go.models.config import ConfigStore
from noc2go.models.user import UserEntry
from noc2go.schemas.network import (
    AddressFamily,
    DnsLookupResponse,
    ErrorResponse,
    PingRequest,
    PingTargetIn,
    PingTargetsOut,
)
from noc2go.services.dns_lookup import DnsResolver
from noc2go.services.ping_dialects import PingDialect, get_dialect
from noc2go.services.ping_launcher import resolve_target, validate_options
from noc2go.services.ping_session import (
    PingSession,
    PingStreamResponse,
    ensure_streaming_supported,
    sse_stream,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(exc: DiagnosticsError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _privileged(store: ConfigStore) -> bool:
    return settings.PRIVILEGED or store.privileged


def _dialect() -> PingDialect:
    try:
        return get_dialect(settings.PING_DIALECT)
    except ValueError as exc:
        logger.error("Bad PING_DIALECT setting: %s", exc)
        raise LaunchError(str(exc)) from exc


@router.get(
    "/dns",
    response_model=DnsLookupResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def dns_lookup(
    name: str = Query(..., min_length=1, max_length=253),
    type: str = Query(..., min_length=1, max_length=10),
    server: str | None = Query(default=None, max_length=64),
    resolver: DnsResolver = Depends(get_dns_resolver),
    current_user: UserEntry = Depends(get_current_user),
):
    logger.info("DNS lookup | user=%s name=%s type=%s server=%s", current_user.name, name, type, server)
    try:
        result = await resolver.aresolve(name, type, server)
    except DiagnosticsError as exc:
        logger.info("DNS lookup failed | name=%s type=%s error=%s", name, type, exc.message)
        return _error(exc)
    return result.to_dict()


@router.get("/ping", responses={400: {"model": ErrorResponse}, 406: {"model": ErrorResponse}})
async def ping(
    request: Request,
    target: str = Query(..., min_length=1, max_length=253),
    family: AddressFamily = Query(default="auto"),
    count: int | None = Query(default=None, ge=1, le=1000),
    size: int | None = Query(default=None, ge=0, le=65500),
    interval: float | None = Query(default=None, gt=0, le=60),
    ttl: int | None = Query(default=None, ge=1, le=255),
    df: bool = Query(default=False),
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(get_current_user),
):
    options = PingRequest(
        target=target, family=family, count=count, size=size, interval=interval, ttl=ttl, df=df,
    )
    logger.info("Ping | user=%s target=%s family=%s count=%s", current_user.name, target, family, count)

    try:
        ensure_streaming_supported(request)
        dialect = _dialect()
        validate_options(options, dialect, privileged=_privileged(store))
        resolved = await resolve_target(options.target, options.family)
        session = PingSession(resolved, options, dialect, binary=settings.PING_BINARY)
        await session.start()
    except DiagnosticsError as exc:
        logger.info("Ping rejected | target=%s error=%s", target, exc.message)
        return _error(exc)

    return PingStreamResponse(sse_stream(session, request.is_disconnected))


@router.get("/ping/targets", response_model=PingTargetsOut)
def list_ping_targets(
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(get_current_user),
):
    return PingTargetsOut(targets=store.ping_targets, privileged=_privileged(store))


@router.post("/ping/targets", response_model=PingTargetsOut)
def save_ping_target(
    payload: PingTargetIn,
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(get_current_user),
):
    """Remember a target from the ping page; saving a known target is a no-op."""
    try:
        targets = store.add_ping_target(payload.target, allow_existing=True)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except OSError:
        logger.exception("Saving ping target failed")
        raise HTTPException(status_code=500, detail="Failed to save")
    logger.info("Ping target saved | user=%s target=%s", current_user.name, payload.target)
    return PingTargetsOut(targets=targets, privileged=_privileged(store))
