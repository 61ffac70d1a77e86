import logging

from fastapi import APIRouter, Depends

from noc2go.api.deps import get_config_store, get_current_user, require_admin
from noc2go.config import settings
from noc2go.core.errors import InvalidInput
from noc2go.models.config import ConfigStore
from noc2go.models.user import UserEntry
from noc2go.schemas.app_settings import AppSettingsOut, DnsServerIn, DnsServersOut, PingTargetsUpdateOut
from noc2go.schemas.network import PingTargetIn
from noc2go.services.dns_lookup import normalize_server

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=AppSettingsOut)
def get_app_settings(
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(get_current_user),
):
    return AppSettingsOut(
        dns_servers=store.dns_servers,
        ping_targets=store.ping_targets,
        privileged=settings.PRIVILEGED or store.privileged,
    )


@router.post("/dns/add", response_model=DnsServersOut, response_model_exclude_none=True)
def add_dns_server(
    payload: DnsServerIn,
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(require_admin),
):
    try:
        server = normalize_server(payload.server)
        servers = store.add_dns_server(server)
    except (InvalidInput, ValueError) as exc:
        return DnsServersOut(success=False, error=str(exc))
    except OSError:
        logger.exception("Saving DNS server failed")
        return DnsServersOut(success=False, error="failed to save")
    logger.info("DNS server added | user=%s server=%s", current_user.name, server)
    return DnsServersOut(success=True, servers=servers)


@router.post("/dns/remove", response_model=DnsServersOut, response_model_exclude_none=True)
def remove_dns_server(
    payload: DnsServerIn,
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(require_admin),
):
    try:
        server = normalize_server(payload.server)
        servers = store.remove_dns_server(server)
    except (InvalidInput, ValueError) as exc:
        return DnsServersOut(success=False, error=str(exc))
    except OSError:
        logger.exception("Saving DNS server list failed")
        return DnsServersOut(success=False, error="failed to save")
    logger.info("DNS server removed | user=%s server=%s", current_user.name, server)
    return DnsServersOut(success=True, servers=servers)


@router.post("/ping/add", response_model=PingTargetsUpdateOut, response_model_exclude_none=True)
def add_ping_target(
    payload: PingTargetIn,
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(require_admin),
):
    try:
        targets = store.add_ping_target(payload.target)
    except ValueError as exc:
        return PingTargetsUpdateOut(success=False, error=str(exc))
    except OSError:
        logger.exception("Saving ping target failed")
        return PingTargetsUpdateOut(success=False, error="failed to save")
    logger.info("Ping target added | user=%s target=%s", current_user.name, payload.target)
    return PingTargetsUpdateOut(success=True, targets=targets)


@router.post("/ping/remove", response_model=PingTargetsUpdateOut, response_model_exclude_none=True)
def remove_ping_target(
    payload: PingTargetIn,
    store: ConfigStore = Depends(get_config_store),
    current_user: UserEntry = Depends(require_admin),
):
    try:
        targets = store.remove_ping_target(payload.target)
    except ValueError as exc:
        return PingTargetsUpdateOut(success=False, error=str(exc))
    except OSError:
        logger.exception("Saving ping target list failed")
        return PingTargetsUpdateOut(success=False, error="failed to save")
    logger.info("Ping target removed | user=%s target=%s", current_user.name, payload.target)
    return PingTargetsUpdateOut(success=True, targets=targets)
