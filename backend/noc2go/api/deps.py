from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from noc2go.config import settings
from noc2go.core.rbac import check_role
from noc2go.core.security import decode_session_token
from noc2go.models.config import ConfigStore
from noc2go.models.user import RoleEnum, UserEntry
from noc2go.services.dns_lookup import DnsResolver

security_scheme = HTTPBearer(auto_error=False)


def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


def get_dns_resolver(request: Request) -> DnsResolver:
    return request.app.state.dns_resolver


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
    store: ConfigStore = Depends(get_config_store),
) -> UserEntry:
    token = credentials.credentials if credentials else request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing credentials",
        )
    payload = decode_session_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        )
    user = store.lookup_user(payload.get("sub", ""))
    if not user or user.is_expired():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or expired",
        )
    return user


def require_admin(current_user: UserEntry = Depends(get_current_user)) -> UserEntry:
    return check_role(current_user, RoleEnum.ADMIN)
