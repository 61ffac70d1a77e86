import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from noc2go.api.deps import get_config_store, get_current_user
from noc2go.config import settings
from noc2go.core.security import create_session_token, verify_password
from noc2go.models.config import ConfigStore
from noc2go.models.user import UserEntry
from noc2go.schemas.user import PasswordChange, Token, UserLogin, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_HOURS * 3600,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
    )


@router.post("/login", response_model=Token)
def login(
    payload: UserLogin,
    response: Response,
    store: ConfigStore = Depends(get_config_store),
):
    user = store.lookup_user(payload.user)
    if not user or not verify_password(payload.password, user.pw_hash):
        logger.info("Login failed | user=%s", payload.user)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if user.is_expired():
        raise HTTPException(status_code=403, detail="Account expired")

    token = create_session_token(subject=user.name)
    _set_session_cookie(response, token)
    logger.info("Login | user=%s", user.name)
    return Token(access_token=token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


@router.get("/me", response_model=UserOut)
def me(current_user: UserEntry = Depends(get_current_user)):
    return current_user


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: PasswordChange,
    response: Response,
    current_user: UserEntry = Depends(get_current_user),
    store: ConfigStore = Depends(get_config_store),
):
    if not verify_password(payload.current_password, current_user.pw_hash):
        raise HTTPException(status_code=400, detail="Current password incorrect")
    if payload.new_password != payload.repeat_password:
        raise HTTPException(status_code=400, detail="New passwords do not match")
    try:
        store.set_password(current_user.name, payload.new_password)
    except OSError as exc:
        logger.exception("Saving config failed")
        raise HTTPException(status_code=500, detail=f"Failed to save: {exc}")
    logger.info("Password changed | user=%s", current_user.name)
    # Log out after a change, as the login form expects
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
