from fastapi import APIRouter

from noc2go.api.v1 import app_settings, auth, info, network

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(network.router, prefix="/network", tags=["Network"])
api_router.include_router(app_settings.router, prefix="/settings", tags=["Settings"])
api_router.include_router(info.router, prefix="/info", tags=["System Info"])
