import asyncio
import logging

from fastapi import APIRouter, Depends

from noc2go.api.deps import get_current_user
from noc2go.models.user import UserEntry
from noc2go.schemas.info import SystemInfo
from noc2go.services.system_info import collect_system_info

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=SystemInfo)
async def system_info(current_user: UserEntry = Depends(get_current_user)):
    logger.info("System info | user=%s", current_user.name)
    return await asyncio.to_thread(collect_system_info)
