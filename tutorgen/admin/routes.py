"""
Admin Config Routes
Budget caps and circuit breaker, guarded by the shared admin token
"""

import logging

from fastapi import APIRouter, Depends

from tutorgen.api.deps import get_admin_config_service
from tutorgen.api.middleware.identity import require_admin
from tutorgen.schemas.admin import AdminConfigResponse, AdminConfigUpdate
from tutorgen.services.admin_config import AdminConfigService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/config", response_model=AdminConfigResponse)
async def get_config(service: AdminConfigService = Depends(get_admin_config_service)):
    """Current effective config (row values, or environment defaults)"""
    service.invalidate()
    snapshot = await service.load()
    return AdminConfigResponse(**snapshot.to_dict())


@router.put("/config", response_model=AdminConfigResponse)
async def update_config(
    update: AdminConfigUpdate,
    service: AdminConfigService = Depends(get_admin_config_service),
):
    snapshot = await service.update(**update.model_dump(exclude_unset=True))
    return AdminConfigResponse(**snapshot.to_dict())


@router.post("/config/invalidate")
async def invalidate_config(service: AdminConfigService = Depends(get_admin_config_service)):
    """Drop this process's cached snapshot so the next read hits the database"""
    service.invalidate()
    logger.info("Admin config cache invalidated")
    return {"ok": True}
