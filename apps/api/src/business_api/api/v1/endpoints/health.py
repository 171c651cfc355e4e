from __future__ import annotations

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Response, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from business_api.db.session import get_session
from business_api.observability.membership_sync import get_membership_sync_store


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "degraded", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")
    metrics: Dict[str, Any] | None = None


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/health", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    overall: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
        components["database"] = ComponentStatus(status="ready")
    except SQLAlchemyError as error:
        logger.exception("Readiness database ping failed")
        components["database"] = ComponentStatus(status="error", detail=f"Database unreachable ({error.__class__.__name__})")
        overall = "error"

    snapshot = get_membership_sync_store().snapshot()
    sync_status: Literal["ready", "degraded", "error"] = "ready"
    detail = None
    if snapshot.last_failure_at and (
        snapshot.last_success_at is None or snapshot.last_failure_at >= snapshot.last_success_at
    ):
        sync_status = "degraded"
        detail = snapshot.last_error or "Most recent membership counter sync failed"
        if overall == "ready":
            overall = "degraded"
    components["membership_sync"] = ComponentStatus(status=sync_status, detail=detail, metrics=snapshot.as_dict())

    if overall == "error":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessPayload(status=overall, components=components)
