from fastapi import APIRouter, Depends

from business_api.api.dependencies.security import require_staff_principal

from .endpoints import analytics, businesses, coupons, health, prizes, stamps, users

router = APIRouter()
router.include_router(health.router, tags=["Health"])

staff_router = APIRouter(prefix="/api/v1", dependencies=[Depends(require_staff_principal)])
staff_router.include_router(businesses.router)
staff_router.include_router(prizes.router)
staff_router.include_router(stamps.router)
staff_router.include_router(coupons.router)
staff_router.include_router(users.router)
staff_router.include_router(analytics.router)

router.include_router(staff_router)
