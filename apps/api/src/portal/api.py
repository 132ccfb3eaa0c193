from fastapi import APIRouter

from portal.modules.auth import router as auth_router
from portal.modules.notifications import router as notifications_router
from portal.modules.provisioning import router as provisioning_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(provisioning_router, prefix="/users", tags=["Users"])

api_router.include_router(
    notifications_router,
    prefix="/notifications",
    tags=["Notifications"],
)
