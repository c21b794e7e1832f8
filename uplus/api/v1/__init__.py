"""API routes."""

from fastapi import APIRouter

from uplus.api.v1 import account, auth, health, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(account.router, prefix="/protected", tags=["account"])
router.include_router(users.router, prefix="/protected/admin/users", tags=["users"])
