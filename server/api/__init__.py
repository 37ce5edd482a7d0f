"""FastAPI router aggregation."""

from fastapi import APIRouter

from api.admin import router as admin_router
from api.auth import router as auth_router
from api.catalog import router as catalog_router
from api.conversations import router as conversations_router
from api.health import router as health_router
from api.messages import router as messages_router
from api.messages import usage_router
from api.payments import router as payments_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(catalog_router, prefix="/models", tags=["models"])
api_router.include_router(conversations_router, prefix="/conversations", tags=["conversations"])
api_router.include_router(messages_router, prefix="/messages", tags=["messages"])
api_router.include_router(usage_router, prefix="/usage")
api_router.include_router(payments_router, prefix="/payments", tags=["payments"])
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])
