from fastapi import APIRouter
from app.api import health, webhooks
from app.features.subscriptions import router as subscriptions_router
from app.features.subscriptions import analytics_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(health.router)
api_router.include_router(subscriptions_router)
api_router.include_router(analytics_router)
api_router.include_router(webhooks.router)
