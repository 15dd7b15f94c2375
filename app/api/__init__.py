# API module exports
from app.api import health, webhooks
from app.api.base import api_router

__all__ = ["health", "webhooks", "api_router"]
