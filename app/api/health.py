"""Health check endpoints"""

from fastapi import APIRouter

from app.config import SUPABASE_URL

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "bms-billing",
        "supabase_configured": bool(SUPABASE_URL),
    }
