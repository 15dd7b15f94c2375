import logging

from app.config import LOG_LEVEL

# Log configuration (before other imports)
# ruff: noqa: E402
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    force=True
)

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from app.api.base import api_router  # noqa: E402

app = FastAPI(
    title="BMS Billing API",
    description="Subscription billing and lifecycle engine for the property-management back office",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Specify your frontend URL in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include all API routes
app.include_router(api_router)


@app.get("/")
def read_root():
    return {
        "message": "BMS Billing API",
        "docs": "/docs",
        "version": "1.0.0"
    }
