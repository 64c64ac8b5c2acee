"""FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import analytics, drift, editorial, profiles, regression
from .config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Voice Fidelity API")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(editorial.router)
app.include_router(profiles.router)
app.include_router(analytics.router)
app.include_router(drift.router)
app.include_router(regression.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
