"""
Main FastAPI application for the Video Enhancer API.
Serves health, render jobs, assets, alerts and metrics.
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from enhancer.api.routes import alerts, assets, health, render_jobs
from enhancer.core.config import settings
from enhancer.core.logging import configure_logging
from enhancer.db.init_db import init_db
from enhancer.utils.metrics import router as metrics_router


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(settings.storage_base_path, exist_ok=True)
    if settings.database_url.startswith("sqlite"):
        init_db()
    yield


app = FastAPI(
    title="Video Enhancer API",
    description="Render job pipeline for video enhancement",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(render_jobs.router)
app.include_router(assets.router)
app.include_router(alerts.router)
app.include_router(metrics_router)
