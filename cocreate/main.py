"""CoCreate FastAPI Application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cocreate.api import cocreate
from cocreate.config import get_settings
from cocreate.core.llm import build_claude_client
from cocreate.services.database import close_db, init_db

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    await init_db()
    app.state.claude = build_claude_client(settings)

    yield

    # Shutdown
    if app.state.claude is not None:
        await app.state.claude.close()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Writes LinkedIn posts in the user's own voice without making things up",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cocreate.router, prefix="/api/v1/cocreate", tags=["CoCreate"])


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "docs": "/docs",
        "health": "/health",
    }
