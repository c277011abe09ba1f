"""FastAPI application entry point and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.progress_router import router as progress_router
from backend.api.words_router import router as words_router
from backend.config import settings
from backend.container import ServiceContainer
from backend.database import engine, get_session
from backend.models import Base

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and start services on startup; stop them on shutdown."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    container = ServiceContainer.from_settings(settings)
    await container.start()
    app.state.container = container
    yield
    await container.shutdown()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Batched vocabulary learning with CEFR level progression",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(words_router)
app.include_router(progress_router)


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_session)) -> dict[str, str]:
    """Check database connectivity and return status."""
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
