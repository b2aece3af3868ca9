"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campaign_keeper.config import settings
from campaign_keeper.db.database import engine, Base
from campaign_keeper.db.redis import close_redis


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Startup: create tables (dev only; use migrations in production)
    import campaign_keeper.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Shutdown: close connections
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title="Campaign Keeper API",
    description="Data service for campaigns, scenarios, NPCs and play sessions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routes ---
from campaign_keeper.api.routes import auth, rpc, tables  # noqa: E402

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(tables.router, prefix="/rest", tags=["tables"])
app.include_router(rpc.router, prefix="/rpc", tags=["rpc"])


@app.get("/health")
async def health_check():
    return {"status": "ok"}
