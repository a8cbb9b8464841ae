from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import api_router
from .config import get_settings
from .db import dispose_db, init_db
from .telegram.bot import init_bot, shutdown_bot


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    await init_bot()
    try:
        yield
    finally:
        await shutdown_bot()
        await dispose_db()


settings = get_settings()
_docs_enabled = settings.environment.lower() != "production"
app = FastAPI(
    title=settings.app_name,
    description="Personal expense ledger with a Telegram conversation front-end.",
    lifespan=lifespan,
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
)
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
