"""FastAPI application factory with lifespan for Bizzi."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from bizzi import __version__
from bizzi.pipeline.cache import ContextCache
from bizzi.pipeline.orchestrator import ConversationPipeline
from bizzi.providers.litellm_provider import LiteLLMProvider
from bizzi.settings import get_settings
from bizzi.storage.database import create_all_tables, dispose_engine, get_engine
from bizzi.storage.store import SqlStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: schema, cache, store, provider, pipeline. Shutdown: dispose engine."""
    settings = get_settings()
    engine = get_engine(settings)
    try:
        await create_all_tables(engine)
    except Exception as e:
        logger.warning(f"Database auto-migrate skipped: {e}")

    cache = ContextCache(settings.cache_ttl_s, settings.cache_max_entries)
    provider = LiteLLMProvider(
        api_key=settings.api_key,
        api_base=settings.api_base,
        default_model=settings.model,
    )
    app.state.cache = cache
    app.state.pipeline = ConversationPipeline.from_settings(settings, SqlStore(engine), provider, cache=cache)
    logger.info(f"{settings.app_name} pipeline ready (env={settings.env}, model={settings.model})")
    yield
    cache.clear()
    await dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )

    # ── mount routers ──
    from bizzi.api.routes import chat, health

    app.include_router(health.router)
    app.include_router(chat.router, prefix="/api/v1/chat", tags=["chat"])

    return app
