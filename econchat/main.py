from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .exceptions import EconChatError, get_error_response
from .models import (
    AddSeriesRequest,
    ChatRequest,
    ChatResponse,
    ContextsResponse,
    HealthResponse,
    SeriesRequest,
)
from .providers.fred import FREDProvider
from .services.chat_orchestrator import ChatOrchestrator
from .services.context_cache import EconomicContextCache
from .services.context_service import EconomicContextService
from .services.http_pool import HTTPClientPool, close_http_pool
from .services.llm import create_llm_provider
from .services.redis_cache import RedisCacheService

logger = logging.getLogger("econchat")
logging.basicConfig(level=logging.INFO)

settings: Settings = get_settings()


async def _context_refresh_loop(service: EconomicContextService, interval_seconds: float) -> None:
    """Warm the tracked series, then refresh them every interval."""
    while True:
        try:
            await service.force_refresh()
        except Exception as e:
            logger.error(f"Failed to update FRED data cache: {e}")
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events."""
    # === STARTUP ===
    HTTPClientPool.get_client()

    store = RedisCacheService(settings)
    await store.connect()

    provider = FREDProvider(api_key=settings.fred_api_key, settings=settings)
    cache = EconomicContextCache(
        store=store,
        fetcher=provider,
        ttl_seconds=settings.context_cache_ttl,
        key_prefix=settings.context_cache_prefix,
    )
    context_service = EconomicContextService(cache, provider)

    app.state.store = store
    app.state.context_service = context_service
    app.state.orchestrator = ChatOrchestrator(create_llm_provider(settings), context_service, settings)

    if not settings.disable_background_jobs:
        app.state.refresh_task = asyncio.create_task(
            _context_refresh_loop(context_service, settings.context_refresh_interval_hours * 3600)
        )
    else:
        app.state.refresh_task = None

    logger.info("econchat backend ready")

    yield  # Application runs here

    # === SHUTDOWN ===
    refresh_task: asyncio.Task | None = getattr(app.state, "refresh_task", None)
    if refresh_task:
        refresh_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await refresh_task

    await store.disconnect()
    await close_http_pool()


app = FastAPI(title="econchat API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins if settings.allowed_origins else ["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EconChatError)
async def econchat_error_handler(request: Request, exc: EconChatError) -> JSONResponse:
    logger.error(f"{request.url.path} failed: {exc}")
    return JSONResponse(status_code=502, content=get_error_response(exc))


def get_context_service(request: Request) -> EconomicContextService:
    return request.app.state.context_service


def get_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


def get_store(request: Request) -> RedisCacheService:
    return request.app.state.store


@app.get("/api/health", response_model=HealthResponse)
async def health(store: RedisCacheService = Depends(get_store)) -> HealthResponse:
    services = {
        "openai": settings.llm_enabled,
        "fred": bool(settings.fred_api_key),
        "redis": store.connected,
    }

    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=settings.environment or "development",
        services=services,
        cache=await store.get_stats(),
    )


@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    return await orchestrator.process_chat(request.prompt, request.messages)


@app.get("/api/fred/series")
async def get_all_series(service: EconomicContextService = Depends(get_context_service)):
    return {"availableSeries": service.get_available_series_ids()}


@app.get("/api/fred/series/{series_id}")
async def get_series_data(
    series_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: EconomicContextService = Depends(get_context_service),
):
    series = await service.provider.fetch_series(series_id, limit=limit)
    if series is None:
        return {"error": "Series not found"}
    return series


@app.get("/api/fred/mcp/contexts", response_model=ContextsResponse)
async def get_all_contexts(service: EconomicContextService = Depends(get_context_service)):
    return ContextsResponse(contexts=await service.get_all_contexts())


@app.get("/api/fred/mcp/contexts/{series_id}")
async def get_context_for_series(
    series_id: str,
    service: EconomicContextService = Depends(get_context_service),
):
    context = await service.get_context_for_series(series_id)
    if context is None:
        return {"error": "Context not found for series"}
    return {"context": context}


@app.post("/api/fred/mcp/contexts", response_model=ContextsResponse)
async def get_contexts_for_series(
    request: SeriesRequest,
    service: EconomicContextService = Depends(get_context_service),
):
    return ContextsResponse(contexts=await service.get_contexts_for_series(request.seriesIds))


@app.post("/api/fred/series/add")
async def add_series(
    request: AddSeriesRequest,
    service: EconomicContextService = Depends(get_context_service),
):
    if await service.add_series(request.seriesId):
        return {"message": f"Series {request.seriesId} added successfully"}
    return {"error": f"Failed to add series {request.seriesId}"}


@app.post("/api/fred/cache/update")
async def update_cache(service: EconomicContextService = Depends(get_context_service)):
    refreshed = await service.force_refresh()
    return {"message": "Cache updated successfully", "refreshed": refreshed}
