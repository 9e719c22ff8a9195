"""
Request Cache - admin FastAPI application
Exposes cache statistics and invalidation for operators
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query

from app.cache import (
    InvalidPatternError,
    get_cache_manager,
    init_cache_manager,
    shutdown_cache_manager,
)
from config.settings import settings

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "Request Cache"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_cache_manager(auto_cleanup=settings.cache_auto_cleanup)
    logger.info(f"{APP_NAME} {APP_VERSION} started")
    try:
        yield
    finally:
        await shutdown_cache_manager()


app = FastAPI(
    title=APP_NAME,
    description="Client-side request-result cache administration",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "cache_enabled": settings.cache_enabled}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "full": f"{APP_NAME} {APP_VERSION}",
    }


@app.get("/cache/stats")
def cache_stats():
    """Get cache statistics."""
    return get_cache_manager().describe()


@app.post("/cache/cleanup")
def cache_cleanup():
    """Purge expired entries now."""
    return {"purged": get_cache_manager().cleanup_expired()}


@app.post("/cache/invalidate")
def cache_invalidate_pattern(pattern: str = Query(..., min_length=1, description="Regular expression matched against keys")):
    """Invalidate every entry whose key matches the pattern."""
    try:
        count = get_cache_manager().invalidate_by_pattern(pattern)
    except InvalidPatternError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"pattern": pattern, "invalidated": count}


@app.delete("/cache/{key:path}")
def cache_invalidate_key(key: str):
    """Invalidate a single entry."""
    if not get_cache_manager().invalidate(key):
        raise HTTPException(status_code=404, detail=f"No cache entry for {key}")
    return {"key": key, "invalidated": 1}


@app.delete("/cache")
def cache_clear():
    """Clear the whole cache."""
    return {"cleared": get_cache_manager().clear()}
