"""
Cache Monitor - admin API over the strategy cache manager.

Exposes analytics, strategy registration and invalidation triggers, and
owns the manager's maintenance loop for the lifetime of the app.
"""
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query

from app.cache import CacheStrategyManager, InvalidStrategyConfig, get_cache_manager
from app.schemas import (
    CacheAnalyticsOut,
    InvalidationOut,
    MaintenanceOut,
    StrategyIn,
    StrategyOut,
)
from config.settings import settings

APP_VERSION = "v0.1.0"
APP_NAME = "Cache Monitor"

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("cache.admin")


@asynccontextmanager
async def lifespan(app: FastAPI):
    manager = get_cache_manager()
    manager.start()
    try:
        yield
    finally:
        await manager.stop()


app = FastAPI(
    title=APP_NAME,
    description="Strategy cache analytics and invalidation",
    version=APP_VERSION,
    lifespan=lifespan,
)


def get_manager() -> CacheStrategyManager:
    return get_cache_manager()


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/cache/analytics", response_model=CacheAnalyticsOut)
async def cache_analytics(manager: CacheStrategyManager = Depends(get_manager)):
    """Get cache analytics."""
    return manager.get_cache_analytics()


@app.get("/cache/strategies", response_model=List[StrategyOut])
async def list_strategies(manager: CacheStrategyManager = Depends(get_manager)):
    """List strategies in resolution order."""
    return [StrategyOut.model_validate(s) for s in manager.strategies]


@app.put("/cache/strategies", response_model=StrategyOut)
async def put_strategy(body: StrategyIn, manager: CacheStrategyManager = Depends(get_manager)):
    """Register or overwrite a strategy."""
    try:
        strategy = body.to_strategy()
        manager.set_strategy(strategy.pattern, strategy)
    except InvalidStrategyConfig as e:
        raise HTTPException(status_code=422, detail=str(e))
    logger.info(f"Strategy registered via admin API: {strategy.pattern}")
    return StrategyOut.model_validate(strategy)


@app.delete("/cache/strategies")
async def delete_strategy(
    pattern: str = Query(..., min_length=1, description="Strategy pattern to remove"),
    manager: CacheStrategyManager = Depends(get_manager),
):
    """Remove a strategy."""
    if not manager.remove_strategy(pattern):
        raise HTTPException(status_code=404, detail=f"No strategy for pattern {pattern!r}")
    return {"removed": pattern}


@app.post("/cache/invalidate", response_model=InvalidationOut)
async def invalidate_pattern(
    pattern: str = Query(..., min_length=1, description="Key or wildcard pattern"),
    manager: CacheStrategyManager = Depends(get_manager),
):
    """Invalidate every entry matching a pattern."""
    return InvalidationOut(pattern=pattern, invalidated=manager.invalidate_by_pattern(pattern))


@app.post("/cache/invalidate-dependencies", response_model=InvalidationOut)
async def invalidate_dependencies(
    key: str = Query(..., min_length=1, description="Key whose data changed"),
    manager: CacheStrategyManager = Depends(get_manager),
):
    """Cascade-invalidate strategies that depend on a changed key."""
    return InvalidationOut(key=key, invalidated=manager.invalidate_dependencies(key))


@app.post("/cache/maintenance", response_model=MaintenanceOut)
async def run_maintenance(manager: CacheStrategyManager = Depends(get_manager)):
    """Run one maintenance pass now."""
    return manager.perform_maintenance()


@app.post("/cache/background-refresh")
async def toggle_background_refresh(
    enabled: bool = Query(..., description="Enable refresh-on-hit"),
    manager: CacheStrategyManager = Depends(get_manager),
):
    """Enable/disable background refresh."""
    manager.set_background_refresh(enabled)
    return {"background_refresh_enabled": manager.background_refresh_enabled}
