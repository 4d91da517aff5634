"""
Admin Routes

Operator endpoints for the cache layer.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from gamehub_cache.infrastructure.cache.cache_facade import CacheFacade, get_cache
from gamehub_cache.infrastructure.cache.cache_query import CacheAsideQuery, get_cache_query

router = APIRouter(prefix="/admin/cache", tags=["Admin"])


class InvalidateRequest(BaseModel):
    pattern: str = Field(..., min_length=1, description="Glob pattern, e.g. game:list:*")


@router.get("/stats")
async def get_cache_statistics(query: CacheAsideQuery = Depends(get_cache_query)):
    """
    Get cache-aside statistics.

    Returns hit/miss/error counts and the backend currently serving.
    """
    return query.stats()


@router.post("/reconnect")
async def reconnect_cache(cache: CacheFacade = Depends(get_cache)):
    """
    Restart the connection cycle.

    The only way out of FAILED; returns the state after the first attempt.
    """
    state = await cache.supervisor.connect()
    return {"state": state.value, "backend": cache.backend_name}


@router.post("/invalidate")
async def invalidate_cache(
    request: InvalidateRequest,
    query: CacheAsideQuery = Depends(get_cache_query),
):
    """Delete every cached key matching a pattern."""
    deleted = await query.clear_by_pattern(request.pattern)
    return {"pattern": request.pattern, "deleted": deleted}
