"""
Health Check Routes

Cache health for load balancers and dashboards.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from gamehub_cache.infrastructure.cache.cache_facade import CacheFacade, get_cache

router = APIRouter(prefix="/health", tags=["Health"])


class CacheHealthResponse(BaseModel):
    """Cache health response model."""
    status: str
    connected: bool
    state: str
    backend: str
    retry_attempts: int
    last_heartbeat_at: str | None = None
    last_heartbeat_latency_ms: float | None = None
    last_error: str | None = None


@router.get("/cache", response_model=CacheHealthResponse)
async def cache_health(cache: CacheFacade = Depends(get_cache)):
    """
    Cache health check.

    Always 200: the fallback keeps serving while the remote is down, so a
    degraded cache is reported, not treated as an outage.
    """
    status = cache.status()
    return CacheHealthResponse(
        status="healthy" if status["connected"] else "degraded",
        connected=status["connected"],
        state=status["state"],
        backend=status["backend"],
        retry_attempts=status["retry_attempts"],
        last_heartbeat_at=status["last_heartbeat_at"],
        last_heartbeat_latency_ms=status["last_heartbeat_latency_ms"],
        last_error=status["last_error"],
    )
