"""
Download Rate Limiting for FastAPI

Route dependencies guarding download endpoints:

- enforce_download_rate_limit: per-IP fixed window (default 20 per hour)
- prevent_duplicate_download: same user + version + platform + IP within
  DOWNLOAD_DEDUP_TTL_SECONDS is rejected

Both raise RateLimitExceededError, which setup_rate_limiting() maps to a
429 response with a Retry-After header. Any cache error lets the request
through: a degraded limiter must never block legitimate traffic.

Usage:
    app = FastAPI()
    setup_rate_limiting(app)

    @app.get(
        "/downloads/{version_id}/{platform}",
        dependencies=[Depends(enforce_download_rate_limit), Depends(prevent_duplicate_download)],
    )
    async def download(version_id: str, platform: str): ...
"""

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from gamehub_cache.core.config.settings import get_settings
from gamehub_cache.core.exceptions import CacheError, RateLimitExceededError
from gamehub_cache.core.logging.logger import get_logger
from gamehub_cache.infrastructure.cache.keys import download_dedup_key, download_rate_key
from gamehub_cache.rate_limiting.counters import RateLimitCounters, get_rate_limit_counters

logger = get_logger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Client address for rate limiting.

    Priority: first X-Forwarded-For hop > socket peer
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_identifier(request: Request) -> str:
    """Authenticated user id from X-User-ID, or "anonymous"."""
    return request.headers.get("X-User-ID") or "anonymous"


async def enforce_download_rate_limit(
    request: Request,
    counters: RateLimitCounters = Depends(get_rate_limit_counters),
) -> None:
    """
    Reject the request when its IP exceeded the download window.

    Raises:
        RateLimitExceededError: When the limit is exceeded
    """
    settings = get_settings().rate_limit
    client_ip = get_client_ip(request)

    try:
        result = await counters.increment_windowed(
            download_rate_key(client_ip),
            settings.DOWNLOAD_RATE_WINDOW_SECONDS,
            settings.DOWNLOAD_RATE_LIMIT,
        )
    except CacheError as e:
        logger.error("Download rate limit check failed, allowing request",
                     client_ip=client_ip, error=str(e))
        return

    if not result.allowed:
        raise RateLimitExceededError(
            message="Too many downloads from this address. Please try again later.",
            retry_after=result.retry_after,
            details={"limit": settings.DOWNLOAD_RATE_LIMIT, "count": result.count},
        )


async def prevent_duplicate_download(
    request: Request,
    counters: RateLimitCounters = Depends(get_rate_limit_counters),
) -> None:
    """
    Reject a repeat of the same download inside the dedup window.

    Reads ``version_id`` and ``platform`` from the route's path parameters.

    Raises:
        RateLimitExceededError: When the same download was just requested
    """
    ttl = get_settings().rate_limit.DOWNLOAD_DEDUP_TTL_SECONDS
    key = download_dedup_key(
        get_user_identifier(request),
        request.path_params.get("version_id", ""),
        request.path_params.get("platform", ""),
        get_client_ip(request),
    )

    try:
        duplicate = await counters.mark_seen_once(key, ttl)
    except CacheError as e:
        logger.error("Duplicate download check failed, allowing request", error=str(e))
        return

    if duplicate:
        raise RateLimitExceededError(
            message="Duplicate download request. Please wait before retrying.",
            retry_after=ttl,
        )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceededError) -> Response:
    """Handle rate limit exceeded - return 429 with headers."""
    logger.warning("Rate limit exceeded", path=request.url.path, client_ip=get_client_ip(request),
                   retry_after=exc.retry_after)
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": exc.message,
            "retry_after": exc.retry_after,
        },
        headers={"Retry-After": str(exc.retry_after)},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Register the 429 handler on a FastAPI application."""
    app.add_exception_handler(RateLimitExceededError, rate_limit_exception_handler)
    logger.info("Rate limiting configured for FastAPI app")
