"""
Cache Key Generation

Keys are ``{prefix}{identifier}`` optionally followed by
``:{k1=v1_k2=v2...}`` with options sorted by name, so two logically
identical queries produce the same key whatever order their options were
supplied in.

Usage:
    key = game_list_key(page=2, categories=["rpg", "indie"])
    # game:list:all:categories=rpg,indie_limit=20_maxPrice=1000_...
"""

from collections.abc import Mapping
from typing import Any

from gamehub_cache.core.config.constants import (
    CACHE_PREFIX_GAME_BY_CATEGORY,
    CACHE_PREFIX_GAME_BY_TAG,
    CACHE_PREFIX_GAME_CATEGORIES,
    CACHE_PREFIX_GAME_DETAIL,
    CACHE_PREFIX_GAME_LIST,
    CACHE_PREFIX_GAME_RECOMMENDATIONS,
    CACHE_PREFIX_GAME_REVIEWS,
    CACHE_PREFIX_GAME_TAGS,
    CACHE_PREFIX_SYSTEM_REQUIREMENTS,
    DOWNLOAD_DEDUP_KEY_PREFIX,
    DOWNLOAD_GLOBAL_KEY_PREFIX,
)


def _format_option(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value)


def generate_cache_key(prefix: str, identifier: Any, options: Mapping[str, Any] | None = None) -> str:
    """
    Build a deterministic cache key.

    Args:
        prefix: Namespace prefix, including its trailing colon
        identifier: Entity id or a fixed token such as "all"
        options: Query options; sorted by name before joining

    Returns:
        Cache key string
    """
    key = f"{prefix}{identifier}"
    if options:
        parts = [f"{name}={_format_option(options[name])}" for name in sorted(options)]
        key += ":" + "_".join(parts)
    return key


# =============================================================================
# Named generators
# =============================================================================


def game_list_key(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    categories: list[str] | None = None,
    tags: list[str] | None = None,
    min_price: float = 0,
    max_price: float = 1000,
    sort_by: str = "release_date",
    sort_order: str = "desc",
    status: str = "approved",
) -> str:
    """Key for a filtered, paginated game listing."""
    return generate_cache_key(
        CACHE_PREFIX_GAME_LIST,
        "all",
        {
            "page": page,
            "limit": limit,
            "search": search,
            "categories": categories or "",
            "tags": tags or "",
            "minPrice": min_price,
            "maxPrice": max_price,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "status": status,
        },
    )


def game_detail_key(game_id: Any) -> str:
    return generate_cache_key(CACHE_PREFIX_GAME_DETAIL, game_id)


def game_categories_key() -> str:
    return generate_cache_key(CACHE_PREFIX_GAME_CATEGORIES, "all")


def game_tags_key() -> str:
    return generate_cache_key(CACHE_PREFIX_GAME_TAGS, "all")


def game_reviews_key(
    game_id: Any,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> str:
    """Key for one page of a game's reviews."""
    return generate_cache_key(
        CACHE_PREFIX_GAME_REVIEWS,
        game_id,
        {"page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order},
    )


def games_by_category_key(category: str, page: int = 1, limit: int = 20) -> str:
    return generate_cache_key(CACHE_PREFIX_GAME_BY_CATEGORY, category, {"page": page, "limit": limit})


def games_by_tag_key(tag: str, page: int = 1, limit: int = 20) -> str:
    return generate_cache_key(CACHE_PREFIX_GAME_BY_TAG, tag, {"page": page, "limit": limit})


def system_requirements_key(game_id: Any) -> str:
    return generate_cache_key(CACHE_PREFIX_SYSTEM_REQUIREMENTS, game_id)


def recommendation_key(
    user_id: Any | None = None,
    rec_type: str = "personalized",
    game_id: Any | None = None,
    limit: int = 10,
) -> str:
    """Key for a recommendation list; anonymous users share one namespace."""
    return generate_cache_key(
        CACHE_PREFIX_GAME_RECOMMENDATIONS,
        user_id or "anonymous",
        {"type": rec_type, "gameId": game_id or "", "limit": limit},
    )


# =============================================================================
# Rate limiting keys
# =============================================================================


def download_rate_key(client_ip: str) -> str:
    """Per-IP download counter."""
    return f"{DOWNLOAD_GLOBAL_KEY_PREFIX}{client_ip}"


def download_dedup_key(user_id: Any, version_id: Any, platform: str, client_ip: str) -> str:
    """Marker for one user downloading one build from one address."""
    return f"{DOWNLOAD_DEDUP_KEY_PREFIX}{user_id}:{version_id}:{platform}:{client_ip}"
