"""
Unit Tests for Cache Key Generation
"""

import pytest

from gamehub_cache.infrastructure.cache.keys import (
    download_dedup_key,
    download_rate_key,
    game_categories_key,
    game_detail_key,
    game_list_key,
    game_reviews_key,
    games_by_tag_key,
    generate_cache_key,
    recommendation_key,
    system_requirements_key,
)


@pytest.mark.unit
class TestGenerateCacheKey:
    """Test the deterministic key builder."""

    def test_without_options(self):
        assert generate_cache_key("game:detail:", 42) == "game:detail:42"

    def test_options_are_sorted(self):
        first = generate_cache_key("game:list:", "all", {"page": 1, "limit": 20, "sortBy": "price"})
        second = generate_cache_key("game:list:", "all", {"sortBy": "price", "page": 1, "limit": 20})

        assert first == second == "game:list:all:limit=20_page=1_sortBy=price"

    def test_option_formatting(self):
        key = generate_cache_key("p:", "id", {"flag": True, "tags": ["rpg", "indie"], "search": None})

        assert key == "p:id:flag=true_search=_tags=rpg,indie"


@pytest.mark.unit
class TestNamedGenerators:
    """Test the game key helpers and their defaults."""

    def test_game_list_defaults(self):
        assert game_list_key() == (
            "game:list:all:categories=_limit=20_maxPrice=1000_minPrice=0_page=1"
            "_search=_sortBy=release_date_sortOrder=desc_status=approved_tags="
        )

    def test_game_list_filters_change_key(self):
        assert game_list_key(page=2) != game_list_key()
        assert game_list_key(categories=["rpg"]).startswith("game:list:all:categories=rpg_")

    def test_entity_keys(self):
        assert game_detail_key(7) == "game:detail:7"
        assert game_categories_key() == "game:categories:all"
        assert system_requirements_key(7) == "system_requirements:7"

    def test_reviews_key_is_scoped_to_game(self):
        assert game_reviews_key(7) == (
            "game:reviews:7:limit=10_page=1_sortBy=created_at_sortOrder=desc"
        )

    def test_by_tag_key(self):
        assert games_by_tag_key("indie", page=3) == "game:by_tag:indie:limit=20_page=3"

    def test_recommendation_key_anonymous(self):
        assert recommendation_key() == "game:recommendations:anonymous:gameId=_limit=10_type=personalized"
        assert recommendation_key(user_id=5, rec_type="similar", game_id=9).startswith(
            "game:recommendations:5:gameId=9_"
        )


@pytest.mark.unit
def test_download_keys():
    assert download_rate_key("1.2.3.4") == "download:global:1.2.3.4"
    assert download_dedup_key("u1", "v2", "windows", "1.2.3.4") == "download:u1:v2:windows:1.2.3.4"
