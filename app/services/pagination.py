"""Paginated recipe listing and search."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from app.config import settings
from app.models.recipe import RecipePage, SortOption
from app.services.repository import RecipeRepository
from app.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaginationParams:
    page: int
    limit: int
    skip: int
    sort: SortOption
    query: str = ""


def _positive_int(value: Optional[str | int], default: int, field: str) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer") from None
    if number < 1:
        raise ValidationError(f"{field} must be at least 1")
    return number


def pagination_params(
    page: Optional[str | int] = None,
    limit: Optional[str | int] = None,
    sort_option: Optional[str] = None,
    query: Optional[str] = None,
) -> PaginationParams:
    """Normalize raw query parameters; missing values fall back to defaults."""
    page_num = _positive_int(page, 1, "page")
    page_size = _positive_int(limit, settings.page_size, "limit")

    try:
        sort = SortOption(sort_option) if sort_option else SortOption.POPULAR
    except ValueError:
        raise ValidationError(f"Unknown sort option: {sort_option}") from None

    return PaginationParams(
        page=page_num,
        limit=page_size,
        skip=(page_num - 1) * page_size,
        sort=sort,
        query=(query or "").strip(),
    )


class RecipeListingService:
    """Builds RecipePage responses over a RecipeRepository."""

    def __init__(self, recipes: RecipeRepository, popular_tags_limit: Optional[int] = None) -> None:
        self.recipes = recipes
        self.popular_tags_limit = popular_tags_limit or settings.popular_tags_limit

    async def listing(self, params: PaginationParams) -> RecipePage:
        data, total = await self.recipes.list_recipes(params.sort, params.skip, params.limit)
        return await self._page(params, data, total)

    async def search(self, params: PaginationParams) -> RecipePage:
        if not params.query:
            return await self.listing(params)
        data, total = await self.recipes.search(params.query, params.skip, params.limit)
        logger.info("Search %r matched %d recipes", params.query, total)
        return await self._page(params, data, total)

    async def _page(self, params: PaginationParams, data, total: int) -> RecipePage:
        return RecipePage(
            data=data,
            totalRecipes=total,
            page=params.page,
            totalPages=math.ceil(total / params.limit) if total else 0,
            popularTags=await self.recipes.popular_tags(self.popular_tags_limit),
        )
