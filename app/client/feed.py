"""
Infinite-scroll recipe feed over the listing endpoints.

Holds the browsing state a front end keeps for the home page: accumulated
recipes, current page, sort, search text and the popular tags of the last
response.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from app.config import settings
from app.models.recipe import PopularTag, RecipePage, SortOption, StoredRecipe

logger = logging.getLogger(__name__)

LIST_PATH = "/api/get-recipes"
SEARCH_PATH = "/api/search-recipes"


class RecipeFeed:
    """Client-side pagination state for /api/get-recipes and /api/search-recipes."""

    def __init__(
        self,
        user_id: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> None:
        self.user_id = user_id
        self._client = client or httpx.AsyncClient(base_url=base_url or settings.public_base_url, timeout=20)
        self.limit = limit or settings.page_size

        self.data: List[StoredRecipe] = []
        self.popular_tags: List[PopularTag] = []
        self.page = 0
        self.total_pages = 0
        self.total_recipes = 0
        self.sort = SortOption.POPULAR
        self.search = ""
        # bumped on every reset; responses fetched for an older value are dropped
        self._generation = 0
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def is_searching(self) -> bool:
        return bool(self.search.strip())

    @property
    def endpoint(self) -> str:
        return SEARCH_PATH if self.is_searching else LIST_PATH

    @property
    def has_more(self) -> bool:
        return self.page == 0 or self.page < self.total_pages

    async def load_more(self) -> bool:
        """Fetch and append the next page. Returns False when nothing was applied."""
        if self.loading or not self.has_more:
            return False
        generation = self._generation
        page = await self._fetch(self.page + 1)
        if generation != self._generation:
            logger.debug("Dropping page %d fetched before a sort or search change", page.page)
            return False
        self._apply(page, append=True)
        return True

    async def refresh(self) -> None:
        """Reload page 1, replacing accumulated data."""
        self._generation += 1
        generation = self._generation
        page = await self._fetch(1)
        if generation == self._generation:
            self._apply(page, append=False)

    async def set_sort(self, sort: SortOption | str) -> bool:
        sort = SortOption(sort)
        # sort buttons are disabled while searching
        if sort == self.sort or self.is_searching:
            return False
        self.sort = sort
        await self.refresh()
        return True

    async def set_search(self, query: str) -> None:
        self.search = query
        await self.refresh()

    async def toggle_tag(self, tag: str) -> None:
        """Search by a popular tag; picking the active tag again clears the search."""
        await self.set_search("" if self.search == tag else tag)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _fetch(self, page: int) -> RecipePage:
        params = {"page": page, "limit": self.limit, "sortOption": self.sort.value}
        if self.is_searching:
            params["query"] = self.search.strip()

        self._in_flight += 1
        try:
            resp = await self._client.get(self.endpoint, params=params, headers={"X-User-Id": self.user_id})
            resp.raise_for_status()
        finally:
            self._in_flight -= 1
        return RecipePage.model_validate(resp.json())

    def _apply(self, page: RecipePage, *, append: bool) -> None:
        if append:
            # pages only ever move forward
            self.data.extend(page.data)
            self.page = max(self.page, page.page)
        else:
            self.data = list(page.data)
            self.page = page.page
        self.total_pages = page.totalPages
        self.total_recipes = page.totalRecipes
        self.popular_tags = page.popularTags
        logger.debug("Feed at page %d/%d (%d recipes)", self.page, self.total_pages, len(self.data))
