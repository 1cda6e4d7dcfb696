"""
Persistence gateway: document-store contracts and the in-memory backend.

The Firestore backend lives in app.services.firestore_repository and shares
the ordering/search helpers defined here.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from app.models.recipe import (
    AiInteractionRecord,
    CandidateRecipe,
    CatalogIngredient,
    PopularTag,
    RecipeTag,
    SortOption,
    StoredRecipe,
    recipe_content_dict,
)
from app.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class RecipeRepository(Protocol):
    async def save_many(
        self,
        recipes: Sequence[CandidateRecipe],
        owner_id: str,
        images: Sequence[Optional[str]],
    ) -> List[StoredRecipe]: ...

    async def get(self, recipe_id: str) -> StoredRecipe: ...

    async def update_tags(self, recipe_id: str, tags: Sequence[str]) -> None: ...

    async def list_recipes(
        self, sort: SortOption, skip: int, limit: int
    ) -> Tuple[List[StoredRecipe], int]: ...

    async def search(self, query: str, skip: int, limit: int) -> Tuple[List[StoredRecipe], int]: ...

    async def popular_tags(self, limit: int) -> List[PopularTag]: ...


class AiInteractionRepository(Protocol):
    async def create(self, record: AiInteractionRecord) -> str: ...

    async def count_since(self, user_id: str, since: datetime) -> int: ...


class IngredientRepository(Protocol):
    async def list_all(self) -> List[CatalogIngredient]: ...

    async def find_by_names(self, names: Iterable[str]) -> Optional[CatalogIngredient]: ...

    async def create(self, name: str, created_by: Optional[str]) -> CatalogIngredient: ...


# ---------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------


def build_stored_recipes(
    candidates: Sequence[CandidateRecipe], owner_id: str, images: Sequence[Optional[str]]
) -> List[StoredRecipe]:
    """Pair candidates with image links by position; missing links become None."""
    links = list(images) + [None] * (len(candidates) - len(images))
    return [
        StoredRecipe(
            **recipe_content_dict(candidate),
            batchId=candidate.batchId,
            index=candidate.index,
            owner=owner_id,
            imgLink=link,
        )
        for candidate, link in zip(candidates, links)
    ]


def sort_recipes(recipes: Iterable[StoredRecipe], sort: SortOption) -> List[StoredRecipe]:
    if sort == SortOption.POPULAR:
        return sorted(recipes, key=lambda r: (len(r.likedBy), r.createdAt), reverse=True)
    return sorted(recipes, key=lambda r: r.createdAt, reverse=True)


def recipe_matches(recipe: StoredRecipe, query: str) -> bool:
    """Case-insensitive substring match over name, ingredient names and tags."""
    q = query.strip().lower()
    if not q:
        return True
    if q in recipe.name.lower():
        return True
    if any(q in i.name.lower() for i in recipe.ingredients):
        return True
    return any(q in t.tag.lower() for t in recipe.tags)


def count_tags(recipes: Iterable[StoredRecipe], limit: int) -> List[PopularTag]:
    counter: Counter = Counter()
    for recipe in recipes:
        counter.update({t.tag for t in recipe.tags})
    # ties broken alphabetically so the order is stable
    ranked = sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))
    return [PopularTag(tag=tag, count=count) for tag, count in ranked[:limit]]


# ---------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------


class InMemoryRecipeRepository:
    """Process-local recipe store."""

    def __init__(self) -> None:
        self._recipes: Dict[str, StoredRecipe] = {}

    async def save_many(
        self,
        recipes: Sequence[CandidateRecipe],
        owner_id: str,
        images: Sequence[Optional[str]],
    ) -> List[StoredRecipe]:
        saved = build_stored_recipes(recipes, owner_id, images)
        for recipe in saved:
            self._recipes[recipe.id] = recipe
        logger.info("Saved %d recipes for owner %s", len(saved), owner_id)
        return saved

    async def add(self, recipe: StoredRecipe) -> StoredRecipe:
        self._recipes[recipe.id] = recipe
        return recipe

    async def get(self, recipe_id: str) -> StoredRecipe:
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise NotFoundError(f"Recipe {recipe_id} not found") from None

    async def update_tags(self, recipe_id: str, tags: Sequence[str]) -> None:
        recipe = await self.get(recipe_id)
        self._recipes[recipe_id] = recipe.model_copy(
            update={
                "tags": [RecipeTag(tag=t) for t in tags],
                "updatedAt": datetime.now(timezone.utc),
            }
        )

    async def list_recipes(
        self, sort: SortOption, skip: int, limit: int
    ) -> Tuple[List[StoredRecipe], int]:
        ordered = sort_recipes(self._recipes.values(), sort)
        return ordered[skip : skip + limit], len(ordered)

    async def search(self, query: str, skip: int, limit: int) -> Tuple[List[StoredRecipe], int]:
        matches = [r for r in sort_recipes(self._recipes.values(), SortOption.RECENT) if recipe_matches(r, query)]
        return matches[skip : skip + limit], len(matches)

    async def popular_tags(self, limit: int) -> List[PopularTag]:
        return count_tags(self._recipes.values(), limit)


class InMemoryAiInteractionRepository:
    """Append-only audit log kept in a list."""

    def __init__(self) -> None:
        self.records: List[AiInteractionRecord] = []

    async def create(self, record: AiInteractionRecord) -> str:
        stored = record.model_copy(update={"id": record.id or uuid.uuid4().hex})
        self.records.append(stored)
        return stored.id  # type: ignore[return-value]

    async def count_since(self, user_id: str, since: datetime) -> int:
        return sum(1 for r in self.records if r.userId == user_id and r.createdAt >= since)


class InMemoryIngredientRepository:
    """Ingredient catalog kept in a list."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._items: List[CatalogIngredient] = [CatalogIngredient(name=n) for n in names]

    async def list_all(self) -> List[CatalogIngredient]:
        return sorted(self._items, key=lambda i: i.name.lower())

    async def find_by_names(self, names: Iterable[str]) -> Optional[CatalogIngredient]:
        wanted = {n.lower() for n in names}
        for item in self._items:
            if item.name.lower() in wanted:
                return item
        return None

    async def create(self, name: str, created_by: Optional[str]) -> CatalogIngredient:
        item = CatalogIngredient(name=name, createdBy=created_by)
        self._items.append(item)
        return item
