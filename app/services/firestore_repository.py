"""Firestore-backed repositories.

The Admin SDK is synchronous, so every call runs in a worker thread.
Listings and search load the collection and reuse the in-memory ordering
helpers; Firestore has no substring search.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from google.cloud.firestore_v1.base_query import FieldFilter

from app.config import settings
from app.models.recipe import (
    AiInteractionRecord,
    CandidateRecipe,
    CatalogIngredient,
    PopularTag,
    SortOption,
    StoredRecipe,
)
from app.services.firestore_client import get_firestore_client
from app.services.repository import build_stored_recipes, count_tags, recipe_matches, sort_recipes
from app.utils.exceptions import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


class FirestoreRecipeRepository:
    """Recipes stored one document per recipe, keyed by recipe id."""

    def __init__(self, db: Any = None, collection: Optional[str] = None) -> None:
        self._db = db
        self.collection = collection or settings.recipes_collection

    @property
    def db(self) -> Any:
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    def _load_all(self) -> List[StoredRecipe]:
        docs = self.db.collection(self.collection).stream()
        return [StoredRecipe.model_validate({**d.to_dict(), "id": d.id}) for d in docs]

    async def save_many(
        self,
        recipes: Sequence[CandidateRecipe],
        owner_id: str,
        images: Sequence[Optional[str]],
    ) -> List[StoredRecipe]:
        saved = build_stored_recipes(recipes, owner_id, images)

        def _write() -> None:
            batch = self.db.batch()
            col = self.db.collection(self.collection)
            for recipe in saved:
                batch.set(col.document(recipe.id), recipe.model_dump(exclude={"id"}))
            batch.commit()

        try:
            await asyncio.to_thread(_write)
        except Exception as e:
            logger.error("Failed to save recipes: %s", str(e), exc_info=True)
            raise PersistenceError(f"Failed to save recipes: {e}") from e

        logger.info("Saved %d recipes for owner %s", len(saved), owner_id)
        return saved

    async def get(self, recipe_id: str) -> StoredRecipe:
        doc = await asyncio.to_thread(self.db.collection(self.collection).document(recipe_id).get)
        if not doc.exists:
            raise NotFoundError(f"Recipe {recipe_id} not found")
        return StoredRecipe.model_validate({**doc.to_dict(), "id": doc.id})

    async def update_tags(self, recipe_id: str, tags: Sequence[str]) -> None:
        ref = self.db.collection(self.collection).document(recipe_id)
        await asyncio.to_thread(
            ref.update,
            {"tags": [{"tag": t} for t in tags], "updatedAt": datetime.now(timezone.utc)},
        )

    async def list_recipes(
        self, sort: SortOption, skip: int, limit: int
    ) -> Tuple[List[StoredRecipe], int]:
        ordered = sort_recipes(await asyncio.to_thread(self._load_all), sort)
        return ordered[skip : skip + limit], len(ordered)

    async def search(self, query: str, skip: int, limit: int) -> Tuple[List[StoredRecipe], int]:
        recipes = await asyncio.to_thread(self._load_all)
        matches = [r for r in sort_recipes(recipes, SortOption.RECENT) if recipe_matches(r, query)]
        return matches[skip : skip + limit], len(matches)

    async def popular_tags(self, limit: int) -> List[PopularTag]:
        return count_tags(await asyncio.to_thread(self._load_all), limit)


class FirestoreAiInteractionRepository:
    """Audit records, append-only."""

    def __init__(self, db: Any = None, collection: Optional[str] = None) -> None:
        self._db = db
        self.collection = collection or settings.ai_interactions_collection

    @property
    def db(self) -> Any:
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    async def create(self, record: AiInteractionRecord) -> str:
        def _add() -> str:
            _, ref = self.db.collection(self.collection).add(record.model_dump(exclude={"id"}))
            return ref.id

        return await asyncio.to_thread(_add)

    async def count_since(self, user_id: str, since: datetime) -> int:
        def _count() -> int:
            query = (
                self.db.collection(self.collection)
                .where(filter=FieldFilter("userId", "==", user_id))
                .where(filter=FieldFilter("createdAt", ">=", since))
            )
            return sum(1 for _ in query.stream())

        return await asyncio.to_thread(_count)


class FirestoreIngredientRepository:
    """Shared ingredient catalog."""

    def __init__(self, db: Any = None, collection: Optional[str] = None) -> None:
        self._db = db
        self.collection = collection or settings.ingredients_collection

    @property
    def db(self) -> Any:
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    async def list_all(self) -> List[CatalogIngredient]:
        def _list() -> List[CatalogIngredient]:
            docs = self.db.collection(self.collection).order_by("name").stream()
            return [CatalogIngredient.model_validate({**d.to_dict(), "id": d.id}) for d in docs]

        return await asyncio.to_thread(_list)

    async def find_by_names(self, names: Iterable[str]) -> Optional[CatalogIngredient]:
        wanted = {n.lower() for n in names}
        for item in await self.list_all():
            if item.name.lower() in wanted:
                return item
        return None

    async def create(self, name: str, created_by: Optional[str]) -> CatalogIngredient:
        item = CatalogIngredient(name=name, createdBy=created_by)
        ref = self.db.collection(self.collection).document(item.id)
        await asyncio.to_thread(ref.set, item.model_dump(exclude={"id"}))
        return item
