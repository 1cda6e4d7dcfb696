"""How the wizard reaches recipe generation and persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import httpx
from fastapi import BackgroundTasks

from app.config import settings
from app.models.recipe import CandidateRecipe, DietaryPreference, Ingredient, StoredRecipe
from app.services.gemini_service import GeminiService
from app.services.recipe_service import RecipeService
from app.utils.exceptions import (
    GeminiError,
    GeminiQuotaError,
    PersistenceError,
    UpstreamParseError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedBatch:
    batchId: str
    recipes: List[CandidateRecipe]


class RecipeCreationGateway(Protocol):
    async def generate_recipes(
        self,
        user_id: str,
        ingredients: Sequence[Ingredient],
        preferences: Sequence[DietaryPreference],
    ) -> GeneratedBatch: ...

    async def save_recipes(self, user_id: str, recipes: Sequence[CandidateRecipe]) -> List[StoredRecipe]: ...


class LocalRecipeCreationGateway:
    """Calls the AI gateway and the recipe store in-process."""

    def __init__(
        self,
        gemini: GeminiService,
        recipe_service: RecipeService,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> None:
        self.gemini = gemini
        self.recipe_service = recipe_service
        self.background_tasks = background_tasks

    async def generate_recipes(
        self,
        user_id: str,
        ingredients: Sequence[Ingredient],
        preferences: Sequence[DietaryPreference],
    ) -> GeneratedBatch:
        batch = await self.gemini.generate_recipes(ingredients, preferences, user_id)
        # raises UpstreamParseError on malformed output
        return GeneratedBatch(batchId=batch.batchId, recipes=batch.result.unwrap())

    async def save_recipes(self, user_id: str, recipes: Sequence[CandidateRecipe]) -> List[StoredRecipe]:
        saved = await self.recipe_service.save(recipes, user_id)
        for recipe in saved:
            if self.background_tasks is not None:
                self.background_tasks.add_task(self.recipe_service.tag_recipe, recipe.id, user_id)
            else:
                await self.recipe_service.tag_recipe(recipe.id, user_id)
        return saved


class HttpRecipeCreationGateway:
    """Calls /api/generate-recipes and /api/save-recipes over HTTP."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url or settings.public_base_url, timeout=120.0)

    async def generate_recipes(
        self,
        user_id: str,
        ingredients: Sequence[Ingredient],
        preferences: Sequence[DietaryPreference],
    ) -> GeneratedBatch:
        payload = {
            "ingredients": [i.model_dump() for i in ingredients],
            "dietaryPreferences": [DietaryPreference(p).value for p in preferences],
        }
        data = await self._post("/api/generate-recipes", user_id, payload)
        recipes = [CandidateRecipe.model_validate(r) for r in data.get("recipes") or []]
        return GeneratedBatch(batchId=str(data.get("batchId") or ""), recipes=recipes)

    async def save_recipes(self, user_id: str, recipes: Sequence[CandidateRecipe]) -> List[StoredRecipe]:
        payload = {"recipes": [r.model_dump(mode="json") for r in recipes]}
        data = await self._post("/api/save-recipes", user_id, payload)
        return [StoredRecipe.model_validate(r) for r in data.get("savedRecipes") or []]

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, user_id: str, payload: dict) -> dict:
        try:
            resp = await self._client.post(path, json=payload, headers={"X-User-Id": user_id})
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", path, str(e))
            raise GeminiError(f"Could not reach {path}: {e}") from e

        if resp.status_code >= 400:
            _raise_for_error(path, resp)
        return resp.json()


def _raise_for_error(path: str, resp: httpx.Response) -> None:
    try:
        body = resp.json()
        detail = body.get("detail") if isinstance(body, dict) else None
    except ValueError:
        detail = None
    message = str(detail or resp.text or resp.reason_phrase)

    logger.error("%s returned %d: %s", path, resp.status_code, message[:500])
    if resp.status_code == 400:
        raise ValidationError(message)
    if resp.status_code == 429:
        raise GeminiQuotaError(message)
    if resp.status_code == 500 and path.endswith("generate-recipes"):
        raise UpstreamParseError(message)
    if resp.status_code == 500:
        raise PersistenceError(message)
    raise GeminiError(message)
