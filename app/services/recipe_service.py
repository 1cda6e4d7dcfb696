"""Save pipeline for selected recipes: images, storage, tags."""

from __future__ import annotations

import logging
from typing import List, Sequence

from app.models.recipe import CandidateRecipe, StoredRecipe
from app.services.gemini_service import GeminiService
from app.services.repository import RecipeRepository
from app.utils.exceptions import GeminiError, NotFoundError, TagGenerationError, ValidationError

logger = logging.getLogger(__name__)


class RecipeService:
    """Persists wizard selections through the AI gateway and the recipe store."""

    def __init__(self, gemini: GeminiService, recipes: RecipeRepository) -> None:
        self.gemini = gemini
        self.recipes = recipes

    async def save(self, recipes: Sequence[CandidateRecipe], owner_id: str) -> List[StoredRecipe]:
        """Generate one image per recipe (all or nothing), then store the batch."""
        if not recipes:
            raise ValidationError("No recipes to save")

        images = await self.gemini.generate_images(recipes, owner_id)
        # images come back in input order; names may repeat across a batch
        saved = await self.recipes.save_many(recipes, owner_id, [img.imgLink for img in images])
        logger.info("Saved %d recipes for user %s", len(saved), owner_id)
        return saved

    async def tag_recipe(self, recipe_id: str, user_id: str) -> None:
        """Background job: failures are logged, there is nobody to report them to."""
        try:
            recipe = await self.recipes.get(recipe_id)
            await self.gemini.generate_tags(recipe, user_id)
        except (TagGenerationError, GeminiError, NotFoundError) as e:
            logger.error("Tag generation failed for recipe %s: %s", recipe_id, str(e))
