"""Shared API dependencies."""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from fastapi import BackgroundTasks, Depends

from app.config import settings
from app.middleware.auth import get_current_user_id
from app.services.gemini_service import GeminiService
from app.services.pagination import RecipeListingService
from app.services.recipe_service import RecipeService
from app.services.repository import (
    AiInteractionRepository,
    InMemoryAiInteractionRepository,
    InMemoryIngredientRepository,
    InMemoryRecipeRepository,
    IngredientRepository,
    RecipeRepository,
)
from app.wizard.gateway import LocalRecipeCreationGateway, RecipeCreationGateway
from app.wizard.sessions import WizardSessionStore, session_store

logger = logging.getLogger(__name__)


def _use_firestore() -> bool:
    return settings.storage_backend.lower() == "firestore"


@lru_cache
def get_recipe_repository() -> RecipeRepository:
    if _use_firestore():
        from app.services.firestore_repository import FirestoreRecipeRepository

        return FirestoreRecipeRepository()
    return InMemoryRecipeRepository()


@lru_cache
def get_ai_interaction_repository() -> AiInteractionRepository:
    if _use_firestore():
        from app.services.firestore_repository import FirestoreAiInteractionRepository

        return FirestoreAiInteractionRepository()
    return InMemoryAiInteractionRepository()


@lru_cache
def get_ingredient_repository() -> IngredientRepository:
    if _use_firestore():
        from app.services.firestore_repository import FirestoreIngredientRepository

        return FirestoreIngredientRepository()
    return InMemoryIngredientRepository()


def get_gemini_service(
    audit_log: AiInteractionRepository = Depends(get_ai_interaction_repository),
    recipes: RecipeRepository = Depends(get_recipe_repository),
) -> GeminiService:
    """Per-request service over the shared genai client."""
    return GeminiService(audit_log=audit_log, recipes=recipes)


def get_recipe_service(
    gemini: GeminiService = Depends(get_gemini_service),
    recipes: RecipeRepository = Depends(get_recipe_repository),
) -> RecipeService:
    return RecipeService(gemini, recipes)


def get_listing_service(recipes: RecipeRepository = Depends(get_recipe_repository)) -> RecipeListingService:
    return RecipeListingService(recipes)


def get_session_store() -> WizardSessionStore:
    return session_store


def get_recipe_gateway(
    background_tasks: BackgroundTasks,
    gemini: GeminiService = Depends(get_gemini_service),
    recipe_service: RecipeService = Depends(get_recipe_service),
) -> RecipeCreationGateway:
    return LocalRecipeCreationGateway(gemini, recipe_service, background_tasks)


async def get_reached_limit(
    user_id: str = Depends(get_current_user_id),
    audit_log: AiInteractionRepository = Depends(get_ai_interaction_repository),
) -> bool:
    """True when the user has used up their AI interactions for the current window."""
    since = datetime.now(timezone.utc) - timedelta(hours=settings.ai_limit_window_hours)
    count = await audit_log.count_since(user_id, since)
    reached = count >= settings.ai_interaction_limit
    if reached:
        logger.info("User %s reached the AI interaction limit (%d)", user_id, count)
    return reached
