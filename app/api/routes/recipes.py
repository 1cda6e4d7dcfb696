"""Recipe generation, saving and listing endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel

from app.api.dependencies import get_gemini_service, get_listing_service, get_recipe_service
from app.middleware.auth import get_current_user_id
from app.middleware.rate_limit import rate_limit_dependency
from app.models.recipe import CandidateRecipe, DietaryPreference, Ingredient, RecipePage, StoredRecipe
from app.services.gemini_service import GeminiService
from app.services.pagination import RecipeListingService, pagination_params
from app.services.recipe_service import RecipeService
from app.utils.exceptions import UpstreamParseError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["recipes"])


class GenerateRecipesRequest(BaseModel):
    """Request model for recipe generation."""

    ingredients: Optional[List[Ingredient]] = None
    dietaryPreferences: List[DietaryPreference] = []


class GenerateRecipesResponse(BaseModel):
    recipes: List[CandidateRecipe]
    batchId: str


class SaveRecipesRequest(BaseModel):
    recipes: List[CandidateRecipe] = []


class SaveRecipesResponse(BaseModel):
    savedRecipes: List[StoredRecipe]


@router.post("/generate-recipes", response_model=GenerateRecipesResponse)
async def generate_recipes(
    request: Request,
    body: GenerateRecipesRequest,
    user_id: str = Depends(get_current_user_id),
    _: None = Depends(rate_limit_dependency),
    gemini: GeminiService = Depends(get_gemini_service),
) -> GenerateRecipesResponse:
    """
    Generate three candidate recipes.

    - **ingredients**: at least one `{name, quantity?}`
    - **dietaryPreferences**: any of Vegetarian, Vegan, Gluten-Free, Keto, Paleo
    """
    if not body.ingredients:
        raise ValidationError("Ingredients are required")

    logger.info(
        "Route /api/generate-recipes called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/api/generate-recipes",
            "params": {
                "ingredients": [i.name for i in body.ingredients],
                "preferences": [p.value for p in body.dietaryPreferences],
            },
        },
    )

    batch = await gemini.generate_recipes(body.ingredients, body.dietaryPreferences, user_id)
    if not batch.result.ok:
        raise UpstreamParseError("The AI service returned recipes in an unexpected format", raw=batch.result.raw)

    return GenerateRecipesResponse(recipes=batch.result.value or [], batchId=batch.batchId)


@router.post("/save-recipes", response_model=SaveRecipesResponse)
async def save_recipes(
    request: Request,
    body: SaveRecipesRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    _: None = Depends(rate_limit_dependency),
    recipe_service: RecipeService = Depends(get_recipe_service),
) -> SaveRecipesResponse:
    """
    Store the selected candidates with a generated image each.

    Tags are generated afterwards in the background.
    """
    logger.info(
        "Route /api/save-recipes called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/api/save-recipes",
            "params": {"recipes": [r.name for r in body.recipes]},
        },
    )

    saved = await recipe_service.save(body.recipes, user_id)
    for recipe in saved:
        background_tasks.add_task(recipe_service.tag_recipe, recipe.id, user_id)

    return SaveRecipesResponse(savedRecipes=saved)


@router.get("/get-recipes", response_model=RecipePage)
async def get_recipes(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    sortOption: Optional[str] = Query(None),
    _user_id: str = Depends(get_current_user_id),
    listing: RecipeListingService = Depends(get_listing_service),
) -> RecipePage:
    """Paginated recipes, `popular` (likes, then newest) or `recent`."""
    return await listing.listing(pagination_params(page, limit, sortOption))


@router.get("/search-recipes", response_model=RecipePage)
async def search_recipes(
    query: Optional[str] = Query(None),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    sortOption: Optional[str] = Query(None),
    _user_id: str = Depends(get_current_user_id),
    listing: RecipeListingService = Depends(get_listing_service),
) -> RecipePage:
    """Case-insensitive search over recipe names, ingredient names and tags."""
    return await listing.search(pagination_params(page, limit, sortOption, query))
