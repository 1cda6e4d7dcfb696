"""Ingredient catalog endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from app.api.dependencies import get_gemini_service, get_ingredient_repository, get_reached_limit
from app.config import settings
from app.middleware.auth import get_current_user_id
from app.middleware.rate_limit import rate_limit_dependency
from app.models.recipe import CatalogIngredient
from app.services.gemini_service import GeminiService
from app.services.repository import IngredientRepository
from app.utils.exceptions import GeminiError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["ingredients"])


class ValidateIngredientRequest(BaseModel):
    ingredientName: Optional[str] = None
    userId: Optional[str] = None


class ValidateIngredientResponse(BaseModel):
    message: str
    isValid: bool
    possibleVariations: List[str] = []
    newIngredient: Optional[CatalogIngredient] = None


class IngredientListResponse(BaseModel):
    ingredientList: List[CatalogIngredient]
    reachedLimit: bool


def name_variants(name: str) -> List[str]:
    """The name plus its simple English singular/plural forms."""
    n = name.strip().lower()
    variants = [n]
    if n.endswith("ies") and len(n) > 3:
        variants.append(n[:-3] + "y")
    elif n.endswith("es") and len(n) > 2:
        variants.extend([n[:-2], n[:-1]])
    elif n.endswith("s") and len(n) > 1:
        variants.append(n[:-1])
    else:
        if n.endswith("y") and len(n) > 1:
            variants.append(n[:-1] + "ies")
        variants.extend([n + "s", n + "es"])
    return variants


def _display_name(name: str) -> str:
    clean = " ".join(name.split())
    return clean[:1].upper() + clean[1:]


@router.post("/validate-ingredient", response_model=ValidateIngredientResponse)
async def validate_ingredient(
    request: Request,
    body: ValidateIngredientRequest,
    user_id: str = Depends(get_current_user_id),
    _: None = Depends(rate_limit_dependency),
    gemini: GeminiService = Depends(get_gemini_service),
    catalog: IngredientRepository = Depends(get_ingredient_repository),
) -> ValidateIngredientResponse:
    """
    Check a user-proposed ingredient and add it to the catalog when valid.

    - **ingredientName**: up to 20 characters
    - Returns `message` = Exists | Success | Invalid
    """
    name = (body.ingredientName or "").strip()
    if not name:
        raise ValidationError("Ingredient name is required")
    if len(name) > settings.ingredient_name_max_length:
        raise ValidationError(
            f"Ingredient name must be at most {settings.ingredient_name_max_length} characters"
        )

    logger.info(
        "Route /api/validate-ingredient called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/api/validate-ingredient",
            "params": {"ingredientName": name},
        },
    )

    existing = await catalog.find_by_names(name_variants(name))
    if existing is not None:
        return ValidateIngredientResponse(message="Exists", isValid=True, possibleVariations=[existing.name])

    try:
        verdict = await gemini.validate_ingredient(name, body.userId or user_id)
    except GeminiError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to validate ingredient", "detail": str(e)},
        ) from e

    if not verdict.isValid:
        return ValidateIngredientResponse(
            message="Invalid", isValid=False, possibleVariations=verdict.possibleVariations
        )

    new_ingredient = await catalog.create(_display_name(name), user_id)
    logger.info("Added ingredient %s to the catalog", new_ingredient.name)
    return ValidateIngredientResponse(
        message="Success",
        isValid=True,
        possibleVariations=verdict.possibleVariations,
        newIngredient=new_ingredient,
    )


@router.get("/get-ingredients", response_model=IngredientListResponse)
async def get_ingredients(
    catalog: IngredientRepository = Depends(get_ingredient_repository),
    reached_limit: bool = Depends(get_reached_limit),
) -> IngredientListResponse:
    """Ingredient catalog plus whether the caller may still enter the wizard."""
    return IngredientListResponse(ingredientList=await catalog.list_all(), reachedLimit=reached_limit)
