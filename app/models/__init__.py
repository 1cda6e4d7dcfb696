"""Pydantic models."""

from app.models.recipe import (
    AdditionalInformation,
    AiInteractionRecord,
    CandidateRecipe,
    CatalogIngredient,
    ChatReply,
    ChatTurn,
    DietaryPreference,
    Ingredient,
    IngredientValidation,
    PopularTag,
    RecipeContent,
    RecipeImage,
    RecipeIngredient,
    RecipePage,
    RecipeTag,
    SortOption,
    StoredRecipe,
)

__all__ = [
    "AdditionalInformation",
    "AiInteractionRecord",
    "CandidateRecipe",
    "CatalogIngredient",
    "ChatReply",
    "ChatTurn",
    "DietaryPreference",
    "Ingredient",
    "IngredientValidation",
    "PopularTag",
    "RecipeContent",
    "RecipeImage",
    "RecipeIngredient",
    "RecipePage",
    "RecipeTag",
    "SortOption",
    "StoredRecipe",
]
