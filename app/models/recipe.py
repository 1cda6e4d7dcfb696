"""Recipe Pydantic models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, computed_field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class SortOption(str, Enum):
    """Ordering of recipe listings."""

    RECENT = "recent"
    POPULAR = "popular"


class DietaryPreference(str, Enum):
    """Closed set of dietary preferences a user can pick."""

    VEGETARIAN = "Vegetarian"
    VEGAN = "Vegan"
    GLUTEN_FREE = "Gluten-Free"
    KETO = "Keto"
    PALEO = "Paleo"


class Ingredient(BaseModel):
    """Ingredient picked by the user during a wizard session."""

    id: str = Field(default_factory=_new_id, description="Stable session-scoped identifier")
    name: str = Field(..., description="Ingredient name")
    quantity: Optional[float] = Field(None, description="Optional amount")


class RecipeIngredient(BaseModel):
    """Ingredient line of a generated recipe."""

    name: str = Field(..., description="Ingredient name")
    quantity: str = Field("", description="Quantity with unit (e.g., '200 g', '1 cup')")


class AdditionalInformation(BaseModel):
    """Free-text extras attached to a generated recipe."""

    tips: str = ""
    variations: str = ""
    servingSuggestions: str = ""
    nutritionalInformation: str = ""


class RecipeContent(BaseModel):
    """Fields shared by candidate and stored recipes."""

    name: str = Field(..., description="Recipe name")
    ingredients: List[RecipeIngredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list, description="Ordered steps")
    dietaryPreference: List[str] = Field(default_factory=list)
    additionalInformation: AdditionalInformation = Field(default_factory=AdditionalInformation)


class CandidateRecipe(RecipeContent):
    """AI-proposed recipe not yet saved, identified by its generation batch."""

    batchId: str = Field(..., description="Generation batch identifier (audit record id)")
    index: int = Field(..., ge=0, description="Position within the batch")

    @computed_field  # type: ignore[misc]
    @property
    def key(self) -> str:
        """Composite key unique within a batch."""
        return f"{self.batchId}-{self.index}"


class RecipeTag(BaseModel):
    """AI-derived search tag."""

    tag: str


class RecipeComment(BaseModel):
    """Comment left on a stored recipe."""

    id: str = Field(default_factory=_new_id)
    user: str
    comment: str
    createdAt: datetime = Field(default_factory=_utcnow)


class StoredRecipe(RecipeContent):
    """Recipe persisted by the document store."""

    id: str = Field(default_factory=_new_id)
    batchId: Optional[str] = None
    index: Optional[int] = None
    owner: str = Field(..., description="Owner user id")
    imgLink: Optional[str] = None
    likedBy: List[str] = Field(default_factory=list)
    comments: List[RecipeComment] = Field(default_factory=list)
    tags: List[RecipeTag] = Field(default_factory=list)
    audio: Optional[str] = None
    createdAt: datetime = Field(default_factory=_utcnow)
    updatedAt: datetime = Field(default_factory=_utcnow)


class CatalogIngredient(BaseModel):
    """Ingredient known to the shared catalog."""

    id: str = Field(default_factory=_new_id)
    name: str
    createdBy: Optional[str] = None
    createdAt: datetime = Field(default_factory=_utcnow)


class AiInteractionRecord(BaseModel):
    """Append-only audit entry for one generative-service call."""

    id: Optional[str] = None
    userId: str
    prompt: str
    response: Union[str, dict, list, None] = None
    model: Optional[str] = None
    createdAt: datetime = Field(default_factory=_utcnow)


class IngredientValidation(BaseModel):
    """Verdict on a user-proposed ingredient name."""

    isValid: bool = False
    possibleVariations: List[str] = Field(default_factory=list)


class RecipeImage(BaseModel):
    """Generated image for a recipe, in the same position as its recipe."""

    name: str
    imgLink: str


class ChatTurn(BaseModel):
    """One prior message in a recipe chat."""

    role: str = "user"
    content: str = ""


class ChatReply(BaseModel):
    """Assistant reply plus token usage."""

    reply: str
    totalTokens: int = 0


class PopularTag(BaseModel):
    """Tag with how many recipes carry it."""

    tag: str
    count: int


class RecipePage(BaseModel):
    """One page of a recipe listing."""

    data: List[StoredRecipe] = Field(default_factory=list)
    totalRecipes: int = 0
    page: int = 1
    totalPages: int = 0
    popularTags: List[PopularTag] = Field(default_factory=list)


def recipe_content_dict(recipe: RecipeContent) -> dict:
    """Dump only the shared recipe fields of a candidate or stored recipe."""
    return recipe.model_dump(include=set(RecipeContent.model_fields))
