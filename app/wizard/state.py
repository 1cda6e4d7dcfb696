"""Recipe creation wizard: steps, draft state and the session context."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import List, Optional

from app.config import settings
from app.models.recipe import CandidateRecipe, DietaryPreference, Ingredient


class WizardStep(IntEnum):
    INGREDIENT_SELECTION = 0
    DIETARY_SELECTION = 1
    REVIEW_AND_GENERATE = 2
    RECIPE_SELECTION = 3
    REVIEW_AND_SAVE = 4

    @property
    def is_first(self) -> bool:
        return self == WizardStep.INGREDIENT_SELECTION

    @property
    def is_last(self) -> bool:
        return self == WizardStep.REVIEW_AND_SAVE

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class LoadingType(str, Enum):
    GENERATION = "generation"
    SAVING = "saving"


@dataclass
class DraftState:
    """Transient wizard data. Never persisted, discarded on reset."""

    ingredients: List[Ingredient] = field(default_factory=list)
    preferences: List[DietaryPreference] = field(default_factory=list)
    candidates: List[CandidateRecipe] = field(default_factory=list)
    selected: List[str] = field(default_factory=list)
    batch_id: Optional[str] = None

    @property
    def has_candidates(self) -> bool:
        return bool(self.candidates)

    def candidate_keys(self) -> List[str]:
        return [c.key for c in self.candidates]

    def selected_candidates(self) -> List[CandidateRecipe]:
        # keep batch order, not click order
        chosen = set(self.selected)
        return [c for c in self.candidates if c.key in chosen]

    def clear(self) -> None:
        self.ingredients = []
        self.preferences = []
        self.candidates = []
        self.selected = []
        self.batch_id = None


@dataclass
class WizardSession:
    """Everything one user's wizard run needs, passed to the controller."""

    user_id: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    step: WizardStep = WizardStep.INGREDIENT_SELECTION
    draft: DraftState = field(default_factory=DraftState)
    is_loading: bool = False
    loading_type: Optional[LoadingType] = None
    is_complete: bool = False
    limit_reached: bool = False
    redirect_to: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_active_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def start(
        cls,
        user_id: str,
        *,
        limit_reached: bool = False,
        initial_ingredients: Optional[List[str]] = None,
    ) -> "WizardSession":
        """New session, optionally seeded with ingredient names (e.g. from ?oldIngredients=)."""
        session = cls(user_id=user_id, limit_reached=limit_reached)
        if not limit_reached:
            seen = set()
            for name in initial_ingredients or []:
                clean = name.strip()
                if len(session.draft.ingredients) >= settings.max_ingredients:
                    break
                if clean and clean.lower() not in seen:
                    seen.add(clean.lower())
                    session.draft.ingredients.append(Ingredient(name=clean))
        return session
