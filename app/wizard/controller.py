"""
Wizard controller: the five-step recipe creation flow.

Steps move one at a time. Navigation that would leave the valid range, or
leave review-and-generate with nothing generated, is a silent no-op. Input
that breaks a rule (blank or duplicate ingredient, too many ingredients,
edits after generation) raises ValidationError / WizardStateError and leaves
the session untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from app.config import Settings, settings as default_settings
from app.models.recipe import DietaryPreference, Ingredient, StoredRecipe
from app.utils.exceptions import QuotaExceededError, UpstreamParseError, ValidationError, WizardStateError
from app.wizard.gateway import RecipeCreationGateway
from app.wizard.state import LoadingType, WizardSession, WizardStep

logger = logging.getLogger(__name__)

PROFILE_PATH = "/Profile"


class WizardController:
    def __init__(
        self,
        session: WizardSession,
        gateway: RecipeCreationGateway,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.settings = settings or default_settings
        self._sleep = sleep

    @property
    def draft(self):
        return self.session.draft

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _ensure_active(self) -> None:
        if self.session.limit_reached:
            raise QuotaExceededError(
                "You have reached the maximum number of interactions with our AI services. "
                "Please try again later."
            )

    def _ensure_editable(self) -> None:
        self._ensure_active()
        if self.session.is_loading:
            raise WizardStateError("Wait for the current request to finish")
        if self.draft.has_candidates:
            raise WizardStateError("Ingredients and preferences are locked once recipes are generated")

    @property
    def can_generate(self) -> bool:
        return (
            not self.session.limit_reached
            and self.session.step == WizardStep.REVIEW_AND_GENERATE
            and len(self.draft.ingredients) >= self.settings.min_ingredients
            and not self.draft.has_candidates
            and not self.session.is_loading
        )

    @property
    def can_save(self) -> bool:
        return (
            not self.session.limit_reached
            and self.session.step == WizardStep.REVIEW_AND_SAVE
            and bool(self.draft.selected)
            and not self.session.is_loading
        )

    @property
    def can_go_next(self) -> bool:
        step = self.session.step
        if self.session.is_loading or step.is_last:
            return False
        if step == WizardStep.REVIEW_AND_GENERATE and not self.draft.has_candidates:
            return False
        return True

    @property
    def can_go_back(self) -> bool:
        return not self.session.is_loading and not self.session.step.is_first

    # ------------------------------------------------------------------
    # Ingredients and preferences
    # ------------------------------------------------------------------

    def add_ingredient(self, name: str, quantity: Optional[float] = None) -> Ingredient:
        self._ensure_editable()

        clean = (name or "").strip()
        if not clean:
            raise ValidationError("Please enter an ingredient name")
        if any(i.name.lower() == clean.lower() for i in self.draft.ingredients):
            raise ValidationError(f"{clean} is already in the list")
        if len(self.draft.ingredients) >= self.settings.max_ingredients:
            raise ValidationError(f"You can add at most {self.settings.max_ingredients} ingredients")

        ingredient = Ingredient(name=clean, quantity=quantity)
        self.draft.ingredients.append(ingredient)
        return ingredient

    def remove_ingredient(self, ingredient_id: str) -> bool:
        self._ensure_active()
        if self.draft.has_candidates or self.session.is_loading:
            return False
        before = len(self.draft.ingredients)
        self.draft.ingredients = [i for i in self.draft.ingredients if i.id != ingredient_id]
        return len(self.draft.ingredients) != before

    def toggle_preference(self, preference: DietaryPreference | str) -> List[DietaryPreference]:
        self._ensure_editable()
        pref = _preference(preference)
        if pref in self.draft.preferences:
            self.draft.preferences = [p for p in self.draft.preferences if p != pref]
        else:
            self.draft.preferences.append(pref)
        return list(self.draft.preferences)

    def set_preferences(self, preferences: Iterable[DietaryPreference | str]) -> List[DietaryPreference]:
        self._ensure_editable()
        chosen: List[DietaryPreference] = []
        for p in preferences:
            pref = _preference(p)
            if pref not in chosen:
                chosen.append(pref)
        self.draft.preferences = chosen
        return list(chosen)

    def clear_preferences(self) -> None:
        self._ensure_editable()
        self.draft.preferences = []

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next(self) -> WizardStep:
        self._ensure_active()
        if self.can_go_next:
            self.session.step = WizardStep(self.session.step + 1)
        return self.session.step

    def back(self) -> WizardStep:
        self._ensure_active()
        if self.can_go_back:
            self.session.step = WizardStep(self.session.step - 1)
        return self.session.step

    def edit_inputs(self) -> WizardStep:
        """Jump back to ingredient entry; only before anything was generated."""
        self._ensure_active()
        if not self.session.is_loading and not self.draft.has_candidates:
            self.session.step = WizardStep.INGREDIENT_SELECTION
        return self.session.step

    # ------------------------------------------------------------------
    # Generation, selection, save
    # ------------------------------------------------------------------

    async def generate(self) -> None:
        self._ensure_active()
        if not self.can_generate:
            raise WizardStateError(
                f"Recipes can be generated once, from the review step, with at least "
                f"{self.settings.min_ingredients} ingredients"
            )

        session = self.session
        session.is_loading = True
        session.is_complete = False
        session.loading_type = LoadingType.GENERATION
        try:
            batch = await self.gateway.generate_recipes(
                session.user_id, list(self.draft.ingredients), list(self.draft.preferences)
            )
            if not batch.recipes:
                raise UpstreamParseError("Recipe generation returned no recipes")
        except Exception:
            session.is_loading = False
            session.loading_type = None
            logger.warning("Recipe generation failed for session %s", session.id, exc_info=True)
            raise

        self.draft.candidates = list(batch.recipes)
        self.draft.batch_id = batch.batchId
        self.draft.selected = []
        session.is_complete = True
        logger.info("Session %s received %d candidates", session.id, len(batch.recipes))

        await self._sleep(self.settings.wizard_advance_delay)
        session.is_loading = False
        session.loading_type = None
        session.step = WizardStep.RECIPE_SELECTION

    def toggle_selection(self, key: str) -> List[str]:
        self._ensure_active()
        self._check_keys([key])
        if key in self.draft.selected:
            self.draft.selected = [k for k in self.draft.selected if k != key]
        else:
            self.draft.selected.append(key)
        return list(self.draft.selected)

    def set_selection(self, keys: Iterable[str]) -> List[str]:
        self._ensure_active()
        unique: List[str] = []
        for key in keys:
            if key not in unique:
                unique.append(key)
        self._check_keys(unique)
        self.draft.selected = unique
        return list(unique)

    def _check_keys(self, keys: Iterable[str]) -> None:
        if self.session.is_loading:
            raise WizardStateError("Wait for the current request to finish")
        known = set(self.draft.candidate_keys())
        unknown = [k for k in keys if k not in known]
        if unknown:
            raise ValidationError(f"Unknown recipe selection: {', '.join(unknown)}")

    async def save(self) -> List[StoredRecipe]:
        self._ensure_active()
        if not self.can_save:
            raise WizardStateError("Select at least one recipe on the final step to save")

        session = self.session
        session.is_loading = True
        session.is_complete = False
        session.loading_type = LoadingType.SAVING
        try:
            saved = await self.gateway.save_recipes(session.user_id, self.draft.selected_candidates())
        except Exception:
            session.is_loading = False
            session.loading_type = None
            logger.warning("Saving recipes failed for session %s", session.id, exc_info=True)
            raise

        session.is_complete = True
        await self._sleep(self.settings.wizard_advance_delay)

        self.draft.clear()
        session.step = WizardStep.INGREDIENT_SELECTION
        session.is_loading = False
        session.loading_type = None
        session.redirect_to = PROFILE_PATH
        logger.info("Session %s saved %d recipes", session.id, len(saved))
        return saved


def _preference(value: DietaryPreference | str) -> DietaryPreference:
    try:
        return DietaryPreference(value)
    except ValueError:
        raise ValidationError(f"Unknown dietary preference: {value}") from None
