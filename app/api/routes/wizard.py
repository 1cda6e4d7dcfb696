"""Server-side recipe creation wizard endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from app.api.dependencies import get_reached_limit, get_recipe_gateway, get_session_store
from app.middleware.auth import get_current_user_id
from app.middleware.rate_limit import rate_limit_dependency
from app.models.recipe import CandidateRecipe, DietaryPreference, Ingredient, StoredRecipe
from app.wizard.controller import WizardController
from app.wizard.gateway import RecipeCreationGateway
from app.wizard.sessions import WizardSessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/wizard", tags=["wizard"])


class StartSessionRequest(BaseModel):
    oldIngredients: List[str] = []


class AddIngredientRequest(BaseModel):
    name: str = ""
    quantity: Optional[float] = None


class PreferencesRequest(BaseModel):
    preferences: List[DietaryPreference] = []


class SelectionRequest(BaseModel):
    keys: List[str] = []


class WizardSessionResponse(BaseModel):
    id: str
    step: int
    stepName: str
    ingredients: List[Ingredient]
    preferences: List[DietaryPreference]
    candidates: List[CandidateRecipe]
    selected: List[str]
    batchId: Optional[str] = None
    isLoading: bool
    loadingType: Optional[str] = None
    isComplete: bool
    limitReached: bool
    redirectTo: Optional[str] = None
    canGenerate: bool
    canSave: bool
    canGoNext: bool
    canGoBack: bool


class SaveResponse(BaseModel):
    session: WizardSessionResponse
    savedRecipes: List[StoredRecipe]


def _view(controller: WizardController) -> WizardSessionResponse:
    session = controller.session
    draft = session.draft
    return WizardSessionResponse(
        id=session.id,
        step=int(session.step),
        stepName=session.step.label,
        ingredients=draft.ingredients,
        preferences=draft.preferences,
        candidates=draft.candidates,
        selected=draft.selected,
        batchId=draft.batch_id,
        isLoading=session.is_loading,
        loadingType=session.loading_type.value if session.loading_type else None,
        isComplete=session.is_complete,
        limitReached=session.limit_reached,
        redirectTo=session.redirect_to,
        canGenerate=controller.can_generate,
        canSave=controller.can_save,
        canGoNext=controller.can_go_next,
        canGoBack=controller.can_go_back,
    )


def get_wizard_controller(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    store: WizardSessionStore = Depends(get_session_store),
    gateway: RecipeCreationGateway = Depends(get_recipe_gateway),
) -> WizardController:
    return WizardController(store.get(session_id, user_id), gateway)


@router.post("/sessions", response_model=WizardSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: Request,
    body: Optional[StartSessionRequest] = None,
    user_id: str = Depends(get_current_user_id),
    reached_limit: bool = Depends(get_reached_limit),
    store: WizardSessionStore = Depends(get_session_store),
    gateway: RecipeCreationGateway = Depends(get_recipe_gateway),
) -> WizardSessionResponse:
    """
    Start a wizard run.

    When the caller's AI quota is used up the session is created in the
    terminal limit-reached state and every further action is refused.
    """
    initial = body.oldIngredients if body else []
    logger.info(
        "Route /api/wizard/sessions called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/api/wizard/sessions",
            "params": {"oldIngredients": initial, "reached_limit": reached_limit},
        },
    )
    session = store.create(user_id, limit_reached=reached_limit, initial_ingredients=initial)
    return _view(WizardController(session, gateway))


@router.get("/sessions/{session_id}", response_model=WizardSessionResponse)
async def get_session(controller: WizardController = Depends(get_wizard_controller)) -> WizardSessionResponse:
    return _view(controller)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    store: WizardSessionStore = Depends(get_session_store),
) -> Response:
    store.delete(session_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/ingredients", response_model=WizardSessionResponse)
async def add_ingredient(
    body: AddIngredientRequest,
    controller: WizardController = Depends(get_wizard_controller),
) -> WizardSessionResponse:
    controller.add_ingredient(body.name, body.quantity)
    return _view(controller)


@router.delete("/sessions/{session_id}/ingredients/{ingredient_id}", response_model=WizardSessionResponse)
async def remove_ingredient(
    ingredient_id: str,
    controller: WizardController = Depends(get_wizard_controller),
) -> WizardSessionResponse:
    controller.remove_ingredient(ingredient_id)
    return _view(controller)


@router.put("/sessions/{session_id}/preferences", response_model=WizardSessionResponse)
async def set_preferences(
    body: PreferencesRequest,
    controller: WizardController = Depends(get_wizard_controller),
) -> WizardSessionResponse:
    controller.set_preferences(body.preferences)
    return _view(controller)


@router.post("/sessions/{session_id}/next", response_model=WizardSessionResponse)
async def next_step(controller: WizardController = Depends(get_wizard_controller)) -> WizardSessionResponse:
    controller.next()
    return _view(controller)


@router.post("/sessions/{session_id}/back", response_model=WizardSessionResponse)
async def previous_step(controller: WizardController = Depends(get_wizard_controller)) -> WizardSessionResponse:
    controller.back()
    return _view(controller)


@router.post("/sessions/{session_id}/edit", response_model=WizardSessionResponse)
async def edit_inputs(controller: WizardController = Depends(get_wizard_controller)) -> WizardSessionResponse:
    controller.edit_inputs()
    return _view(controller)


@router.post("/sessions/{session_id}/generate", response_model=WizardSessionResponse)
async def generate(
    _: None = Depends(rate_limit_dependency),
    controller: WizardController = Depends(get_wizard_controller),
) -> WizardSessionResponse:
    """Generate candidates from the session's ingredients and preferences."""
    await controller.generate()
    return _view(controller)


@router.put("/sessions/{session_id}/selection", response_model=WizardSessionResponse)
async def set_selection(
    body: SelectionRequest,
    controller: WizardController = Depends(get_wizard_controller),
) -> WizardSessionResponse:
    controller.set_selection(body.keys)
    return _view(controller)


@router.post("/sessions/{session_id}/save", response_model=SaveResponse)
async def save(
    session_id: str,
    _: None = Depends(rate_limit_dependency),
    controller: WizardController = Depends(get_wizard_controller),
    store: WizardSessionStore = Depends(get_session_store),
) -> SaveResponse:
    """
    Save the selected candidates and finish the run.

    The response carries the reset session one last time; the session itself
    is dropped from the store, the client moves on to the profile page.
    """
    saved = await controller.save()
    view = _view(controller)
    store.discard(session_id)
    return SaveResponse(session=view, savedRecipes=saved)
