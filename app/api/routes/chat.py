"""Recipe chat assistant and narration endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import BaseModel

from app.api.dependencies import get_gemini_service, get_recipe_repository
from app.middleware.auth import get_current_user_id
from app.middleware.rate_limit import rate_limit_dependency
from app.models.recipe import ChatReply, ChatTurn
from app.services.gemini_service import GeminiService
from app.services.repository import RecipeRepository
from app.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    """Request model for chat endpoint."""

    message: str = ""
    recipeId: str = ""
    history: List[ChatTurn] = []


class TTSRequest(BaseModel):
    recipeId: str = ""


@router.post("/chat-assistant", response_model=ChatReply)
async def chat_assistant(
    request: Request,
    chat_request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    _: None = Depends(rate_limit_dependency),
    gemini: GeminiService = Depends(get_gemini_service),
    recipes: RecipeRepository = Depends(get_recipe_repository),
) -> ChatReply:
    """
    Answer a question about one stored recipe.

    - **message**: the user's question
    - **recipeId**: recipe the conversation is about
    - **history**: prior `{role, content}` turns
    """
    if not chat_request.message.strip() or not chat_request.recipeId:
        raise ValidationError("message and recipeId are required")

    logger.info(
        "Route /api/chat-assistant called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/api/chat-assistant",
            "params": {
                "recipe_id": chat_request.recipeId,
                "message": chat_request.message[:200],
                "history_length": len(chat_request.history),
            },
        },
    )

    recipe = await recipes.get(chat_request.recipeId)
    return await gemini.chat(chat_request.message, recipe, chat_request.history, user_id)


@router.post("/tts")
async def text_to_speech(
    request: Request,
    tts_request: TTSRequest,
    user_id: str = Depends(get_current_user_id),
    _: None = Depends(rate_limit_dependency),
    gemini: GeminiService = Depends(get_gemini_service),
    recipes: RecipeRepository = Depends(get_recipe_repository),
) -> Response:
    """Narrate a stored recipe; returns `audio/wav`."""
    if not tts_request.recipeId:
        raise ValidationError("recipeId is required")

    logger.info(
        "Route /api/tts called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/api/tts",
            "params": {"recipe_id": tts_request.recipeId},
        },
    )

    recipe = await recipes.get(tts_request.recipeId)
    audio = await gemini.get_speech(recipe, user_id)
    return Response(content=audio, media_type="audio/wav")
