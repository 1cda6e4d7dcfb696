"""
Gemini service: every generative call the recipe wizard makes.

Key design:
- One audit record per upstream response, written best-effort (a failed audit
  write is logged and never fails the caller).
- No retries. Transport failures become GeminiError; malformed output is
  reported through ParseResult or a typed exception, depending on the call.
- The SDK is synchronous, so calls run in worker threads.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import random
import uuid
import wave
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, List, Optional, Protocol, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.config import settings
from app.models.recipe import (
    AiInteractionRecord,
    CandidateRecipe,
    ChatReply,
    ChatTurn,
    DietaryPreference,
    Ingredient,
    IngredientValidation,
    RecipeContent,
    RecipeImage,
    StoredRecipe,
)
from app.services import prompt_builder
from app.services.gemini_utils import (
    ParseResult,
    candidate_recipes_validator,
    get_response_text,
    get_total_tokens,
    log_empty_response,
    parse_json_result,
    validate_ingredient_verdict,
    validate_tags,
)
from app.services.repository import AiInteractionRepository, RecipeRepository
from app.utils.exceptions import GeminiError, GeminiQuotaError, TagGenerationError

logger = logging.getLogger(__name__)

CHAT_FALLBACK_REPLY = "Sorry, I had trouble responding."

# Prebuilt Gemini TTS voices
VOICES = ("Kore", "Puck", "Charon", "Fenrir", "Aoede", "Zephyr")

# Gemini TTS returns raw 16-bit mono PCM at 24 kHz
TTS_SAMPLE_RATE = 24000
TTS_SAMPLE_WIDTH = 2
TTS_CHANNELS = 1


class VoicePolicy(Protocol):
    def choose(self, voices: Sequence[str]) -> str: ...


class RandomVoicePolicy:
    """Uniform random voice per narration."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def choose(self, voices: Sequence[str]) -> str:
        return self._rng.choice(list(voices))


@dataclass(frozen=True)
class RecipeBatch:
    """Outcome of one recipe generation call."""

    batchId: str
    result: ParseResult[List[CandidateRecipe]]


@lru_cache(maxsize=1)
def get_genai_client() -> genai.Client:
    """One client per process; services are built per request."""
    return genai.Client(api_key=settings.gemini_api_key)


def pcm_to_wav(pcm: bytes) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(TTS_CHANNELS)
        wf.setsampwidth(TTS_SAMPLE_WIDTH)
        wf.setframerate(TTS_SAMPLE_RATE)
        wf.writeframes(pcm)
    return buf.getvalue()


def _response_payload(response: Any) -> Any:
    """Serializable snapshot of an SDK response for the audit log."""
    dump = getattr(response, "model_dump", None)
    if callable(dump):
        try:
            return dump(mode="json", exclude_none=True)
        except Exception:
            logger.debug("Could not dump response for audit", exc_info=True)
    return get_response_text(response)


class GeminiService:
    """Service for interacting with Gemini API."""

    def __init__(
        self,
        client: Optional[genai.Client] = None,
        audit_log: Optional[AiInteractionRepository] = None,
        recipes: Optional[RecipeRepository] = None,
        voice_policy: Optional[VoicePolicy] = None,
    ) -> None:
        self._client = client
        self.audit_log = audit_log
        self.recipes = recipes
        self.voice_policy: VoicePolicy = voice_policy or RandomVoicePolicy()

    @property
    def client(self) -> genai.Client:
        """The injected client, or the shared process-wide one on first use."""
        if self._client is None:
            self._client = get_genai_client()
        return self._client

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    async def generate_recipes(
        self,
        ingredients: Sequence[Ingredient],
        preferences: Sequence[DietaryPreference | str],
        user_id: str,
    ) -> RecipeBatch:
        """
        Ask for three recipes built from the given ingredients.

        Malformed output does not raise: the batch carries a failed ParseResult
        and the raw text is logged. Only transport failures raise GeminiError.
        """
        prompt = prompt_builder.recipe_generation_prompt(ingredients, preferences)
        model = settings.gemini_text_model

        logger.info("Generating recipes from %d ingredients", len(ingredients))
        response = await self._generate_text(
            model=model, contents=prompt, max_tokens=settings.recipe_max_tokens, op="generate_recipes"
        )

        record_id = await self._save_interaction(user_id, prompt, _response_payload(response), model)
        batch_id = record_id or str(uuid.uuid4())

        text = get_response_text(response)
        if not text:
            log_empty_response("generate_recipes", response)

        result = parse_json_result(text, candidate_recipes_validator(batch_id))
        if not result.ok:
            logger.error(
                "Failed to parse generated recipes (%s): %s",
                result.failure.value if result.failure else "",
                result.detail,
                extra={"raw_content": result.raw[:2000], "batch_id": batch_id},
            )
        else:
            logger.info("Generated %d candidate recipes (batch=%s)", len(result.value or []), batch_id)

        return RecipeBatch(batchId=batch_id, result=result)

    async def generate_images(self, recipes: Sequence[RecipeContent], user_id: str) -> List[RecipeImage]:
        """
        One image per recipe, generated concurrently.

        All-or-nothing: if any image fails the whole batch raises GeminiError.
        Images come back as base64 data URLs, in input order.
        """
        if not recipes:
            return []

        model = settings.gemini_image_model
        logger.info("Generating %d recipe images", len(recipes))

        responses = await asyncio.gather(*[self._generate_image(model, recipe) for recipe in recipes])

        images: List[RecipeImage] = []
        for recipe, response in zip(recipes, responses):
            images.append(RecipeImage(name=recipe.name, imgLink=self._image_data_url(response, recipe.name)))

        names = ", ".join(r.name for r in recipes)
        await self._save_interaction(
            user_id,
            f"Image generation for recipe names {names} (note: not exact prompt)",
            [{"name": img.name, "bytes": len(img.imgLink)} for img in images],
            model,
        )
        return images

    async def validate_ingredient(self, ingredient_name: str, user_id: str) -> IngredientValidation:
        """Check whether a name is a real ingredient; malformed output means not valid."""
        prompt = prompt_builder.ingredient_validation_prompt(ingredient_name)
        model = settings.gemini_text_model

        response = await self._generate_text(
            model=model, contents=prompt, max_tokens=settings.validation_max_tokens, op="validate_ingredient"
        )
        await self._save_interaction(user_id, prompt, _response_payload(response), model)

        result = parse_json_result(get_response_text(response), validate_ingredient_verdict)
        if not result.ok:
            logger.warning(
                "Ingredient validation output unusable for %r: %s",
                ingredient_name,
                result.detail,
                extra={"raw_content": result.raw[:500]},
            )
            return IngredientValidation()
        return result.value  # type: ignore[return-value]

    async def generate_narration(self, recipe: RecipeContent, user_id: str) -> str:
        prompt = prompt_builder.recipe_narration_prompt(recipe)
        model = settings.gemini_text_model

        logger.info("Getting recipe narration text for %s", recipe.name)
        response = await self._generate_text(
            model=model, contents=prompt, max_tokens=settings.narration_max_tokens, op="generate_narration"
        )
        await self._save_interaction(user_id, prompt, _response_payload(response), model)

        text = get_response_text(response).strip()
        if not text:
            log_empty_response("generate_narration", response)
            raise GeminiError("Unable to get text for recipe narration")
        return text

    async def get_speech(self, recipe: RecipeContent, user_id: str) -> bytes:
        """Narrate a recipe and return the audio as WAV bytes."""
        text = await self.generate_narration(recipe, user_id)
        voice = self.voice_policy.choose(VOICES)
        model = settings.gemini_tts_model

        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
                )
            ),
        )

        logger.info("Getting recipe narration audio (voice=%s)", voice)
        try:
            response = await asyncio.wait_for(
                self._call(
                    lambda: self.client.models.generate_content(model=model, contents=text, config=config),
                    op="get_speech",
                ),
                timeout=settings.narration_audio_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Narration audio timed out after %.1fs", settings.narration_audio_timeout)
            raise GeminiError("Timed out generating narration audio") from e

        pcm = self._inline_audio(response)
        await self._save_interaction(user_id, text, {"voice": voice, "audioBytes": len(pcm)}, model)
        return pcm_to_wav(pcm)

    async def generate_tags(self, recipe: StoredRecipe, user_id: str) -> List[str]:
        """
        Derive lowercase search tags and store them on the recipe.

        Raises TagGenerationError when the output is not a JSON array of strings.
        """
        prompt = prompt_builder.recipe_tagging_prompt(recipe)
        model = settings.gemini_text_model

        response = await self._generate_text(
            model=model, contents=prompt, max_tokens=settings.tagging_max_tokens, op="generate_tags"
        )
        await self._save_interaction(user_id, prompt, _response_payload(response), model)

        result = parse_json_result(get_response_text(response), validate_tags)
        if not result.ok:
            logger.error(
                "Failed to parse tags for recipe %s: %s",
                recipe.id,
                result.detail,
                extra={"raw_content": result.raw[:500]},
            )
            raise TagGenerationError(f"Failed to parse tags from model response: {result.detail}", raw=result.raw)

        tags = result.value or []
        if tags and self.recipes is not None:
            logger.info("Adding tags %s to recipe %s", tags, recipe.name)
            await self.recipes.update_tags(recipe.id, tags)
        return tags

    async def chat(
        self,
        message: str,
        recipe: RecipeContent,
        history: Sequence[ChatTurn],
        user_id: str,
    ) -> ChatReply:
        """Answer a question about one recipe. Never raises."""
        model = settings.gemini_text_model
        contents = [
            types.Content(
                role="model" if turn.role in ("assistant", "model") else "user",
                parts=[types.Part(text=turn.content)],
            )
            for turn in history
            if turn.role != "system" and turn.content
        ]
        contents.append(types.Content(role="user", parts=[types.Part(text=message)]))

        try:
            response = await self._call(
                lambda: self.client.models.generate_content(
                    model=model,
                    contents=contents,
                    config=types.GenerateContentConfig(
                        system_instruction=prompt_builder.chat_assistant_system_prompt(recipe),
                        max_output_tokens=settings.chat_max_tokens,
                    ),
                ),
                op="chat",
            )
        except GeminiError as e:
            logger.error("Failed to generate chat response: %s", str(e))
            return ChatReply(reply=CHAT_FALLBACK_REPLY, totalTokens=0)

        await self._save_interaction(
            user_id,
            f"Chat for recipe: {recipe.name}, message: {message}",
            _response_payload(response),
            model,
        )

        reply = get_response_text(response).strip()
        if not reply:
            log_empty_response("chat", response)
            return ChatReply(reply=CHAT_FALLBACK_REPLY, totalTokens=0)
        return ChatReply(reply=reply, totalTokens=get_total_tokens(response))

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    async def _call(self, fn: Callable[[], Any], *, op: str) -> Any:
        """Run a blocking SDK call in a thread and normalize its failures."""
        try:
            return await asyncio.to_thread(fn)
        except genai_errors.APIError as e:
            logger.error("Gemini %s failed (code=%s): %s", op, e.code, e.message)
            if e.code == 429:
                raise GeminiQuotaError("The AI service is over capacity, try again later") from e
            raise GeminiError(f"AI service call failed: {e.message}") from e
        except GeminiError:
            raise
        except Exception as e:
            logger.error("Gemini %s failed: %s", op, str(e), exc_info=True)
            raise GeminiError(f"AI service call failed: {str(e)}") from e

    async def _generate_text(self, *, model: str, contents: Any, max_tokens: int, op: str) -> Any:
        return await self._call(
            lambda: self.client.models.generate_content(
                model=model,
                contents=contents,
                config=types.GenerateContentConfig(max_output_tokens=max_tokens),
            ),
            op=op,
        )

    async def _generate_image(self, model: str, recipe: RecipeContent) -> Any:
        prompt = prompt_builder.image_generation_prompt(recipe.name, recipe.ingredients)
        return await self._call(
            lambda: self.client.models.generate_images(
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=1, aspect_ratio="1:1"),
            ),
            op="generate_images",
        )

    @staticmethod
    def _image_data_url(response: Any, recipe_name: str) -> str:
        generated = getattr(response, "generated_images", None) or []
        image = getattr(generated[0], "image", None) if generated else None
        data = getattr(image, "image_bytes", None)
        if not data:
            raise GeminiError(f"No image returned for recipe {recipe_name}")
        mime = getattr(image, "mime_type", None) or "image/png"
        return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

    @staticmethod
    def _inline_audio(response: Any) -> bytes:
        candidates = getattr(response, "candidates", None) or []
        if candidates:
            content = getattr(candidates[0], "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                data = getattr(inline, "data", None)
                if data:
                    return data
        log_empty_response("get_speech", response)
        raise GeminiError("AI service returned no audio")

    async def _save_interaction(self, user_id: str, prompt: str, response: Any, model: str) -> Optional[str]:
        """Persist one audit record; returns its id, or None if the write failed."""
        if self.audit_log is None:
            return None
        try:
            return await self.audit_log.create(
                AiInteractionRecord(userId=user_id, prompt=prompt, response=response, model=model)
            )
        except Exception as e:
            logger.error("Failed to save AI interaction to db: %s", str(e), exc_info=True)
            return None
