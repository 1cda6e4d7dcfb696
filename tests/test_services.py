"""Tests for the Gemini service."""

import io
import json
import wave

import pytest

from app.models.recipe import ChatTurn, Ingredient, StoredRecipe
from app.services import gemini_service
from app.services.gemini_service import CHAT_FALLBACK_REPLY, VOICES, GeminiService, RandomVoicePolicy
from app.services.gemini_utils import ParseFailure
from app.utils.exceptions import GeminiError, TagGenerationError
from tests.conftest import THREE_RECIPES, THREE_RECIPES_JSON


class BrokenAuditLog:
    async def create(self, record):
        raise RuntimeError("database down")

    async def count_since(self, user_id, since):
        return 0


def _ingredients(*names):
    return [Ingredient(name=n) for n in names]


async def _stored(recipe_repo, index=0, owner="user-1"):
    recipe = StoredRecipe(**THREE_RECIPES[index], owner=owner)
    return await recipe_repo.add(recipe)


@pytest.mark.asyncio
async def test_generate_recipes_uses_audit_id_as_batch(gemini, fake_client, audit_log):
    fake_client.models.queue(THREE_RECIPES_JSON)

    batch = await gemini.generate_recipes(_ingredients("egg", "flour", "milk"), [], "user-1")

    assert batch.result.ok
    assert len(audit_log.records) == 1
    assert batch.batchId == audit_log.records[0].id
    keys = [c.key for c in batch.result.value]
    assert len(set(keys)) == 3
    assert all(c.batchId == batch.batchId for c in batch.result.value)

    call = fake_client.models.calls[0]
    assert call.config.max_output_tokens == 1500
    assert "egg" in call.contents


@pytest.mark.asyncio
async def test_generate_recipes_parse_failure_does_not_raise(gemini, fake_client, audit_log):
    fake_client.models.queue("Sorry, here are some ideas: pancakes!")

    batch = await gemini.generate_recipes(_ingredients("egg", "flour", "milk"), [], "user-1")

    assert not batch.result.ok
    assert batch.result.failure == ParseFailure.INVALID_JSON
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_generate_recipes_survives_audit_failure(fake_client):
    service = GeminiService(client=fake_client, audit_log=BrokenAuditLog())
    fake_client.models.queue(THREE_RECIPES_JSON)

    batch = await service.generate_recipes(_ingredients("egg", "flour", "milk"), [], "user-1")

    assert batch.result.ok
    assert batch.batchId


@pytest.mark.asyncio
async def test_generate_recipes_transport_error(gemini, fake_client, audit_log):
    fake_client.models.error = ConnectionError("network unreachable")

    with pytest.raises(GeminiError):
        await gemini.generate_recipes(_ingredients("egg"), [], "user-1")
    assert audit_log.records == []


@pytest.mark.asyncio
async def test_generate_images_in_input_order(gemini, fake_client, audit_log, recipe_repo):
    fake_client.models.queue(THREE_RECIPES_JSON)
    batch = await gemini.generate_recipes(_ingredients("egg", "flour", "milk"), [], "user-1")
    audit_log.records.clear()

    images = await gemini.generate_images(batch.result.value, "user-1")

    assert [i.name for i in images] == [r["name"] for r in THREE_RECIPES]
    assert all(i.imgLink.startswith("data:image/png;base64,") for i in images)
    assert len(fake_client.models.image_calls) == 3
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_generate_images_is_all_or_nothing(gemini, fake_client, audit_log):
    fake_client.models.queue(THREE_RECIPES_JSON)
    batch = await gemini.generate_recipes(_ingredients("egg", "flour", "milk"), [], "user-1")
    audit_log.records.clear()
    fake_client.models.image_error = ("Savory Crepes", RuntimeError("blocked by safety filter"))

    with pytest.raises(GeminiError):
        await gemini.generate_images(batch.result.value, "user-1")
    assert audit_log.records == []


@pytest.mark.asyncio
async def test_validate_ingredient(gemini, fake_client, audit_log):
    fake_client.models.queue('```json\n{"isValid": true, "possibleVariations": ["cheddar", "gouda"]}\n```')

    verdict = await gemini.validate_ingredient("cheese", "user-1")

    assert verdict.isValid is True
    assert verdict.possibleVariations == ["cheddar", "gouda"]
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_validate_ingredient_malformed_output_defaults(gemini, fake_client, audit_log):
    fake_client.models.queue("{isValid: maybe")

    verdict = await gemini.validate_ingredient("cheese", "user-1")

    assert verdict.isValid is False
    assert verdict.possibleVariations == []
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_generate_tags_updates_recipe(gemini, fake_client, audit_log, recipe_repo):
    recipe = await _stored(recipe_repo)
    tags = ["Breakfast", "pancakes", "sweet", "easy", "quick", "eggs", "milk", "flour", "brunch", "kids"]
    fake_client.models.queue(json.dumps(tags))

    result = await gemini.generate_tags(recipe, "user-1")

    assert result[0] == "breakfast"
    assert len(result) == 10
    stored = await recipe_repo.get(recipe.id)
    assert [t.tag for t in stored.tags] == result
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_generate_tags_malformed_output_raises_once(gemini, fake_client, audit_log, recipe_repo):
    recipe = await _stored(recipe_repo)
    fake_client.models.queue('{"tags": ["a", "b"]}')

    with pytest.raises(TagGenerationError):
        await gemini.generate_tags(recipe, "user-1")

    assert len(audit_log.records) == 1
    assert len(fake_client.models.calls) == 1
    assert (await recipe_repo.get(recipe.id)).tags == []


@pytest.mark.asyncio
async def test_chat_maps_history_roles(gemini, fake_client, audit_log, recipe_repo):
    recipe = await _stored(recipe_repo)
    fake_client.models.queue("Use oat milk instead.")
    history = [ChatTurn(role="user", content="Hi"), ChatTurn(role="assistant", content="Hello!")]

    reply = await gemini.chat("Can I skip the milk?", recipe, history, "user-1")

    assert reply.reply == "Use oat milk instead."
    assert reply.totalTokens == 42
    call = fake_client.models.calls[0]
    assert [c.role for c in call.contents] == ["user", "model", "user"]
    assert call.contents[-1].parts[0].text == "Can I skip the milk?"
    assert "Fluffy Pancakes" in str(call.config.system_instruction)
    assert call.config.max_output_tokens == 1000
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_chat_transport_error_returns_apology(gemini, fake_client, recipe_repo):
    recipe = await _stored(recipe_repo)
    fake_client.models.error = TimeoutError("deadline exceeded")

    reply = await gemini.chat("Hello?", recipe, [], "user-1")

    assert reply.reply == CHAT_FALLBACK_REPLY
    assert reply.totalTokens == 0


@pytest.mark.asyncio
async def test_chat_empty_output_returns_apology(gemini, fake_client, audit_log, recipe_repo):
    recipe = await _stored(recipe_repo)
    fake_client.models.queue("")

    reply = await gemini.chat("Hello?", recipe, [], "user-1")

    assert reply.reply == CHAT_FALLBACK_REPLY
    assert reply.totalTokens == 0
    assert len(audit_log.records) == 1


@pytest.mark.asyncio
async def test_get_speech_returns_wav(gemini, fake_client, audit_log, recipe_repo, voice_policy):
    recipe = await _stored(recipe_repo)
    fake_client.models.queue("Welcome to fluffy pancakes.")

    audio = await gemini.get_speech(recipe, "user-1")

    with wave.open(io.BytesIO(audio)) as wf:
        assert wf.getframerate() == 24000
        assert wf.getnchannels() == 1
        assert wf.readframes(wf.getnframes()) == fake_client.models.pcm

    speech_call = fake_client.models.calls[1]
    assert speech_call.contents == "Welcome to fluffy pancakes."
    voice = speech_call.config.speech_config.voice_config.prebuilt_voice_config.voice_name
    assert voice == "Kore"
    assert voice_policy.offered == [VOICES]
    # narration text and audio are separate upstream responses
    assert len(audit_log.records) == 2


@pytest.mark.asyncio
async def test_narration_without_text_fails(gemini, fake_client, recipe_repo):
    recipe = await _stored(recipe_repo)
    fake_client.models.queue("")

    with pytest.raises(GeminiError):
        await gemini.generate_narration(recipe, "user-1")


def test_random_voice_policy_picks_from_voices():
    import random

    policy = RandomVoicePolicy(random.Random(7))
    picks = {policy.choose(VOICES) for _ in range(200)}
    assert picks <= set(VOICES)
    assert len(picks) == len(VOICES)


def test_services_share_one_genai_client(monkeypatch):
    created = []

    class CountingClient:
        def __init__(self, api_key):
            created.append(api_key)

    monkeypatch.setattr(gemini_service.settings, "gemini_api_key", "test-key")
    monkeypatch.setattr(gemini_service.genai, "Client", CountingClient)
    gemini_service.get_genai_client.cache_clear()
    try:
        first = GeminiService().client
        second = GeminiService().client
    finally:
        gemini_service.get_genai_client.cache_clear()

    assert first is second
    assert created == ["test-key"]
