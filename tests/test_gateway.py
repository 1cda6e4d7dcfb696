"""Tests for the wizard's recipe creation gateways."""

import json

import httpx
import pytest
from fastapi import BackgroundTasks

from app.models.recipe import CandidateRecipe, DietaryPreference, Ingredient, RecipeImage, SortOption
from app.services.recipe_service import RecipeService
from app.utils.exceptions import (
    GeminiError,
    GeminiQuotaError,
    PersistenceError,
    UpstreamParseError,
    ValidationError,
)
from app.wizard.gateway import HttpRecipeCreationGateway, LocalRecipeCreationGateway
from tests.conftest import THREE_RECIPES

TAGS_JSON = json.dumps(["breakfast", "sweet", "easy"])


def _candidates(batch_id="batch-7"):
    return [CandidateRecipe(**r, batchId=batch_id, index=i) for i, r in enumerate(THREE_RECIPES)]


def _http_gateway(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return HttpRecipeCreationGateway(client=client)


@pytest.mark.asyncio
async def test_http_generate_sends_inputs_and_parses_batch():
    seen = []

    def handler(request):
        seen.append(request)
        recipes = [c.model_dump(mode="json") for c in _candidates()]
        return httpx.Response(200, json={"recipes": recipes, "batchId": "batch-7"})

    gateway = _http_gateway(handler)
    batch = await gateway.generate_recipes(
        "user-1", [Ingredient(name="egg"), Ingredient(name="milk")], [DietaryPreference.VEGAN]
    )

    assert batch.batchId == "batch-7"
    assert [r.key for r in batch.recipes] == ["batch-7-0", "batch-7-1", "batch-7-2"]
    request = seen[0]
    assert request.url.path == "/api/generate-recipes"
    assert request.headers["X-User-Id"] == "user-1"
    body = json.loads(request.content)
    assert [i["name"] for i in body["ingredients"]] == ["egg", "milk"]
    assert body["dietaryPreferences"] == ["Vegan"]


@pytest.mark.asyncio
async def test_http_save_returns_stored_recipes():
    def handler(request):
        body = json.loads(request.content)
        saved = [{**r, "id": f"r{i}", "owner": "user-1"} for i, r in enumerate(body["recipes"])]
        return httpx.Response(200, json={"savedRecipes": saved})

    gateway = _http_gateway(handler)
    saved = await gateway.save_recipes("user-1", _candidates()[:2])

    assert [r.id for r in saved] == ["r0", "r1"]
    assert saved[1].name == "Savory Crepes"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, path, exc_type",
    [
        (400, "generate", ValidationError),
        (429, "generate", GeminiQuotaError),
        (500, "generate", UpstreamParseError),
        (500, "save", PersistenceError),
        (502, "generate", GeminiError),
    ],
)
async def test_http_error_statuses(status, path, exc_type):
    gateway = _http_gateway(lambda request: httpx.Response(status, json={"error": "x", "detail": "went wrong"}))

    with pytest.raises(exc_type, match="went wrong"):
        if path == "generate":
            await gateway.generate_recipes("user-1", [Ingredient(name="egg")], [])
        else:
            await gateway.save_recipes("user-1", _candidates()[:1])


@pytest.mark.asyncio
async def test_http_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _http_gateway(handler)
    with pytest.raises(GeminiError):
        await gateway.generate_recipes("user-1", [Ingredient(name="egg")], [])


@pytest.mark.asyncio
async def test_local_generate_raises_on_unusable_output(gemini, fake_client, recipe_repo):
    gateway = LocalRecipeCreationGateway(gemini, RecipeService(gemini, recipe_repo))
    fake_client.models.queue("no recipes today")

    with pytest.raises(UpstreamParseError):
        await gateway.generate_recipes("user-1", [Ingredient(name="egg")], [])


@pytest.mark.asyncio
async def test_local_save_tags_inline_without_background_tasks(gemini, fake_client, recipe_repo):
    gateway = LocalRecipeCreationGateway(gemini, RecipeService(gemini, recipe_repo))
    fake_client.models.queue(TAGS_JSON)

    saved = await gateway.save_recipes("user-1", _candidates()[:1])

    stored = await recipe_repo.get(saved[0].id)
    assert stored.imgLink.startswith("data:image/png;base64,")
    assert [t.tag for t in stored.tags] == ["breakfast", "sweet", "easy"]
    assert stored.batchId == "batch-7"


@pytest.mark.asyncio
async def test_local_save_schedules_tagging(gemini, recipe_repo):
    tasks = BackgroundTasks()
    gateway = LocalRecipeCreationGateway(gemini, RecipeService(gemini, recipe_repo), background_tasks=tasks)

    saved = await gateway.save_recipes("user-1", _candidates()[:2])

    assert len(tasks.tasks) == 2
    assert tasks.tasks[0].args == (saved[0].id, "user-1")


@pytest.mark.asyncio
async def test_tagging_failure_is_logged_not_raised(gemini, fake_client, recipe_repo, caplog):
    service = RecipeService(gemini, recipe_repo)
    saved = await service.save(_candidates()[:1], "user-1")
    fake_client.models.queue("not tags")

    await service.tag_recipe(saved[0].id, "user-1")
    await service.tag_recipe("missing", "user-1")

    assert (await recipe_repo.get(saved[0].id)).tags == []
    assert "Tag generation failed" in caplog.text


@pytest.mark.asyncio
async def test_save_generates_images_before_storing(gemini, fake_client, recipe_repo):
    service = RecipeService(gemini, recipe_repo)
    fake_client.models.image_error = ("Savory Crepes", RuntimeError("blocked"))

    with pytest.raises(GeminiError):
        await service.save(_candidates(), "user-1")
    assert (await recipe_repo.list_recipes(SortOption.RECENT, 0, 10))[1] == 0


@pytest.mark.asyncio
async def test_save_rejects_empty_selection(gemini, recipe_repo):
    with pytest.raises(ValidationError):
        await RecipeService(gemini, recipe_repo).save([], "user-1")


class NumberedImages:
    """Returns one distinct image per recipe, in input order."""

    async def generate_images(self, recipes, user_id):
        return [RecipeImage(name=r.name, imgLink=f"data:image/png;base64,IMG{i}") for i, r in enumerate(recipes)]


@pytest.mark.asyncio
async def test_same_named_recipes_keep_their_own_images(recipe_repo):
    first, second = _candidates()[:2]
    twins = [first, second.model_copy(update={"name": first.name})]

    saved = await RecipeService(NumberedImages(), recipe_repo).save(twins, "user-1")

    assert [r.name for r in saved] == ["Fluffy Pancakes", "Fluffy Pancakes"]
    assert [r.imgLink for r in saved] == ["data:image/png;base64,IMG0", "data:image/png;base64,IMG1"]
    assert (await recipe_repo.get(saved[1].id)).imgLink.endswith("IMG1")
