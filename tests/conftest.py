"""Pytest configuration and fixtures."""

import json
from collections import deque
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.api import dependencies
from app.config import settings
from app.main import app
from app.middleware.rate_limit import rate_limit_dependency
from app.services.gemini_service import GeminiService
from app.services.repository import (
    InMemoryAiInteractionRepository,
    InMemoryIngredientRepository,
    InMemoryRecipeRepository,
)
from app.wizard.sessions import WizardSessionStore

THREE_RECIPES = [
    {
        "name": "Fluffy Pancakes",
        "ingredients": [
            {"name": "egg", "quantity": "2"},
            {"name": "flour", "quantity": "200 g"},
            {"name": "milk", "quantity": "300 ml"},
        ],
        "instructions": ["Whisk everything together.", "Fry small ladles of batter until golden."],
        "dietaryPreference": ["Vegetarian"],
        "additionalInformation": {
            "tips": "Rest the batter for 10 minutes.",
            "variations": "Add blueberries.",
            "servingSuggestions": "Serve with maple syrup.",
            "nutritionalInformation": "About 250 kcal per serving.",
        },
    },
    {
        "name": "Savory Crepes",
        "ingredients": [{"name": "egg", "quantity": "3"}, {"name": "flour", "quantity": "150 g"}],
        "instructions": ["Make a thin batter.", "Cook in a hot pan."],
        "dietaryPreference": [],
        "additionalInformation": {},
    },
    {
        "name": "Yorkshire Puddings",
        "ingredients": [{"name": "milk", "quantity": "1 cup"}, {"name": "flour", "quantity": "1 cup"}],
        "instructions": ["Heat oil in a muffin tin.", "Pour in batter and bake at 220C."],
        "dietaryPreference": ["Vegetarian"],
        "additionalInformation": {"tips": "Do not open the oven door."},
    },
]

THREE_RECIPES_JSON = json.dumps(THREE_RECIPES)


def text_response(text, total_tokens=42):
    return SimpleNamespace(
        text=text,
        candidates=[],
        usage_metadata=SimpleNamespace(total_token_count=total_tokens),
    )


def audio_response(pcm):
    part = SimpleNamespace(text=None, inline_data=SimpleNamespace(data=pcm, mime_type="audio/L16;rate=24000"))
    return SimpleNamespace(
        text=None,
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="STOP")],
        usage_metadata=None,
    )


class FakeModels:
    """Scripted stand-in for `genai.Client().models`."""

    def __init__(self):
        self.responses = deque()
        self.calls = []
        self.image_calls = []
        self.error = None
        self.image_error = None
        self.pcm = b"\x01\x00" * 240

    def queue(self, *texts):
        self.responses.extend(texts)

    def generate_content(self, *, model, contents, config=None):
        self.calls.append(SimpleNamespace(model=model, contents=contents, config=config))
        if self.error is not None:
            raise self.error
        if config is not None and getattr(config, "response_modalities", None):
            return audio_response(self.pcm)
        return text_response(self.responses.popleft() if self.responses else "")

    def generate_images(self, *, model, prompt, config=None):
        self.image_calls.append(prompt)
        if self.image_error is not None and self.image_error[0] in prompt:
            raise self.image_error[1]
        image = SimpleNamespace(image_bytes=b"\x89PNG-fake", mime_type="image/png")
        return SimpleNamespace(generated_images=[SimpleNamespace(image=image)])


class FakeGenaiClient:
    def __init__(self):
        self.models = FakeModels()


class FixedVoicePolicy:
    def __init__(self, voice="Kore"):
        self.voice = voice
        self.offered = []

    def choose(self, voices):
        self.offered.append(tuple(voices))
        return self.voice


@pytest.fixture(autouse=True)
def fast_wizard(monkeypatch):
    """No cosmetic delay between generation and the next step."""
    monkeypatch.setattr(settings, "wizard_advance_delay", 0.0)


@pytest.fixture
def fake_client():
    return FakeGenaiClient()


@pytest.fixture
def audit_log():
    return InMemoryAiInteractionRepository()


@pytest.fixture
def recipe_repo():
    return InMemoryRecipeRepository()


@pytest.fixture
def ingredient_repo():
    return InMemoryIngredientRepository(["Egg", "Flour", "Milk", "Tomato"])


@pytest.fixture
def voice_policy():
    return FixedVoicePolicy()


@pytest.fixture
def gemini(fake_client, audit_log, recipe_repo, voice_policy):
    return GeminiService(client=fake_client, audit_log=audit_log, recipes=recipe_repo, voice_policy=voice_policy)


@pytest.fixture
def session_store():
    return WizardSessionStore()


@pytest.fixture
def client(gemini, audit_log, recipe_repo, ingredient_repo, session_store):
    """Create test client wired to the fakes."""
    app.dependency_overrides[dependencies.get_gemini_service] = lambda: gemini
    app.dependency_overrides[dependencies.get_recipe_repository] = lambda: recipe_repo
    app.dependency_overrides[dependencies.get_ai_interaction_repository] = lambda: audit_log
    app.dependency_overrides[dependencies.get_ingredient_repository] = lambda: ingredient_repo
    app.dependency_overrides[dependencies.get_session_store] = lambda: session_store
    app.dependency_overrides[rate_limit_dependency] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user-1"}
