"""
Prompt construction for every generative call.

All functions here are pure: same input, same string. They never raise on
incomplete recipe data; the output is advisory text for the model, so a
missing field degrades the prompt rather than failing the request.
"""

from __future__ import annotations

import json
from typing import Iterable, List, Sequence

from app.models.recipe import DietaryPreference, Ingredient, RecipeContent, RecipeIngredient

INVALID_RECIPE_NARRATION = "The recipe data provided is not valid."

RECIPE_COUNT = 3
TAG_COUNT = 10


def _preference_values(preferences: Iterable[DietaryPreference | str]) -> List[str]:
    return [p.value if isinstance(p, DietaryPreference) else str(p) for p in preferences]


def recipe_generation_prompt(
    ingredients: Sequence[Ingredient],
    preferences: Sequence[DietaryPreference | str],
) -> str:
    ingredient_json = json.dumps(
        [{"name": i.name, "quantity": i.quantity} for i in ingredients],
        ensure_ascii=False,
    )
    prefs = _preference_values(preferences)
    restrictions = f", and these dietary restrictions: {', '.join(prefs)}" if prefs else ""

    return f"""
I have the following ingredients: {ingredient_json}{restrictions}.
Suggest {RECIPE_COUNT} different recipes that use these ingredients, each with its own flavour and style.
Return ONLY a JSON array in exactly this shape, with no text, no markdown and no code fences:
[
    {{
        "name": "Recipe name",
        "ingredients": [
            {{"name": "Ingredient name", "quantity": "Amount with unit"}}
        ],
        "instructions": [
            "First step.",
            "Next step."
        ],
        "dietaryPreference": ["Restriction 1", "Restriction 2"],
        "additionalInformation": {{
            "tips": "Helpful tips such as tools or substitutes.",
            "variations": "Ideas for variations (extra vegetables, another protein, ...).",
            "servingSuggestions": "How to serve it (sides, sauces, ...).",
            "nutritionalInformation": "Approximate calories, protein, fat and carbohydrates."
        }}
    }}
]
Draw the recipes from different cuisines. Use as many of the ingredients as possible and suggest substitutes
where a restriction or practicality calls for it. Give quantities with precise units (g, cups, teaspoons).
Write the steps clearly enough for a beginner. The JSON must be syntactically valid.
""".strip()


def image_generation_prompt(recipe_name: str, ingredients: Sequence[RecipeIngredient]) -> str:
    all_ingredients = ", ".join(f"{i.name} ({i.quantity})" for i in ingredients)
    return (
        f"Create a high-resolution, photorealistic image of the dish {recipe_name}. "
        f"Ingredients used: {all_ingredients}. "
        "Plate it attractively on a clean white plate in natural light so it looks delicious."
    )


def ingredient_validation_prompt(ingredient_name: str) -> str:
    return f"""You are an ingredient validation assistant. Review this ingredient name: {ingredient_name}
Return the result as JSON in this format:

{{ "isValid": true/false, "possibleVariations": ["variation1", "variation2", "variation3"] }}

- "isValid" is true if the ingredient is used in everyday cooking, otherwise false.
- "possibleVariations" lists 2-3 substitutes, similar ingredients, or the corrected spelling if it is misspelled.
- Return an empty array when there are no variations.
- Return JSON only, with no text or markdown.

Examples:
Input: "cheese" Output: {{ "isValid": true, "possibleVariations": ["cheddar", "mozzarella", "parmesan"] }}
Input: "breakfast" Output: {{ "isValid": false, "possibleVariations": [] }}
Input: "cuscus" Output: {{ "isValid": false, "possibleVariations": ["couscous"] }}
"""


def recipe_narration_prompt(recipe: RecipeContent | None) -> str:
    if recipe is None or not recipe.name or not recipe.ingredients or not recipe.instructions:
        return INVALID_RECIPE_NARRATION

    info = recipe.additionalInformation
    ingredient_lines = "\n".join(f"- {i.name} {i.quantity}" for i in recipe.ingredients)
    step_lines = "\n".join(f"{n}. {step}" for n, step in enumerate(recipe.instructions, start=1))

    extras = []
    if info.tips:
        extras.append(f"Tips: {info.tips}")
    if info.variations:
        extras.append(f"Variations: {info.variations}")
    if info.servingSuggestions:
        extras.append(f"Serving suggestions: {info.servingSuggestions}")
    if info.nutritionalInformation:
        extras.append(f"Nutrition: {info.nutritionalInformation}")

    return f"""Turn the following recipe into a clear, natural spoken narration.
- Sound like a professional chef: calm, confident and efficient.
- Keep explanations short and to the point, never overly emotional or wordy.
- Link the steps with smooth but brief transitions.
- Aim for 60 to 90 seconds of speech.

Recipe: {recipe.name}

Ingredients:
{ingredient_lines}

Steps:
{step_lines}

{chr(10).join(extras)}

Finish with a short, professional closing line that highlights what makes the dish appealing.
"""


def recipe_tagging_prompt(recipe: RecipeContent) -> str:
    info = recipe.additionalInformation
    ingredient_names = ", ".join(i.name for i in recipe.ingredients)

    return f"""Generate {TAG_COUNT} unique single-word tags for the recipe below as a JSON array.

Rules:
1. Return ONLY a JSON array of lowercase strings, with no text or markdown.
2. Base the tags on the recipe name, ingredients, dietary restrictions and additional information.
3. Prefer keywords people commonly search for; keep them short and easy to understand.
4. Avoid jargon; use everyday words.

Recipe name: {recipe.name}
Main ingredients: {ingredient_names}
Dietary restrictions: {', '.join(recipe.dietaryPreference)}
Additional information: tips: {info.tips}, variations: {info.variations}, serving: {info.servingSuggestions}, nutrition: {info.nutritionalInformation}
"""


def chat_assistant_system_prompt(recipe: RecipeContent) -> str:
    info = recipe.additionalInformation
    return f"""
You are a cooking recipe assistant. You may only answer questions about the following recipe.

Recipe name: {recipe.name}
Ingredients: {', '.join(f'{i.quantity} {i.name}'.strip() for i in recipe.ingredients)}
Dietary restrictions: {', '.join(recipe.dietaryPreference)}
Steps: {' / '.join(recipe.instructions)}
Tips: {info.tips}
Variations: {info.variations}
Serving suggestions: {info.servingSuggestions}
Nutrition: {info.nutritionalInformation}

Only answer questions related to this recipe (ingredient substitutions, cooking tips, serving ideas and so on).
Politely decline any other topic (science, history, entertainment, ...) and steer the user back to the recipe.
""".strip()
