"""Shared helpers for Gemini responses: text extraction, JSON parsing, shape checks."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from app.models.recipe import CandidateRecipe, IngredientValidation
from app.utils.exceptions import UpstreamParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ParseFailure(str, Enum):
    """Why model output could not be turned into a structured value."""

    EMPTY = "empty"
    INVALID_JSON = "invalid_json"
    WRONG_SHAPE = "wrong_shape"


class ShapeError(ValueError):
    """Parsed JSON does not have the expected structure."""


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Either a parsed value or the reason parsing failed."""

    value: Optional[T] = None
    failure: Optional[ParseFailure] = None
    detail: str = ""
    raw: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T, raw: str = "") -> "ParseResult[T]":
        return cls(value=value, raw=raw)

    @classmethod
    def fail(cls, failure: ParseFailure, detail: str, raw: str = "") -> "ParseResult[T]":
        return cls(failure=failure, detail=detail, raw=raw)

    def unwrap(self) -> T:
        """Return the value or raise UpstreamParseError."""
        if self.failure is not None:
            raise UpstreamParseError(f"{self.failure.value}: {self.detail}", raw=self.raw)
        return self.value  # type: ignore[return-value]


def strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` style markdown fences."""
    t = (text or "").strip()
    t = re.sub(r"^```(?:json)?\s*", "", t, flags=re.IGNORECASE | re.MULTILINE)
    t = re.sub(r"\s*```\s*$", "", t, flags=re.MULTILINE)
    return t.strip()


def extract_first_json_value(text: str) -> str:
    """
    Best-effort extraction of a single JSON object/array from a model response.

    Handles:
    - markdown fences
    - leading/trailing prose
    - trailing garbage
    """
    t = strip_code_fences(text)
    if not t:
        return t

    if (t.startswith("{") and t.endswith("}")) or (t.startswith("[") and t.endswith("]")):
        return t

    first_obj = t.find("{")
    first_arr = t.find("[")
    if first_obj == -1 and first_arr == -1:
        return t

    start = first_obj
    if start == -1 or (first_arr != -1 and first_arr < start):
        start = first_arr

    # Very tolerant: take from start to last '}' or ']' whichever is later
    end = max(t.rfind("}"), t.rfind("]"))
    if end > start:
        return t[start : end + 1].strip()

    return t


def _strip_trailing_commas(json_text: str) -> str:
    # {"a": 1,} -> {"a": 1} and [1,2,] -> [1,2]
    return re.sub(r",(\s*[}\]])", r"\1", json_text)


def safe_json_loads(text: str) -> Any:
    """
    Parse JSON with tolerant extraction and a tiny local repair (trailing commas).
    Raises json.JSONDecodeError if still invalid.
    """
    json_text = extract_first_json_value(text)

    try:
        return json.loads(json_text)
    except json.JSONDecodeError:
        return json.loads(_strip_trailing_commas(json_text))


def parse_json_result(text: Optional[str], validator: Callable[[Any], T]) -> ParseResult[T]:
    """Parse model output and check its shape without ever raising."""
    raw = text or ""
    if not raw.strip():
        return ParseResult.fail(ParseFailure.EMPTY, "model returned no text", raw)

    try:
        data = safe_json_loads(raw)
    except json.JSONDecodeError as e:
        return ParseResult.fail(ParseFailure.INVALID_JSON, str(e), raw)

    try:
        return ParseResult.success(validator(data), raw)
    except ValueError as e:
        return ParseResult.fail(ParseFailure.WRONG_SHAPE, str(e), raw)


# ---------------------------------------------------------------------
# Shape validators
# ---------------------------------------------------------------------


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "; ".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def _as_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    text = str(value).strip()
    return [text] if text else []


def _normalize_recipe_json(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    name = _as_text(item.get("name"))
    if not name:
        return None

    ingredients: List[Dict[str, str]] = []
    raw_ingredients = item.get("ingredients")
    if isinstance(raw_ingredients, list):
        for ing in raw_ingredients:
            if isinstance(ing, dict):
                ing_name = _as_text(ing.get("name"))
                if ing_name:
                    ingredients.append({"name": ing_name, "quantity": _as_text(ing.get("quantity"))})
            elif isinstance(ing, str) and ing.strip():
                ingredients.append({"name": ing.strip(), "quantity": ""})

    info = item.get("additionalInformation")
    if not isinstance(info, dict):
        info = {}

    return {
        "name": name,
        "ingredients": ingredients,
        "instructions": _as_text_list(item.get("instructions")),
        "dietaryPreference": _as_text_list(item.get("dietaryPreference")),
        "additionalInformation": {
            "tips": _as_text(info.get("tips")),
            "variations": _as_text(info.get("variations")),
            "servingSuggestions": _as_text(info.get("servingSuggestions")),
            "nutritionalInformation": _as_text(info.get("nutritionalInformation")),
        },
    }


def recipe_items(data: Any) -> List[Any]:
    """
    Unwrap the recipe envelope.

    The canonical envelope is a bare JSON array; a single {"recipes": [...]}
    wrapper is normalized to it. Anything else is rejected.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("recipes"), list):
        return data["recipes"]
    raise ShapeError(f"expected a JSON array of recipes, got {type(data).__name__}")


def candidate_recipes_validator(batch_id: str) -> Callable[[Any], List[CandidateRecipe]]:
    """Build a validator turning parsed JSON into candidates of one batch."""

    def validate(data: Any) -> List[CandidateRecipe]:
        candidates: List[CandidateRecipe] = []
        for item in recipe_items(data):
            if not isinstance(item, dict):
                continue
            normalized = _normalize_recipe_json(item)
            if normalized is None:
                continue
            candidates.append(CandidateRecipe(**normalized, batchId=batch_id, index=len(candidates)))

        if not candidates:
            raise ShapeError("response contained no usable recipes")
        return candidates

    return validate


def validate_ingredient_verdict(data: Any) -> IngredientValidation:
    if not isinstance(data, dict):
        raise ShapeError("expected a JSON object with isValid and possibleVariations")
    variations = data.get("possibleVariations")
    return IngredientValidation(
        isValid=bool(data.get("isValid")),
        possibleVariations=_as_text_list(variations) if isinstance(variations, list) else [],
    )


def validate_tags(data: Any) -> List[str]:
    if not isinstance(data, list) or any(not isinstance(tag, str) for tag in data):
        raise ShapeError("Invalid JSON structure: expected an array of strings")

    tags: List[str] = []
    for tag in data:
        t = tag.strip().lower()
        if t and t not in tags:
            tags.append(t)
    return tags


# ---------------------------------------------------------------------
# google-genai response helpers
# ---------------------------------------------------------------------


def get_response_text(response: Any) -> str:
    """
    Robust extraction of text from google-genai responses.

    Tries:
    1) response.text
    2) response.candidates[0].content.parts[*].text
    """
    try:
        t = getattr(response, "text", None)
        if isinstance(t, str) and t.strip():
            return t
    except (ValueError, AttributeError):
        # .text raises on responses that only carry non-text parts
        pass

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        content = getattr(candidates[0], "content", None)
        for p in getattr(content, "parts", None) or []:
            pt = getattr(p, "text", None)
            if isinstance(pt, str) and pt.strip():
                return pt

    return ""


def get_total_tokens(response: Any) -> int:
    usage = getattr(response, "usage_metadata", None)
    total = getattr(usage, "total_token_count", None) if usage is not None else None
    return int(total) if isinstance(total, int) else 0


def response_debug_summary(response: Any) -> Dict[str, Any]:
    """
    Compact debug info (no huge dumps).
    Helps explain "HTTP 200 but empty text".
    """
    out: Dict[str, Any] = {}
    candidates = getattr(response, "candidates", None) or []
    out["candidates"] = len(candidates)
    if candidates:
        c0 = candidates[0]
        out["finish_reason"] = getattr(c0, "finish_reason", None)
        out["safety_ratings"] = getattr(c0, "safety_ratings", None)
        content = getattr(c0, "content", None)
        out["parts"] = len(getattr(content, "parts", None) or [])
    return out


def log_empty_response(prefix: str, response: Any) -> None:
    summary = response_debug_summary(response)
    logger.warning(f"{prefix} empty response text. summary={summary}")
