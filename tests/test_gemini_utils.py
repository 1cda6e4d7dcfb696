"""Tests for model-output parsing."""

import json
from types import SimpleNamespace

import pytest

from app.services.gemini_utils import (
    ParseFailure,
    candidate_recipes_validator,
    extract_first_json_value,
    get_response_text,
    get_total_tokens,
    parse_json_result,
    safe_json_loads,
    strip_code_fences,
    validate_ingredient_verdict,
    validate_tags,
)
from app.utils.exceptions import UpstreamParseError
from tests.conftest import THREE_RECIPES, THREE_RECIPES_JSON


def test_strip_code_fences():
    assert strip_code_fences('```json\n[1, 2]\n```') == "[1, 2]"
    assert strip_code_fences("```\n{}\n```") == "{}"
    assert strip_code_fences("  [1]  ") == "[1]"


def test_extract_first_json_value_skips_prose():
    text = 'Here you go: {"a": 1} hope it helps'
    assert extract_first_json_value(text) == '{"a": 1}'


def test_safe_json_loads_repairs_trailing_commas():
    assert safe_json_loads('{"a": [1, 2,],}') == {"a": [1, 2]}


def test_safe_json_loads_raises_on_garbage():
    with pytest.raises(json.JSONDecodeError):
        safe_json_loads("not json at all")


def test_fenced_recipes_parse_like_unfenced():
    validator = candidate_recipes_validator("batch-1")
    plain = parse_json_result(THREE_RECIPES_JSON, validator)
    fenced = parse_json_result(f"```json\n{THREE_RECIPES_JSON}\n```", validator)

    assert plain.ok and fenced.ok
    assert [r.model_dump() for r in plain.value] == [r.model_dump() for r in fenced.value]


def test_three_recipes_get_unique_keys():
    result = parse_json_result(THREE_RECIPES_JSON, candidate_recipes_validator("abc"))

    assert result.ok
    assert len(result.value) == 3
    assert [r.key for r in result.value] == ["abc-0", "abc-1", "abc-2"]
    assert result.value[0].ingredients[1].quantity == "200 g"
    assert result.value[1].additionalInformation.tips == ""


def test_recipes_wrapper_object_is_normalized():
    wrapped = json.dumps({"recipes": THREE_RECIPES})
    result = parse_json_result(wrapped, candidate_recipes_validator("b"))
    assert result.ok
    assert len(result.value) == 3


def test_double_nested_recipes_are_rejected():
    nested = json.dumps({"recipes": {"recipes": THREE_RECIPES}})
    result = parse_json_result(nested, candidate_recipes_validator("b"))
    assert not result.ok
    assert result.failure == ParseFailure.WRONG_SHAPE


def test_items_without_name_are_skipped():
    data = json.dumps([{"name": ""}, "oops", THREE_RECIPES[0]])
    result = parse_json_result(data, candidate_recipes_validator("b"))
    assert result.ok
    assert [r.key for r in result.value] == ["b-0"]


@pytest.mark.parametrize(
    "text, failure",
    [
        ("", ParseFailure.EMPTY),
        ("   ", ParseFailure.EMPTY),
        ("I cannot help with that", ParseFailure.INVALID_JSON),
        ('{"name": "x"}', ParseFailure.WRONG_SHAPE),
        ("[]", ParseFailure.WRONG_SHAPE),
    ],
)
def test_parse_failures_are_typed(text, failure):
    result = parse_json_result(text, candidate_recipes_validator("b"))
    assert not result.ok
    assert result.failure == failure
    assert result.raw == text


def test_unwrap_raises_with_raw_text():
    result = parse_json_result("nope", validate_tags)
    with pytest.raises(UpstreamParseError) as exc_info:
        result.unwrap()
    assert exc_info.value.raw == "nope"


def test_ingredient_verdict():
    verdict = validate_ingredient_verdict({"isValid": True, "possibleVariations": ["cheddar", " "]})
    assert verdict.isValid is True
    assert verdict.possibleVariations == ["cheddar"]

    assert validate_ingredient_verdict({"isValid": 0, "possibleVariations": "x"}).possibleVariations == []


def test_validate_tags_lowercases_and_dedupes():
    assert validate_tags(["Soup", "soup ", "Vegan"]) == ["soup", "vegan"]
    with pytest.raises(ValueError):
        validate_tags(["ok", 3])
    with pytest.raises(ValueError):
        validate_tags({"tags": ["a"]})


def test_response_text_falls_back_to_parts():
    part = SimpleNamespace(text="from parts")
    response = SimpleNamespace(text=None, candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])
    assert get_response_text(response) == "from parts"
    assert get_response_text(SimpleNamespace()) == ""


def test_total_tokens():
    assert get_total_tokens(SimpleNamespace(usage_metadata=SimpleNamespace(total_token_count=17))) == 17
    assert get_total_tokens(SimpleNamespace(usage_metadata=None)) == 0
