from __future__ import annotations

from datetime import datetime, timezone

import orjson
import pytest

from recipe_catalog.errors import PersistenceError, ValidationError
from recipe_catalog.mapper import (
    dumps_records,
    from_record,
    loads_records,
    payload_to_input,
    to_record,
)
from recipe_catalog.models import Recipe


def build_recipe(recipe_id: str = "42", **overrides) -> Recipe:
    created = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
    fields = dict(
        id=recipe_id,
        name="Lasagna",
        description="Layers of pasta and sauce",
        ingredients=["pasta", "tomato"],
        instructions=["Layer", "Bake"],
        prep_time=20,
        cook_time=45,
        servings=6,
        difficulty="medium",
        category="pasta",
        image_url=None,
        created_at=created,
        updated_at=created,
    )
    fields.update(overrides)
    return Recipe(**fields)


def test_record_uses_camel_case_keys_and_iso_dates():
    record = to_record(build_recipe())

    assert record == {
        "id": "42",
        "name": "Lasagna",
        "description": "Layers of pasta and sauce",
        "ingredients": ["pasta", "tomato"],
        "instructions": ["Layer", "Bake"],
        "prepTime": 20,
        "cookTime": 45,
        "servings": 6,
        "difficulty": "medium",
        "category": "Pasta",
        "imageUrl": None,
        "createdAt": "2024-03-01T12:30:00+00:00",
        "updatedAt": "2024-03-01T12:30:00+00:00",
    }


def test_record_round_trip_rebuilds_equal_recipe():
    recipe = build_recipe(image_url="https://example.com/lasagna.jpg")

    assert from_record(to_record(recipe)) == recipe


def test_collection_round_trip_through_json_text():
    recipes = [build_recipe("1"), build_recipe("2", name="Carbonara")]

    assert loads_records(dumps_records(recipes)) == recipes


def test_from_record_accepts_javascript_style_timestamps():
    record = to_record(build_recipe())
    record["createdAt"] = "2024-03-01T12:30:00.000Z"

    assert from_record(record).created_at == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


def test_from_record_treats_empty_image_as_absent():
    record = to_record(build_recipe())
    record["imageUrl"] = ""

    assert from_record(record).image_url is None


def test_from_record_revalidates_value_objects():
    record = to_record(build_recipe())
    record["servings"] = 0

    with pytest.raises(ValidationError, match="Servings must be at least 1"):
        from_record(record)


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("description", 123, "'description' must be a string"),
        ("id", None, "'id' must be a non-empty string"),
        ("id", 42, "'id' must be a non-empty string"),
        ("id", "  ", "'id' must be a non-empty string"),
        ("imageUrl", ["https://example.com/a.jpg"], "'imageUrl' must be a string"),
    ],
)
def test_from_record_rejects_wrongly_typed_plain_fields(field, value, message):
    record = to_record(build_recipe())
    record[field] = value

    with pytest.raises(ValidationError, match=message):
        from_record(record)


def test_image_cleared_with_empty_string_survives_round_trip():
    recipe = build_recipe(image_url="https://example.com/lasagna.jpg").update({"image_url": ""})

    assert recipe.image_url is None
    assert from_record(to_record(recipe)) == recipe


def test_from_record_reports_missing_fields():
    record = to_record(build_recipe())
    del record["difficulty"]

    with pytest.raises(ValidationError, match="difficulty"):
        from_record(record)


def test_from_record_rejects_bad_timestamps():
    record = to_record(build_recipe())
    record["updatedAt"] = "yesterday"

    with pytest.raises(ValidationError, match="Invalid timestamp"):
        from_record(record)


def test_loads_records_wraps_malformed_json():
    with pytest.raises(PersistenceError):
        loads_records("{not json")


def test_loads_records_requires_an_array():
    with pytest.raises(PersistenceError):
        loads_records(orjson.dumps({"id": "1"}).decode())


def test_payload_to_input_translates_known_keys_only():
    payload = {
        "id": "ignored",
        "name": "Pie",
        "prepTime": 5,
        "cookTime": 10,
        "imageUrl": None,
        "createdAt": "2024-01-01T00:00:00Z",
    }

    assert payload_to_input(payload) == {
        "name": "Pie",
        "prep_time": 5,
        "cook_time": 10,
        "image_url": None,
    }
