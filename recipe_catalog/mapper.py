"""Conversion between :class:`Recipe` aggregates and their stored records.

Records use the camelCase field names shared by both storage backends and the
JSON web surface::

    {id, name, description, ingredients, instructions, prepTime, cookTime,
     servings, difficulty, category, imageUrl, createdAt, updatedAt}

Dates are written as ISO-8601 strings. Loading a record builds every value
object again, so a corrupted record raises :class:`ValidationError` instead of
producing a half-valid recipe.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import orjson

from .errors import PersistenceError, ValidationError
from .models import Recipe

RECORD_FIELDS = {
    "name": "name",
    "description": "description",
    "ingredients": "ingredients",
    "instructions": "instructions",
    "prepTime": "prep_time",
    "cookTime": "cook_time",
    "servings": "servings",
    "difficulty": "difficulty",
    "category": "category",
    "imageUrl": "image_url",
}


def to_record(recipe: Recipe) -> Dict[str, Any]:
    return {
        "id": recipe.id,
        "name": recipe.name.value,
        "description": recipe.description,
        "ingredients": list(recipe.ingredients),
        "instructions": list(recipe.instructions),
        "prepTime": recipe.prep_time.value,
        "cookTime": recipe.cook_time.value,
        "servings": recipe.servings.value,
        "difficulty": recipe.difficulty.value,
        "category": recipe.category.value,
        "imageUrl": recipe.image_url,
        "createdAt": recipe.created_at.isoformat(),
        "updatedAt": recipe.updated_at.isoformat(),
    }


def from_record(record: Mapping[str, Any]) -> Recipe:
    if not isinstance(record, Mapping):
        raise ValidationError(f"Stored recipe must be an object, got {type(record).__name__}")

    try:
        return Recipe(
            id=_identifier(record["id"]),
            name=record["name"],
            description=_string(record["description"], "description"),
            ingredients=_string_list(record["ingredients"], "ingredients"),
            instructions=_string_list(record["instructions"], "instructions"),
            prep_time=record["prepTime"],
            cook_time=record["cookTime"],
            servings=record["servings"],
            difficulty=record["difficulty"],
            category=record["category"],
            image_url=_image_url(record.get("imageUrl")),
            created_at=_parse_timestamp(record["createdAt"]),
            updated_at=_parse_timestamp(record["updatedAt"]),
        )
    except KeyError as exc:
        raise ValidationError(f"Stored recipe is missing field {exc.args[0]!r}") from exc


def dumps_records(recipes: Iterable[Recipe]) -> str:
    return orjson.dumps([to_record(recipe) for recipe in recipes]).decode("utf-8")


def loads_records(payload: str) -> List[Recipe]:
    """Parse a stored collection.

    Malformed JSON raises :class:`PersistenceError`; well-formed JSON holding
    invalid recipes raises :class:`ValidationError`.
    """

    try:
        records = orjson.loads(payload)
    except orjson.JSONDecodeError as exc:
        raise PersistenceError(f"Stored recipes are not valid JSON: {exc}") from exc

    if not isinstance(records, list):
        raise PersistenceError("Stored recipes must be a JSON array")

    return [from_record(record) for record in records]


def payload_to_input(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate a camelCase request payload into use-case input keys.

    Keys that are not editable recipe fields (``id``, ``createdAt``...) are
    dropped.
    """

    return {RECORD_FIELDS[key]: value for key, value in payload.items() if key in RECORD_FIELDS}


def _identifier(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Stored recipe field 'id' must be a non-empty string")
    return value


def _string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"Stored recipe field {field_name!r} must be a string")
    return value


def _image_url(value: Any) -> Optional[str]:
    if value is None:
        return None
    return _string(value, "imageUrl") or None


def _string_list(value: Any, field_name: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"Stored recipe field {field_name!r} must be a list of strings")
    return value


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid timestamp: {value!r}") from exc


__all__ = [
    "RECORD_FIELDS",
    "dumps_records",
    "from_record",
    "loads_records",
    "payload_to_input",
    "to_record",
]
