from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, ClassVar, Iterable, Mapping, Optional, Tuple

from .errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _require_number(value: Any, message: str) -> float:
    # bool is an int subclass but never a meaningful quantity here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(message)
    if isinstance(value, float) and math.isnan(value):
        raise ValidationError(message)
    return value


def _is_whole(value: float) -> bool:
    return isinstance(value, int) or float(value).is_integer()


@dataclass(frozen=True)
class RecipeName:
    """Recipe title, trimmed and between 3 and 100 characters long."""

    MIN_LENGTH: ClassVar[int] = 3
    MAX_LENGTH: ClassVar[int] = 100

    value: str

    def __post_init__(self) -> None:
        value = self.value
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError("Recipe name cannot be empty")
        if not isinstance(value, str):
            raise ValidationError("Recipe name must be a string")

        trimmed = value.strip()
        if len(trimmed) < self.MIN_LENGTH:
            raise ValidationError(
                f"Recipe name must be at least {self.MIN_LENGTH} characters long"
            )
        if len(trimmed) > self.MAX_LENGTH:
            raise ValidationError(f"Recipe name cannot exceed {self.MAX_LENGTH} characters")
        object.__setattr__(self, "value", trimmed)

    @classmethod
    def create(cls, value: str) -> "RecipeName":
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CookingTime:
    """A duration in whole minutes, at most 24 hours."""

    MIN_MINUTES: ClassVar[int] = 0
    MAX_MINUTES: ClassVar[int] = 1440

    value: int

    def __post_init__(self) -> None:
        minutes = _require_number(self.value, "Cooking time must be a valid number")
        if minutes < self.MIN_MINUTES:
            raise ValidationError("Cooking time cannot be negative")
        if minutes > self.MAX_MINUTES:
            raise ValidationError(
                f"Cooking time cannot exceed {self.MAX_MINUTES} minutes (24 hours)"
            )
        if not _is_whole(minutes):
            raise ValidationError("Cooking time must be a whole number of minutes")
        object.__setattr__(self, "value", int(minutes))

    @classmethod
    def create(cls, minutes: int) -> "CookingTime":
        return cls(minutes)

    def add(self, other: "CookingTime") -> "CookingTime":
        """Return the summed duration; the sum must still fit in a day."""

        return CookingTime(self.value + other.value)

    def __str__(self) -> str:
        return f"{self.value} minutes"


@dataclass(frozen=True)
class Servings:
    """Number of portions a recipe yields, between 1 and 100."""

    MIN_SERVINGS: ClassVar[int] = 1
    MAX_SERVINGS: ClassVar[int] = 100

    value: int

    def __post_init__(self) -> None:
        servings = _require_number(self.value, "Servings must be a valid number")
        if servings < self.MIN_SERVINGS:
            raise ValidationError(f"Servings must be at least {self.MIN_SERVINGS}")
        if servings > self.MAX_SERVINGS:
            raise ValidationError(f"Servings cannot exceed {self.MAX_SERVINGS}")
        if not _is_whole(servings):
            raise ValidationError("Servings must be a whole number")
        object.__setattr__(self, "value", int(servings))

    @classmethod
    def create(cls, value: int) -> "Servings":
        return cls(value)

    def multiply(self, factor: float) -> "Servings":
        """Scale the portions, rounding halves up (3 x 1.5 gives 5)."""

        return Servings(math.floor(self.value * factor + 0.5))

    def __str__(self) -> str:
        suffix = "" if self.value == 1 else "s"
        return f"{self.value} serving{suffix}"


@dataclass(frozen=True)
class Difficulty:
    LEVELS: ClassVar[Tuple[str, ...]] = ("easy", "medium", "hard")

    value: str

    def __post_init__(self) -> None:
        if self.value not in self.LEVELS:
            raise ValidationError(
                f"Invalid difficulty level: {self.value}. Must be 'easy', 'medium', or 'hard'"
            )

    @classmethod
    def create(cls, value: str) -> "Difficulty":
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Category:
    """Free-form category; well-known names are normalized to canonical casing."""

    CANONICAL: ClassVar[Tuple[str, ...]] = (
        "Beef",
        "Chicken",
        "Pork",
        "Seafood",
        "Vegetarian",
        "Vegan",
        "Pasta",
        "Dessert",
        "Breakfast",
        "Salad",
        "Soup",
        "Appetizer",
    )

    value: str

    def __post_init__(self) -> None:
        value = self.value
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError("Category cannot be empty")
        if not isinstance(value, str):
            raise ValidationError("Category must be a string")

        trimmed = value.strip()
        lowered = trimmed.lower()
        normalized = next((name for name in self.CANONICAL if name.lower() == lowered), trimmed)
        object.__setattr__(self, "value", normalized)

    @classmethod
    def create(cls, value: str) -> "Category":
        return cls(value)

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and bool(value.strip())

    def __str__(self) -> str:
        return self.value


UPDATABLE_FIELDS: Tuple[str, ...] = (
    "name",
    "description",
    "ingredients",
    "instructions",
    "prep_time",
    "cook_time",
    "servings",
    "difficulty",
    "category",
    "image_url",
)

_VALUE_TYPES = {
    "name": RecipeName,
    "prep_time": CookingTime,
    "cook_time": CookingTime,
    "servings": Servings,
    "difficulty": Difficulty,
    "category": Category,
}


@dataclass(frozen=True)
class Recipe:
    """Aggregate root of the catalog.

    Instances are immutable. Primitive values passed for value-object fields
    are wrapped (and therefore validated) on construction, so a ``Recipe``
    never holds an invalid name, time, servings count, difficulty or category.
    """

    id: str
    name: RecipeName
    description: str
    ingredients: Tuple[str, ...]
    instructions: Tuple[str, ...]
    prep_time: CookingTime
    cook_time: CookingTime
    servings: Servings
    difficulty: Difficulty
    category: Category
    image_url: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        for name, value_type in _VALUE_TYPES.items():
            current = getattr(self, name)
            if not isinstance(current, value_type):
                object.__setattr__(self, name, value_type(current))

        object.__setattr__(self, "ingredients", _as_tuple(self.ingredients))
        object.__setattr__(self, "instructions", _as_tuple(self.instructions))
        object.__setattr__(self, "created_at", _ensure_aware(self.created_at))
        object.__setattr__(self, "updated_at", _ensure_aware(self.updated_at))

    def total_time(self) -> CookingTime:
        return self.prep_time.add(self.cook_time)

    def update(self, changes: Mapping[str, Any], *, now: Optional[datetime] = None) -> "Recipe":
        """Return a copy with ``changes`` applied and a fresh ``updated_at``.

        Keys mapped to ``None`` are treated as absent, except ``image_url``
        where ``None`` clears the image. ``id`` and ``created_at`` are never
        touched.
        """

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown recipe fields: {', '.join(sorted(unknown))}")

        provided = {
            key: value
            for key, value in changes.items()
            if value is not None or key == "image_url"
        }
        if "image_url" in provided:
            provided["image_url"] = provided["image_url"] or None

        stamp = _ensure_aware(now) if now is not None else utcnow()
        if stamp < self.updated_at:
            stamp = self.updated_at

        return replace(self, **provided, updated_at=stamp)


def _as_tuple(items: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(items, str):
        raise TypeError("Expected a sequence of strings, got a single string")
    return tuple(items)


__all__ = [
    "Category",
    "CookingTime",
    "Difficulty",
    "Recipe",
    "RecipeName",
    "Servings",
    "UPDATABLE_FIELDS",
    "utcnow",
]
