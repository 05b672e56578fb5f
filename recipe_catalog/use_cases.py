"""Application operations on the recipe catalog.

Each use case owns one operation. Business rules are checked before the
repository is touched, so a rejected request never causes a partial write.
Value-object rules (name length, time range, ...) are enforced by the value
objects themselves while the recipe is built.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, TypedDict

from .errors import BusinessRuleError, NotFoundError
from .models import UPDATABLE_FIELDS, Recipe, utcnow
from .storage import RecipeRepository

MIN_DESCRIPTION_LENGTH = 10
MIN_NAME_LENGTH = 3


class CreateRecipeInput(TypedDict, total=False):
    name: str
    description: str
    ingredients: Sequence[str]
    instructions: Sequence[str]
    prep_time: int
    cook_time: int
    servings: int
    difficulty: str
    category: str
    image_url: Optional[str]


class UpdateRecipeInput(TypedDict, total=False):
    name: str
    description: str
    ingredients: Sequence[str]
    instructions: Sequence[str]
    prep_time: int
    cook_time: int
    servings: int
    difficulty: str
    category: str
    image_url: Optional[str]


class TimestampIdFactory:
    """Millisecond-timestamp ids, strictly increasing within the process."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            candidate = int(time.time() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
        return str(candidate)


timestamp_id = TimestampIdFactory()


class CreateRecipeUseCase:
    def __init__(
        self,
        repository: RecipeRepository,
        *,
        id_factory: Callable[[], str] = timestamp_id,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._id_factory = id_factory
        self._clock = clock

    def execute(self, data: CreateRecipeInput) -> Recipe:
        _check_description(data.get("description"))
        _check_steps(data.get("ingredients"), "Recipe must have at least one ingredient")
        _check_steps(data.get("instructions"), "Recipe must have at least one instruction")

        now = self._clock()
        recipe = Recipe(
            id=self._id_factory(),
            name=data.get("name"),
            description=data["description"],
            ingredients=data["ingredients"],
            instructions=data["instructions"],
            prep_time=data.get("prep_time"),
            cook_time=data.get("cook_time"),
            servings=data.get("servings"),
            difficulty=data.get("difficulty"),
            category=data.get("category"),
            image_url=data.get("image_url") or None,
            created_at=now,
            updated_at=now,
        )
        return self._repository.save(recipe)


class UpdateRecipeUseCase:
    """Apply a partial update to a stored recipe.

    Only the fields present in the patch are checked. Times and servings must
    be at least 1 here, even though a recipe may be created with a zero
    preparation or cooking time.
    """

    def __init__(
        self, repository: RecipeRepository, *, clock: Callable[[], datetime] = utcnow
    ) -> None:
        self._repository = repository
        self._clock = clock

    def execute(self, recipe_id: str, data: UpdateRecipeInput) -> Recipe:
        existing = self._repository.find_by_id(recipe_id)
        if existing is None:
            raise NotFoundError()

        unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
        if unknown:
            raise BusinessRuleError(f"Unknown recipe fields: {', '.join(unknown)}")

        name = data.get("name")
        if isinstance(name, str) and len(name.strip()) < MIN_NAME_LENGTH:
            raise BusinessRuleError(
                f"Recipe name must be at least {MIN_NAME_LENGTH} characters long"
            )

        if data.get("description") is not None:
            _check_description(data["description"])
        if data.get("ingredients") is not None:
            _check_steps(data["ingredients"], "Recipe must have at least one ingredient")
        if data.get("instructions") is not None:
            _check_steps(data["instructions"], "Recipe must have at least one instruction")

        _check_minimum(data.get("prep_time"), "Preparation time must be at least 1 minute")
        _check_minimum(data.get("cook_time"), "Cooking time must be at least 1 minute")
        _check_minimum(data.get("servings"), "Servings must be at least 1")

        updated = existing.update(data, now=self._clock())
        return self._repository.update(updated)


class DeleteRecipeUseCase:
    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self, recipe_id: str) -> bool:
        if self._repository.find_by_id(recipe_id) is None:
            raise NotFoundError()
        return self._repository.delete(recipe_id)


class GetRecipeByIdUseCase:
    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self, recipe_id: str) -> Optional[Recipe]:
        return self._repository.find_by_id(recipe_id)


class GetAllRecipesUseCase:
    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self) -> List[Recipe]:
        return self._repository.find_all()


class SearchRecipesUseCase:
    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self, query: Optional[str]) -> List[Recipe]:
        if _is_blank(query):
            return self._repository.find_all()
        return self._repository.search(query)


class FilterByCategoryUseCase:
    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self, category: Optional[str]) -> List[Recipe]:
        if _is_blank(category):
            return self._repository.find_all()
        return self._repository.find_by_category(category)


class FilterByDifficultyUseCase:
    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self, difficulty: Optional[str]) -> List[Recipe]:
        if _is_blank(difficulty):
            return self._repository.find_all()
        return self._repository.find_by_difficulty(difficulty)


class GetCategoriesUseCase:
    """Distinct categories in use, sorted."""

    def __init__(self, repository: RecipeRepository) -> None:
        self._repository = repository

    def execute(self) -> List[str]:
        return sorted({recipe.category.value for recipe in self._repository.find_all()})


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _check_description(description: Any) -> None:
    if not isinstance(description, str) or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        raise BusinessRuleError(
            f"Recipe description must be at least {MIN_DESCRIPTION_LENGTH} characters"
        )


def _check_steps(steps: Any, message: str) -> None:
    if isinstance(steps, str) or not isinstance(steps, (list, tuple)) or not steps:
        raise BusinessRuleError(message)


def _check_minimum(value: Any, message: str) -> None:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 1:
        raise BusinessRuleError(message)


__all__ = [
    "CreateRecipeInput",
    "CreateRecipeUseCase",
    "DeleteRecipeUseCase",
    "FilterByCategoryUseCase",
    "FilterByDifficultyUseCase",
    "GetAllRecipesUseCase",
    "GetCategoriesUseCase",
    "GetRecipeByIdUseCase",
    "SearchRecipesUseCase",
    "TimestampIdFactory",
    "UpdateRecipeUseCase",
    "UpdateRecipeInput",
    "timestamp_id",
]
