from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from .models import Recipe


class RecipeRepository(Protocol):
    """Protocol describing the behaviour required by the use cases."""

    def find_all(self) -> List[Recipe]:
        """Return every stored recipe in storage order."""

    def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        """Return a single recipe or ``None`` if missing."""

    def save(self, recipe: Recipe) -> Recipe:
        """Persist a new recipe and return the stored instance."""

    def update(self, recipe: Recipe) -> Recipe:
        """Replace the stored recipe with the same id.

        Raises :class:`~recipe_catalog.errors.NotFoundError` when no stored
        recipe has that id.
        """

    def delete(self, recipe_id: str) -> bool:
        """Remove a recipe, returning ``False`` when the id is unknown."""

    def find_by_category(self, category: str) -> List[Recipe]:
        """Case-insensitive category match; a blank category matches all."""

    def find_by_difficulty(self, difficulty: str) -> List[Recipe]:
        """Case-insensitive difficulty match; a blank difficulty matches all."""

    def search(self, query: str) -> List[Recipe]:
        """Case-insensitive substring search over name, description,
        category and ingredients."""


class KeyValueStore(Protocol):
    """String key-value persistence used by both repository backends.

    Implementations raise :class:`~recipe_catalog.errors.PersistenceError`
    when the underlying medium fails.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text or ``None`` when the key is absent."""

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def remove_item(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""


def select_by_category(recipes: Iterable[Recipe], category: Optional[str]) -> List[Recipe]:
    if not category or not category.strip():
        return list(recipes)
    wanted = category.strip().lower()
    return [recipe for recipe in recipes if recipe.category.value.lower() == wanted]


def select_by_difficulty(recipes: Iterable[Recipe], difficulty: Optional[str]) -> List[Recipe]:
    if not difficulty or not difficulty.strip():
        return list(recipes)
    wanted = difficulty.strip().lower()
    return [recipe for recipe in recipes if recipe.difficulty.value == wanted]


def select_matching(recipes: Iterable[Recipe], query: str) -> List[Recipe]:
    needle = query.strip().lower()
    return [recipe for recipe in recipes if _matches(recipe, needle)]


def _matches(recipe: Recipe, needle: str) -> bool:
    return (
        needle in recipe.name.value.lower()
        or needle in recipe.description.lower()
        or needle in recipe.category.value.lower()
        or any(needle in ingredient.lower() for ingredient in recipe.ingredients)
    )


__all__ = [
    "KeyValueStore",
    "RecipeRepository",
    "select_by_category",
    "select_by_difficulty",
    "select_matching",
]
