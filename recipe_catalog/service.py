from __future__ import annotations

from typing import List, Optional

from loguru import logger

from .errors import CatalogError
from .events import RecipeEvents
from .models import Recipe
from .storage import RecipeRepository
from .use_cases import (
    CreateRecipeInput,
    CreateRecipeUseCase,
    DeleteRecipeUseCase,
    FilterByCategoryUseCase,
    FilterByDifficultyUseCase,
    GetAllRecipesUseCase,
    GetCategoriesUseCase,
    GetRecipeByIdUseCase,
    SearchRecipesUseCase,
    UpdateRecipeInput,
    UpdateRecipeUseCase,
)


class RecipeApplicationService:
    """Entry point for callers outside the core (the web layer).

    Reads degrade to an empty result when a catalog error occurs, so a broken
    store shows an empty catalog instead of failing the request. Create and
    update re-raise, because the caller has to know nothing was written.
    Successful mutations are announced on :attr:`events`.

    Parameters
    ----------
    repository:
        Backend the use cases operate on.
    events:
        Channels to publish on. A fresh :class:`RecipeEvents` is used when
        omitted.
    """

    def __init__(
        self,
        repository: RecipeRepository,
        *,
        events: Optional[RecipeEvents] = None,
        create_use_case: Optional[CreateRecipeUseCase] = None,
        update_use_case: Optional[UpdateRecipeUseCase] = None,
    ) -> None:
        self.repository = repository
        self.events = events if events is not None else RecipeEvents()

        self._get_all = GetAllRecipesUseCase(repository)
        self._get_by_id = GetRecipeByIdUseCase(repository)
        self._create = create_use_case or CreateRecipeUseCase(repository)
        self._update = update_use_case or UpdateRecipeUseCase(repository)
        self._delete = DeleteRecipeUseCase(repository)
        self._search = SearchRecipesUseCase(repository)
        self._filter_by_category = FilterByCategoryUseCase(repository)
        self._filter_by_difficulty = FilterByDifficultyUseCase(repository)
        self._get_categories = GetCategoriesUseCase(repository)

        loaded = getattr(repository, "loaded", None)
        if loaded is not None:
            loaded.subscribe(self._on_catalog_loaded)

    def get_recipes(self) -> List[Recipe]:
        try:
            return self._get_all.execute()
        except CatalogError as exc:
            logger.error("Error getting recipes: {}", exc)
            return []

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        try:
            return self._get_by_id.execute(recipe_id)
        except CatalogError as exc:
            logger.error("Error getting recipe {}: {}", recipe_id, exc)
            return None

    def create_recipe(self, data: CreateRecipeInput) -> Recipe:
        try:
            recipe = self._create.execute(data)
        except CatalogError as exc:
            logger.error("Error creating recipe: {}", exc)
            raise
        self.events.recipe_added.publish(recipe)
        return recipe

    def update_recipe(self, recipe_id: str, data: UpdateRecipeInput) -> Recipe:
        try:
            recipe = self._update.execute(recipe_id, data)
        except CatalogError as exc:
            logger.error("Error updating recipe {}: {}", recipe_id, exc)
            raise
        self.events.recipe_updated.publish(recipe)
        return recipe

    def delete_recipe(self, recipe_id: str) -> bool:
        try:
            deleted = self._delete.execute(recipe_id)
        except CatalogError as exc:
            logger.error("Error deleting recipe {}: {}", recipe_id, exc)
            return False
        if deleted:
            self.events.recipe_deleted.publish(recipe_id)
        return deleted

    def search_recipes(self, query: Optional[str]) -> List[Recipe]:
        try:
            return self._search.execute(query)
        except CatalogError as exc:
            logger.error("Error searching recipes: {}", exc)
            return []

    def filter_by_category(self, category: Optional[str]) -> List[Recipe]:
        try:
            return self._filter_by_category.execute(category)
        except CatalogError as exc:
            logger.error("Error filtering by category: {}", exc)
            return []

    def filter_by_difficulty(self, difficulty: Optional[str]) -> List[Recipe]:
        try:
            return self._filter_by_difficulty.execute(difficulty)
        except CatalogError as exc:
            logger.error("Error filtering by difficulty: {}", exc)
            return []

    def get_categories(self) -> List[str]:
        try:
            return self._get_categories.execute()
        except CatalogError as exc:
            logger.error("Error getting categories: {}", exc)
            return []

    def _on_catalog_loaded(self, _: None) -> None:
        self.events.catalog_loaded.publish(self.get_recipes())


__all__ = ["RecipeApplicationService"]
