from __future__ import annotations

import re
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set

import httpx
from loguru import logger

from .errors import NotFoundError, PersistenceError, ValidationError
from .events import OneShotEvent
from .mapper import dumps_records, loads_records
from .models import Recipe, utcnow
from .storage import (
    KeyValueStore,
    RecipeRepository,
    select_by_category,
    select_by_difficulty,
    select_matching,
)

MEALDB_BASE_URL = "https://www.themealdb.com/api/json/v1/1"
CACHE_KEY = "api_recipes_cache"
DEFAULT_CATEGORIES = ("Beef", "Chicken", "Pasta", "Seafood", "Vegetarian", "Dessert")
CATEGORY_TRANSLATIONS = {
    "Beef": "Carne",
    "Chicken": "Pollo",
    "Pasta": "Pastas",
    "Seafood": "Mariscos",
    "Vegetarian": "Vegetariano",
    "Dessert": "Postres",
}

MAX_INGREDIENT_SLOTS = 20
DEFAULT_PREP_MINUTES = 15
DEFAULT_COOK_MINUTES = 30
DEFAULT_SERVINGS = 4
FALLBACK_NAME = "Sin nombre"
FALLBACK_INSTRUCTIONS = ("Preparar según las instrucciones",)

_LINE_BREAK = re.compile(r"\r\n|\n|\r")


class ApiRecipeRepository(RecipeRepository):
    """Read-mostly catalog populated from TheMealDB and cached locally.

    On construction the cached snapshot under ``cache_key`` is loaded. When
    there is none, :meth:`refresh` runs on a daemon thread (unless
    ``autostart`` is false): it fetches ``per_category`` meals for each
    category, maps them to recipes, merges them into the in-memory
    collection, persists the result and fires :attr:`loaded` once.

    After the initial load every operation works on the in-memory collection
    and writes it back to the cache.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        client: Optional[httpx.Client] = None,
        base_url: str = MEALDB_BASE_URL,
        timeout: float = 10.0,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
        per_category: int = 3,
        translations: Optional[Mapping[str, str]] = None,
        cache_key: str = CACHE_KEY,
        autostart: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._categories = tuple(categories)
        self._per_category = per_category
        self._translations = dict(CATEGORY_TRANSLATIONS if translations is None else translations)
        self._cache_key = cache_key
        self._clock = clock

        self._lock = threading.RLock()
        self._recipes: List[Recipe] = []
        self._initialized = False
        self._fetching = False
        self._touched: Set[str] = set()
        self._deleted: Set[str] = set()
        self._thread: Optional[threading.Thread] = None

        self.loaded = OneShotEvent("recipes_loaded")

        cached = self._load_cache()
        if cached:
            self._recipes = cached
            self._initialized = True
        else:
            logger.info("No cache found, fetching from API...")
            if autostart:
                self.start_background_refresh()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def start_background_refresh(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._refresh_in_background, name="mealdb-bootstrap", daemon=True
        )
        self._thread.start()

    def wait_until_loaded(self, timeout: Optional[float] = None) -> bool:
        """Block until a running background refresh ends.

        Returns whether the repository holds an initial data set.
        """

        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self._initialized

    def refresh(self) -> List[Recipe]:
        """Fetch the remote catalog now and merge it into the collection."""

        with self._lock:
            self._fetching = True
            self._touched.clear()
            self._deleted.clear()

        try:
            logger.info("Fetching recipes from {}", self._base_url)
            fetched = self._fetch_remote()
        except Exception:
            with self._lock:
                self._fetching = False
            raise

        with self._lock:
            self._fetching = False
            if not fetched:
                logger.warning("Remote catalog returned no recipes; keeping current data")
                return list(self._recipes)

            self._recipes = self._merge(fetched)
            self._write_cache()
            self._initialized = True
            snapshot = list(self._recipes)

        logger.info("Loaded {} recipes from {}", len(fetched), self._base_url)
        self.loaded.fire()
        return snapshot

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def find_all(self) -> List[Recipe]:
        with self._lock:
            return list(self._recipes)

    def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        with self._lock:
            return next((recipe for recipe in self._recipes if recipe.id == recipe_id), None)

    def save(self, recipe: Recipe) -> Recipe:
        with self._lock:
            self._recipes.append(recipe)
            if self._fetching:
                self._touched.add(recipe.id)
            self._write_cache()
        return recipe

    def update(self, recipe: Recipe) -> Recipe:
        with self._lock:
            for index, existing in enumerate(self._recipes):
                if existing.id == recipe.id:
                    self._recipes[index] = recipe
                    if self._fetching:
                        self._touched.add(recipe.id)
                    self._write_cache()
                    return recipe
        raise NotFoundError()

    def delete(self, recipe_id: str) -> bool:
        with self._lock:
            remaining = [recipe for recipe in self._recipes if recipe.id != recipe_id]
            if len(remaining) == len(self._recipes):
                return False
            self._recipes = remaining
            if self._fetching:
                self._deleted.add(recipe_id)
                self._touched.discard(recipe_id)
            self._write_cache()
            return True

    def find_by_category(self, category: str) -> List[Recipe]:
        return select_by_category(self.find_all(), category)

    def find_by_difficulty(self, difficulty: str) -> List[Recipe]:
        return select_by_difficulty(self.find_all(), difficulty)

    def search(self, query: str) -> List[Recipe]:
        return select_matching(self.find_all(), query)

    def _refresh_in_background(self) -> None:
        try:
            self.refresh()
        except Exception:
            logger.exception("Error fetching from API")

    def _fetch_remote(self) -> List[Recipe]:
        recipes: List[Recipe] = []
        for category in self._categories:
            try:
                recipes.extend(self._fetch_category(category))
            except (httpx.HTTPError, ValueError, KeyError) as exc:
                logger.warning("Error fetching recipes for category {}: {}", category, exc)
            except Exception:
                logger.exception("Unexpected error fetching recipes for category {}", category)
        return recipes

    def _fetch_category(self, category: str) -> List[Recipe]:
        listing = self._get_meals("filter.php", {"c": category})
        recipes: List[Recipe] = []

        for meal in listing[: self._per_category]:
            details = self._get_meals("lookup.php", {"i": meal["idMeal"]})
            if not details:
                continue
            try:
                recipes.append(
                    meal_to_recipe(
                        details[0],
                        self._translations.get(category, category),
                        now=self._clock(),
                    )
                )
            except (ValidationError, TypeError, AttributeError) as exc:
                logger.warning("Skipping meal {} in {}: {}", meal.get("idMeal"), category, exc)

        return recipes

    def _get_meals(self, endpoint: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = self._client.get(f"{self._base_url}/{endpoint}", params=params)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected payload from {endpoint}")
        return payload.get("meals") or []

    def _merge(self, fetched: List[Recipe]) -> List[Recipe]:
        # Local edits made while the fetch was running win over remote data.
        local = {recipe.id: recipe for recipe in self._recipes}
        merged: List[Recipe] = []
        seen: Set[str] = set()

        for recipe in fetched:
            if recipe.id in self._deleted or recipe.id in seen:
                continue
            if recipe.id in self._touched and recipe.id in local:
                merged.append(local[recipe.id])
            else:
                merged.append(recipe)
            seen.add(recipe.id)

        merged.extend(recipe for recipe in self._recipes if recipe.id not in seen)
        return merged

    def _load_cache(self) -> List[Recipe]:
        try:
            payload = self._store.get_item(self._cache_key)
            if not payload:
                return []
            return loads_records(payload)
        except (PersistenceError, ValidationError) as exc:
            logger.error("Error loading from cache: {}", exc)
            return []

    def _write_cache(self) -> None:
        try:
            self._store.set_item(self._cache_key, dumps_records(self._recipes))
        except PersistenceError as exc:
            logger.error("Error saving to cache: {}", exc)


def meal_to_recipe(meal: Mapping[str, Any], category: str, *, now: datetime) -> Recipe:
    """Map a TheMealDB ``lookup.php`` record to a :class:`Recipe`."""

    ingredients: List[str] = []
    for slot in range(1, MAX_INGREDIENT_SLOTS + 1):
        ingredient = meal.get(f"strIngredient{slot}")
        measure = meal.get(f"strMeasure{slot}")
        if ingredient and ingredient.strip():
            ingredients.append(f"{measure or ''} {ingredient}".strip())

    instructions_text = meal.get("strInstructions") or ""
    steps = [step.strip() for step in _LINE_BREAK.split(instructions_text) if step.strip()]

    name = meal.get("strMeal") or FALLBACK_NAME

    return Recipe(
        id=str(meal["idMeal"]),
        name=name,
        description=f"Receta de {name}. {instructions_text[:150]}...",
        ingredients=ingredients,
        instructions=steps or FALLBACK_INSTRUCTIONS,
        prep_time=DEFAULT_PREP_MINUTES,
        cook_time=DEFAULT_COOK_MINUTES,
        servings=DEFAULT_SERVINGS,
        difficulty=difficulty_for(len(ingredients)),
        category=category,
        image_url=meal.get("strMealThumb") or None,
        created_at=now,
        updated_at=now,
    )


def difficulty_for(ingredient_count: int) -> str:
    if ingredient_count <= 5:
        return "easy"
    if ingredient_count >= 10:
        return "hard"
    return "medium"


__all__ = [
    "ApiRecipeRepository",
    "CACHE_KEY",
    "CATEGORY_TRANSLATIONS",
    "DEFAULT_CATEGORIES",
    "MEALDB_BASE_URL",
    "difficulty_for",
    "meal_to_recipe",
]
