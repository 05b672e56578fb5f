from __future__ import annotations

import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from loguru import logger
from werkzeug.utils import secure_filename

from .errors import NotFoundError, PersistenceError
from .mapper import dumps_records, loads_records
from .models import Recipe, utcnow
from .storage import (
    KeyValueStore,
    RecipeRepository,
    select_by_category,
    select_by_difficulty,
    select_matching,
)

DEFAULT_KEY = "recipes"


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, handy for tests and throwaway catalogs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """Keeps each key in its own ``<key>.json`` file inside ``directory``.

    Writes go through a temporary file and :func:`os.replace` so a crash
    never leaves a half-written collection behind.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"Could not read {path}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{path.stem}-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Could not write {path}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise PersistenceError(f"Could not remove {path}: {exc}") from exc

    def _path_for(self, key: str) -> Path:
        safe = secure_filename(key)
        if not safe:
            raise PersistenceError(f"Unusable storage key: {key!r}")
        return self._directory / f"{safe}.json"


class LocalStoreRecipeRepository(RecipeRepository):
    """Recipe repository persisted as one JSON array in a key-value store.

    Every operation loads the whole collection, works on it in memory and
    writes the whole collection back. When the store holds nothing under
    ``key`` the repository seeds it with :func:`sample_recipes`.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = DEFAULT_KEY,
        seed: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = key

        if seed and not self._has_data():
            self._write(sample_recipes(clock()))

    def find_all(self) -> List[Recipe]:
        return self._load()

    def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        return next((recipe for recipe in self._load() if recipe.id == recipe_id), None)

    def save(self, recipe: Recipe) -> Recipe:
        recipes = self._load()
        recipes.append(recipe)
        self._write(recipes)
        return recipe

    def update(self, recipe: Recipe) -> Recipe:
        recipes = self._load()
        for index, existing in enumerate(recipes):
            if existing.id == recipe.id:
                recipes[index] = recipe
                self._write(recipes)
                return recipe
        raise NotFoundError()

    def delete(self, recipe_id: str) -> bool:
        recipes = self._load()
        remaining = [recipe for recipe in recipes if recipe.id != recipe_id]
        if len(remaining) == len(recipes):
            return False
        self._write(remaining)
        return True

    def find_by_category(self, category: str) -> List[Recipe]:
        return select_by_category(self._load(), category)

    def find_by_difficulty(self, difficulty: str) -> List[Recipe]:
        return select_by_difficulty(self._load(), difficulty)

    def search(self, query: str) -> List[Recipe]:
        return select_matching(self._load(), query)

    def _has_data(self) -> bool:
        try:
            return bool(self._store.get_item(self._key))
        except PersistenceError as exc:
            logger.error("Could not check stored recipes under {!r}: {}", self._key, exc)
            return False

    def _load(self) -> List[Recipe]:
        try:
            payload = self._store.get_item(self._key)
            if not payload:
                return []
            return loads_records(payload)
        except PersistenceError as exc:
            logger.error("Error loading recipes from storage: {}", exc)
            return []

    def _write(self, recipes: List[Recipe]) -> None:
        try:
            self._store.set_item(self._key, dumps_records(recipes))
        except PersistenceError as exc:
            logger.error("Error saving recipes to storage: {}", exc)


def sample_recipes(now: datetime) -> List[Recipe]:
    """Starter recipes written on first run so the catalog is never empty."""

    return [
        Recipe(
            id="1",
            name="Tortilla Española",
            description="Clásica tortilla española con papas y huevo",
            ingredients=("4 papas medianas", "6 huevos", "1 cebolla", "Aceite de oliva", "Sal"),
            instructions=(
                "Pelar y cortar las papas en rodajas finas",
                "Picar la cebolla",
                "Freír las papas y la cebolla en aceite hasta que estén blandas",
                "Batir los huevos con sal",
                "Mezclar las papas escurridas con los huevos batidos",
                "Hacer la tortilla en una sartén con poco aceite",
                "Dar la vuelta y cocinar por el otro lado",
            ),
            prep_time=10,
            cook_time=20,
            servings=4,
            difficulty="easy",
            category="Española",
            image_url="https://images.unsplash.com/photo-1606923829579-0cb981a83e2e?w=800",
            created_at=now,
            updated_at=now,
        ),
        Recipe(
            id="2",
            name="Arroz Blanco",
            description="Arroz blanco sencillo y perfecto",
            ingredients=(
                "2 tazas de arroz",
                "4 tazas de agua",
                "1 cucharadita de sal",
                "2 cucharadas de aceite",
            ),
            instructions=(
                "Lavar el arroz con agua fría",
                "Poner el agua a hervir con sal",
                "Añadir el arroz y el aceite",
                "Cocinar a fuego medio durante 15-18 minutos",
                "Apagar el fuego y dejar reposar 5 minutos tapado",
                "Servir caliente",
            ),
            prep_time=5,
            cook_time=18,
            servings=4,
            difficulty="easy",
            category="Básica",
            image_url="https://images.unsplash.com/photo-1516684732162-798a0062be99?w=800",
            created_at=now,
            updated_at=now,
        ),
        Recipe(
            id="3",
            name="Tostadas con Tomate",
            description="Pan tostado con tomate, aceite y sal",
            ingredients=("4 rebanadas de pan", "2 tomates maduros", "Aceite de oliva", "Sal"),
            instructions=(
                "Tostar el pan",
                "Cortar el tomate por la mitad",
                "Frotar el tomate sobre el pan tostado",
                "Añadir un chorrito de aceite de oliva",
                "Espolvorear con sal",
                "Servir inmediatamente",
            ),
            prep_time=5,
            cook_time=3,
            servings=2,
            difficulty="easy",
            category="Desayuno",
            image_url="https://images.unsplash.com/photo-1509042239860-f550ce710b93?w=800",
            created_at=now,
            updated_at=now,
        ),
    ]


__all__ = [
    "DEFAULT_KEY",
    "JsonFileKeyValueStore",
    "LocalStoreRecipeRepository",
    "MemoryKeyValueStore",
    "sample_recipes",
]
