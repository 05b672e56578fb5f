from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .api_storage import MEALDB_BASE_URL, ApiRecipeRepository
from .local_storage import JsonFileKeyValueStore, LocalStoreRecipeRepository, MemoryKeyValueStore
from .storage import KeyValueStore, RecipeRepository

RECIPE_SOURCES = ("local", "api")
RECIPE_STORES = ("file", "memory", "firestore")


@dataclass(frozen=True)
class CatalogSettings:
    """Runtime configuration, usually read from the environment."""

    source: str = "local"
    store: str = "file"
    store_path: str = "./data"
    gcp_project: Optional[str] = None
    collection_name: str = "recipe_catalog"
    mealdb_base_url: str = MEALDB_BASE_URL
    mealdb_timeout: float = 10.0
    mealdb_per_category: int = 3
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.source not in RECIPE_SOURCES:
            raise ValueError(
                f"RECIPE_SOURCE must be one of {', '.join(RECIPE_SOURCES)}, got {self.source!r}"
            )
        if self.store not in RECIPE_STORES:
            raise ValueError(
                f"RECIPE_STORE must be one of {', '.join(RECIPE_STORES)}, got {self.store!r}"
            )

    @classmethod
    def from_env(cls) -> "CatalogSettings":
        """Build settings from environment variables."""

        return cls(
            source=os.environ.get("RECIPE_SOURCE", "local").strip().lower(),
            store=os.environ.get("RECIPE_STORE", "file").strip().lower(),
            store_path=os.environ.get("RECIPE_STORE_PATH", "./data"),
            gcp_project=os.environ.get("GCP_PROJECT"),
            collection_name=os.environ.get("RECIPES_COLLECTION", "recipe_catalog"),
            mealdb_base_url=os.environ.get("MEALDB_BASE_URL", MEALDB_BASE_URL),
            mealdb_timeout=float(os.environ.get("MEALDB_TIMEOUT", "10")),
            mealdb_per_category=int(os.environ.get("MEALDB_PER_CATEGORY", "3")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def build_store(settings: CatalogSettings) -> KeyValueStore:
    if settings.store == "memory":
        return MemoryKeyValueStore()
    if settings.store == "firestore":
        from .gcp_storage import FirestoreKeyValueStore

        return FirestoreKeyValueStore(
            project=settings.gcp_project, collection_name=settings.collection_name
        )
    return JsonFileKeyValueStore(settings.store_path)


def build_repository(
    settings: CatalogSettings, store: Optional[KeyValueStore] = None
) -> RecipeRepository:
    """Create the repository selected by ``settings.source``."""

    store = store if store is not None else build_store(settings)
    if settings.source == "api":
        return ApiRecipeRepository(
            store,
            base_url=settings.mealdb_base_url,
            timeout=settings.mealdb_timeout,
            per_category=settings.mealdb_per_category,
        )
    return LocalStoreRecipeRepository(store)


__all__ = ["CatalogSettings", "build_repository", "build_store"]
