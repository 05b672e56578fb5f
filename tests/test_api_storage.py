from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest
import respx

from recipe_catalog.api_storage import (
    CACHE_KEY,
    ApiRecipeRepository,
    difficulty_for,
    meal_to_recipe,
)
from recipe_catalog.errors import NotFoundError
from recipe_catalog.local_storage import MemoryKeyValueStore
from recipe_catalog.mapper import dumps_records, loads_records
from recipe_catalog.models import Recipe

BASE = "https://mealdb.test/api/json/v1/1"
NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def meal(meal_id: str, name: str, ingredients: int = 3, instructions: str = "Chop\r\nFry\n\nServe") -> dict:
    detail = {
        "idMeal": meal_id,
        "strMeal": name,
        "strInstructions": instructions,
        "strMealThumb": f"https://img.test/{meal_id}.jpg",
    }
    for slot in range(1, 21):
        detail[f"strIngredient{slot}"] = f"Ingredient {slot}" if slot <= ingredients else ""
        detail[f"strMeasure{slot}"] = "1 cup" if slot <= ingredients else None
    return detail


def mock_mealdb(catalog: dict, failing: tuple = ()) -> tuple:
    details = {item["idMeal"]: item for meals in catalog.values() for item in meals}

    def listing(request: httpx.Request) -> httpx.Response:
        category = request.url.params["c"]
        if category in failing:
            return httpx.Response(500)
        meals = [
            {"idMeal": item["idMeal"], "strMeal": item["strMeal"]}
            for item in catalog.get(category, [])
        ]
        return httpx.Response(200, json={"meals": meals or None})

    def lookup(request: httpx.Request) -> httpx.Response:
        found = details.get(request.url.params["i"])
        return httpx.Response(200, json={"meals": [found] if found else None})

    listing_route = respx.get(f"{BASE}/filter.php").mock(side_effect=listing)
    lookup_route = respx.get(f"{BASE}/lookup.php").mock(side_effect=lookup)
    return listing_route, lookup_route


def repository(store=None, **kwargs) -> ApiRecipeRepository:
    kwargs.setdefault("autostart", False)
    kwargs.setdefault("categories", ("Beef", "Dessert"))
    return ApiRecipeRepository(
        store if store is not None else MemoryKeyValueStore(),
        base_url=BASE,
        clock=lambda: NOW,
        **kwargs,
    )


def local_recipe(recipe_id: str, **overrides) -> Recipe:
    fields = dict(
        id=recipe_id,
        name="Homemade Soup",
        description="A soup made at home, not from the API",
        ingredients=["water", "leeks"],
        instructions=["simmer"],
        prep_time=5,
        cook_time=40,
        servings=3,
        difficulty="easy",
        category="Soup",
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Recipe(**fields)


def test_meal_mapping():
    recipe = meal_to_recipe(meal("52772", "Teriyaki Chicken", ingredients=7), "Pollo", now=NOW)

    assert recipe.id == "52772"
    assert recipe.name.value == "Teriyaki Chicken"
    assert recipe.ingredients[0] == "1 cup Ingredient 1"
    assert len(recipe.ingredients) == 7
    assert recipe.instructions == ("Chop", "Fry", "Serve")
    assert recipe.description == "Receta de Teriyaki Chicken. Chop\r\nFry\n\nServe..."
    assert recipe.prep_time.value == 15
    assert recipe.cook_time.value == 30
    assert recipe.servings.value == 4
    assert recipe.difficulty.value == "medium"
    assert recipe.category.value == "Pollo"
    assert recipe.image_url == "https://img.test/52772.jpg"


def test_meal_mapping_fallbacks():
    bare = {"idMeal": 7, "strInstructions": None, "strIngredient1": "Salt", "strMeasure1": None}

    recipe = meal_to_recipe(bare, "Carne", now=NOW)

    assert recipe.id == "7"
    assert recipe.name.value == "Sin nombre"
    assert recipe.ingredients == ("Salt",)
    assert recipe.instructions == ("Preparar según las instrucciones",)
    assert recipe.image_url is None


def test_difficulty_follows_ingredient_count():
    assert difficulty_for(0) == "easy"
    assert difficulty_for(5) == "easy"
    assert difficulty_for(6) == "medium"
    assert difficulty_for(9) == "medium"
    assert difficulty_for(10) == "hard"


def test_cached_snapshot_is_served_without_network():
    store = MemoryKeyValueStore({CACHE_KEY: dumps_records([local_recipe("c1")])})

    with respx.mock(assert_all_mocked=True) as router:
        repo = repository(store, autostart=True)

        assert [recipe.id for recipe in repo.find_all()] == ["c1"]
        assert repo.is_initialized
        assert router.calls.call_count == 0


@respx.mock
def test_refresh_fetches_maps_translates_and_persists():
    listing, lookup = mock_mealdb(
        {
            "Beef": [meal("1", "Beef Stew", 12), meal("2", "Beef Tacos", 4)],
            "Dessert": [meal("3", "Apple Pie", 8)],
        }
    )
    store = MemoryKeyValueStore()
    repo = repository(store)
    notified = []
    repo.loaded.subscribe(lambda _: notified.append(True))

    recipes = repo.refresh()

    assert [recipe.id for recipe in recipes] == ["1", "2", "3"]
    assert [recipe.category.value for recipe in recipes] == ["Carne", "Carne", "Postres"]
    assert [recipe.difficulty.value for recipe in recipes] == ["hard", "easy", "medium"]
    assert listing.call_count == 2
    assert lookup.call_count == 3
    assert loads_records(store.get_item(CACHE_KEY)) == recipes
    assert notified == [True]
    assert repo.is_initialized


@respx.mock
def test_refresh_limits_meals_per_category():
    _, lookup = mock_mealdb({"Beef": [meal(str(n), f"Beef dish {n}") for n in range(10)]})

    recipes = repository(categories=("Beef",), per_category=3).refresh()

    assert [recipe.id for recipe in recipes] == ["0", "1", "2"]
    assert lookup.call_count == 3


@respx.mock
def test_failing_category_is_skipped():
    mock_mealdb(
        {"Beef": [meal("1", "Beef Stew")], "Dessert": [meal("3", "Apple Pie")]},
        failing=("Beef",),
    )

    recipes = repository().refresh()

    assert [recipe.id for recipe in recipes] == ["3"]


@respx.mock
def test_malformed_meal_is_skipped_and_other_categories_load():
    broken = meal("1", "Beef Stew")
    broken["strIngredient1"] = 5
    mock_mealdb({"Beef": [broken], "Dessert": [meal("3", "Apple Pie")]})
    store = MemoryKeyValueStore()
    repo = repository(store)

    recipes = repo.refresh()

    assert [recipe.id for recipe in recipes] == ["3"]
    assert loads_records(store.get_item(CACHE_KEY)) == recipes
    assert repo.loaded.is_set


@respx.mock
def test_malformed_listing_skips_only_that_category():
    def listing(request: httpx.Request) -> httpx.Response:
        if request.url.params["c"] == "Beef":
            return httpx.Response(200, json={"meals": ["not-a-meal"]})
        return httpx.Response(200, json={"meals": [{"idMeal": "3", "strMeal": "Apple Pie"}]})

    respx.get(f"{BASE}/filter.php").mock(side_effect=listing)
    respx.get(f"{BASE}/lookup.php").mock(
        return_value=httpx.Response(200, json={"meals": [meal("3", "Apple Pie")]})
    )

    recipes = repository().refresh()

    assert [recipe.id for recipe in recipes] == ["3"]


@respx.mock
def test_network_errors_are_skipped_per_category():
    respx.get(f"{BASE}/filter.php").mock(side_effect=httpx.ConnectError("offline"))
    repo = repository()
    notified = []
    repo.loaded.subscribe(lambda _: notified.append(True))

    assert repo.refresh() == []
    assert notified == []
    assert not repo.is_initialized


@respx.mock
def test_meal_that_fails_validation_is_skipped():
    mock_mealdb({"Beef": [meal("1", "X" * 150), meal("2", "Beef Stew")]})

    recipes = repository(categories=("Beef",)).refresh()

    assert [recipe.id for recipe in recipes] == ["2"]


@respx.mock
def test_loaded_event_fires_once():
    mock_mealdb({"Beef": [meal("1", "Beef Stew")]})
    repo = repository(categories=("Beef",))
    notified = []
    repo.loaded.subscribe(lambda _: notified.append(True))

    repo.refresh()
    repo.refresh()

    assert notified == [True]


@respx.mock
def test_background_bootstrap_on_empty_cache():
    mock_mealdb({"Beef": [meal("1", "Beef Stew")], "Dessert": [meal("3", "Apple Pie")]})

    repo = repository(autostart=True)

    assert repo.wait_until_loaded(timeout=5)
    assert repo.loaded.is_set
    assert [recipe.id for recipe in repo.find_all()] == ["1", "3"]


def test_invalid_cache_is_ignored():
    store = MemoryKeyValueStore({CACHE_KEY: '[{"id": "1", "name": "x"}]'})

    repo = repository(store)

    assert repo.find_all() == []
    assert not repo.is_initialized


@respx.mock
def test_refresh_keeps_local_mutations_made_during_fetch():
    mock_mealdb({"Beef": [meal("1", "Beef Stew"), meal("2", "Beef Tacos")]})
    store = MemoryKeyValueStore({CACHE_KEY: dumps_records([local_recipe("2", name="Old Tacos")])})
    repo = repository(store, categories=("Beef",))

    original_fetch = repo._fetch_remote

    def fetch_while_user_edits():
        fetched = original_fetch()
        repo.save(local_recipe("mine"))
        repo.update(repo.find_by_id("2").update({"servings": 10}))
        return fetched

    repo._fetch_remote = fetch_while_user_edits
    recipes = repo.refresh()

    by_id = {recipe.id: recipe for recipe in recipes}
    assert set(by_id) == {"1", "2", "mine"}
    assert by_id["2"].name.value == "Old Tacos"
    assert by_id["2"].servings.value == 10
    assert by_id["1"].name.value == "Beef Stew"


@respx.mock
def test_refresh_respects_deletes_made_during_fetch():
    mock_mealdb({"Beef": [meal("1", "Beef Stew"), meal("2", "Beef Tacos")]})
    store = MemoryKeyValueStore({CACHE_KEY: dumps_records([local_recipe("1")])})
    repo = repository(store, categories=("Beef",))

    original_fetch = repo._fetch_remote

    def fetch_while_user_deletes():
        fetched = original_fetch()
        repo.delete("1")
        return fetched

    repo._fetch_remote = fetch_while_user_deletes

    assert [recipe.id for recipe in repo.refresh()] == ["2"]


@respx.mock
def test_untouched_cached_recipes_are_replaced_by_remote_data():
    mock_mealdb({"Beef": [meal("1", "Beef Stew")]})
    store = MemoryKeyValueStore(
        {CACHE_KEY: dumps_records([local_recipe("1", name="Stale Stew"), local_recipe("mine")])}
    )

    recipes = repository(store, categories=("Beef",)).refresh()

    assert [(recipe.id, recipe.name.value) for recipe in recipes] == [
        ("1", "Beef Stew"),
        ("mine", "Homemade Soup"),
    ]


def test_crud_works_in_memory_and_writes_back():
    store = MemoryKeyValueStore({CACHE_KEY: dumps_records([local_recipe("1")])})
    repo = repository(store)

    repo.save(local_recipe("2", category="Pasta", difficulty="hard"))
    repo.update(repo.find_by_id("1").update({"name": "Better Soup"}))

    assert [r.id for r in repo.find_by_category("PASTA")] == ["2"]
    assert [r.id for r in repo.find_by_difficulty("Hard")] == ["2"]
    assert [r.id for r in repo.search("leeks")] == ["1", "2"]
    assert repo.delete("2") is True
    assert repo.delete("2") is False
    assert [r.name.value for r in loads_records(store.get_item(CACHE_KEY))] == ["Better Soup"]


def test_update_unknown_recipe_raises():
    repo = repository(MemoryKeyValueStore({CACHE_KEY: dumps_records([local_recipe("1")])}))

    with pytest.raises(NotFoundError, match="Recipe not found"):
        repo.update(local_recipe("404"))
