import asyncio
from datetime import datetime, timezone

import pytest
import yaml

from core.exceptions import RecipeStoreError
from features.recipe.store import RecipeStore, parse_recipe_file


def test_ensure_file_creates_empty_catalog(tmp_path):
    store = RecipeStore(str(tmp_path / "data" / "recipes.yaml"))
    asyncio.run(store.ensure_file())

    with open(store.file_path, encoding="utf-8") as f:
        assert yaml.safe_load(f) == {"version": 1, "recipes": []}
    assert asyncio.run(store.list_recipes()) == []


def test_save_twice_and_reload(tmp_path):
    path = tmp_path / "recipes.yaml"
    store = RecipeStore(str(path))

    async def scenario():
        await store.save_completed_recipe("Banana Bread", "first version")
        await store.save_completed_recipe("banana bread", "second version")
        await store.save_completed_recipe("Apple Pie", "pie")

    asyncio.run(scenario())

    reloaded = asyncio.run(RecipeStore(str(path)).list_recipes())
    assert [entry.dish_key for entry in reloaded] == ["apple pie", "banana bread"]
    banana = reloaded[1]
    assert banana.times_cooked == 2
    assert banana.recipe_text == "second version"
    assert banana.dish == "banana bread"


def test_find_and_lookup(tmp_path):
    store = RecipeStore(str(tmp_path / "recipes.yaml"))

    async def scenario():
        await store.save_completed_recipe("Fluffy Pancakes", "Whisk and fry.")
        return (
            await store.find_by_dish("fluffy pancakes"),
            await store.find_by_dish("pancakes fluffy"),
            await store.lookup_by_dish("pancakes fluffy"),
        )

    exact, missing, fuzzy = asyncio.run(scenario())

    assert exact.dish == "Fluffy Pancakes"
    assert missing is None
    assert fuzzy.match_type == "fuzzy"


def test_concurrent_saves_are_serialized(tmp_path):
    store = RecipeStore(str(tmp_path / "recipes.yaml"))

    async def scenario():
        await asyncio.gather(*[
            store.save_completed_recipe("Toast", f"version {index}") for index in range(5)
        ])
        return await store.list_recipes()

    entries = asyncio.run(scenario())

    assert len(entries) == 1
    assert entries[0].times_cooked == 5


def test_parse_recipe_file_is_tolerant():
    raw = {
        "version": 1,
        "recipes": [
            {
                "dish": "Soup",
                "dishKey": "soup",
                "recipe": "Boil.",
                "completedAt": datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
                "timesCooked": 0,
            },
            {"dish": "Stew", "recipe": "Simmer.", "completed_at": "not a date", "times_cooked": True},
            {"dish": "", "recipe": "Nothing."},
            {"dish": "No recipe"},
            "garbage",
        ],
    }
    entries = parse_recipe_file(raw)

    assert [entry.dish for entry in entries] == ["Soup", "Stew"]
    assert entries[0].completed_at == "2026-01-02T03:04:05Z"
    assert entries[0].times_cooked == 1
    assert entries[1].dish_key == "stew"
    assert entries[1].times_cooked == 1
    assert entries[1].completed_at.endswith("Z")


def test_parse_recipe_file_rejects_unknown_shapes():
    assert parse_recipe_file(None) == []
    assert parse_recipe_file({"recipes": "nope"}) == []
    assert parse_recipe_file(["a", "b"]) == []


def test_corrupt_file_reads_as_empty_catalog(tmp_path):
    path = tmp_path / "recipes.yaml"
    path.write_text("recipes: [unclosed", encoding="utf-8")
    store = RecipeStore(str(path))

    async def scenario():
        return (
            await store.list_recipes(),
            await store.find_by_dish("pancakes"),
            await store.lookup_by_dish("pancakes"),
        )

    entries, found, lookup = asyncio.run(scenario())

    assert entries == []
    assert found is None
    assert lookup.match_type == "none"


def test_save_refuses_to_overwrite_corrupt_file(tmp_path):
    path = tmp_path / "recipes.yaml"
    path.write_text("recipes: [unclosed", encoding="utf-8")
    store = RecipeStore(str(path))

    with pytest.raises(RecipeStoreError):
        asyncio.run(store.save_completed_recipe("Pancakes", "Fry."))

    assert path.read_text(encoding="utf-8") == "recipes: [unclosed"


def test_parse_recipe_file_ignores_non_finite_counts():
    raw = {"recipes": [{"dish": "Soup", "recipe": "Boil.", "times_cooked": float("inf")}]}
    assert parse_recipe_file(raw)[0].times_cooked == 1
