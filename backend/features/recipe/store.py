# features/recipe/store.py
"""
완성 레시피 저장소 (YAML 파일)

파일 형식:
    version: 1
    recipes:
      - dish: Banana Bread
        dish_key: banana bread
        recipe: ...
        completed_at: 2026-01-01T00:00:00Z
        times_cooked: 2
"""
import asyncio
import logging
import math
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import yaml

from core.exceptions import RecipeStoreError
from features.recipe import catalog
from features.recipe.schemas import RecipeEntry, RecipeLookupResult
from utils.helpers import utc_now_iso

logger = logging.getLogger(__name__)

RECIPE_SCHEMA_VERSION = 1


def _first_str(item: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str):
            return value
    return ""


def _normalize_completed_at(raw: Any) -> str:
    if isinstance(raw, datetime):
        parsed = raw
    else:
        try:
            parsed = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
        except ValueError:
            return utc_now_iso()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_recipe_file(raw: Any) -> List[RecipeEntry]:
    """YAML 내용 → RecipeEntry 목록 (깨진 항목은 건너뜀)"""
    if not isinstance(raw, dict):
        return []

    recipes_raw = raw.get("recipes")
    if not isinstance(recipes_raw, list):
        return []

    entries: List[RecipeEntry] = []
    for item in recipes_raw:
        if not isinstance(item, dict):
            continue

        dish = _first_str(item, "dish").strip()
        dish_key = catalog.normalize_dish_key(_first_str(item, "dishKey", "dish_key") or dish)
        recipe_text = _first_str(item, "recipe").strip()
        completed_at = _normalize_completed_at(
            item.get("completedAt", item.get("completed_at", ""))
        )

        times_raw = item.get("timesCooked", item.get("times_cooked", 1))
        if isinstance(times_raw, bool) or not isinstance(times_raw, (int, float)):
            times_raw = 1
        elif isinstance(times_raw, float) and not math.isfinite(times_raw):
            times_raw = 1
        times_cooked = max(1, round(times_raw))

        if not dish or not dish_key or not recipe_text:
            continue

        entries.append(RecipeEntry(
            dish=dish,
            dish_key=dish_key,
            recipe_text=recipe_text,
            completed_at=completed_at,
            times_cooked=times_cooked,
        ))

    return entries


class RecipeStore:
    """레시피 영속화 (find / lookup / list / save)"""

    def __init__(self, file_path: str):
        self.file_path = os.path.abspath(file_path)
        self._lock = asyncio.Lock()

    def _ensure_file(self):
        os.makedirs(os.path.dirname(self.file_path), exist_ok=True)
        if not os.path.exists(self.file_path):
            self._write({"version": RECIPE_SCHEMA_VERSION, "recipes": []})

    def _read(self, strict: bool = False) -> List[RecipeEntry]:
        """strict=False 이면 깨진 YAML은 빈 카탈로그로 취급"""
        try:
            self._ensure_file()
            with open(self.file_path, "r", encoding="utf-8") as f:
                raw = f.read()
        except OSError as e:
            raise RecipeStoreError(f"Could not read recipe file: {e}") from e

        if not raw.strip():
            return []

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            if strict:
                # 저장 시 기존 파일을 덮어쓰지 않도록 중단
                raise RecipeStoreError(f"Recipe file is corrupt: {self.file_path}") from e
            logger.warning(f"[Recipe Store] YAML 파싱 실패, 빈 카탈로그로 처리: {e}")
            return []
        return parse_recipe_file(data)

    def _write(self, payload: Dict[str, Any]):
        with open(self.file_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(payload, f, allow_unicode=True, sort_keys=False)

    def _write_entries(self, entries: List[RecipeEntry]):
        self._write({
            "version": RECIPE_SCHEMA_VERSION,
            "recipes": [
                {
                    "dish": entry.dish,
                    "dish_key": entry.dish_key,
                    "recipe": entry.recipe_text,
                    "completed_at": entry.completed_at,
                    "times_cooked": entry.times_cooked,
                }
                for entry in entries
            ],
        })

    async def ensure_file(self):
        await asyncio.to_thread(self._ensure_file)

    async def list_recipes(self) -> List[RecipeEntry]:
        return await asyncio.to_thread(self._read)

    async def find_by_dish(self, dish: str) -> Optional[RecipeEntry]:
        """dish key 완전 일치 검색"""
        dish_key = catalog.normalize_dish_key(dish)
        if not dish_key:
            return None
        for entry in await self.list_recipes():
            if entry.dish_key == dish_key:
                return entry
        return None

    async def lookup_by_dish(self, query: str) -> RecipeLookupResult:
        result = catalog.lookup(query, await self.list_recipes())
        logger.info(f"[Recipe Store] 조회 '{query}' → {result.match_type}")
        return result

    async def save_completed_recipe(self, dish: str, recipe_text: str) -> RecipeEntry:
        """읽기-수정-쓰기를 lock 안에서 수행"""
        async with self._lock:
            entries = await asyncio.to_thread(self._read, True)
            saved = catalog.save(dish, recipe_text, entries)
            try:
                await asyncio.to_thread(self._write_entries, entries)
            except OSError as e:
                raise RecipeStoreError(f"Could not write recipe file: {e}") from e

        logger.info(f"[Recipe Store] 저장: {saved.dish} ({saved.times_cooked}회)")
        return saved
