# features/recipe/catalog.py
"""
레시피 카탈로그 매칭 (요리 이름 정규화 + 퍼지 매칭)

상태 없음. 호출자가 넘겨준 카탈로그 스냅샷만 다룬다.
"""
import re
from typing import List, Optional, Sequence

from features.recipe.schemas import RecipeEntry, RecipeLookupResult
from utils.helpers import utc_now_iso

EXACT_SCORE = 1.0
SUBSTRING_SCORE = 0.95
PREFIX_BONUS = 0.08
COVERAGE_WEIGHT = 0.9
MIN_FUZZY_SCORE = 0.62


def normalize_dish_key(text: str) -> str:
    """소문자 → 아포스트로피 제거 → 영숫자 외 구간을 공백 하나로"""
    key = (text or "").lower().replace("'", "")
    key = re.sub(r"[^a-z0-9]+", " ", key)
    return re.sub(r"\s+", " ", key).strip()


def tokenize_dish_key(text: str) -> List[str]:
    key = normalize_dish_key(text)
    if not key:
        return []
    return [token for token in key.split(" ") if token]


def score_dish_match(query_key: str, candidate_key: str) -> float:
    """두 dish key 사이의 유사도 점수 (0~1)"""
    if not query_key or not candidate_key:
        return 0.0

    if query_key == candidate_key:
        return EXACT_SCORE

    if query_key in candidate_key or candidate_key in query_key:
        return SUBSTRING_SCORE

    query_tokens = tokenize_dish_key(query_key)
    candidate_tokens = tokenize_dish_key(candidate_key)
    if not query_tokens or not candidate_tokens:
        return 0.0

    candidate_set = set(candidate_tokens)
    shared = sum(1 for token in query_tokens if token in candidate_set)
    if shared == 0:
        return 0.0

    overlap = shared / min(len(query_tokens), len(candidate_tokens))
    coverage = shared / len(query_tokens)
    prefix_bonus = PREFIX_BONUS if query_tokens[0] == candidate_tokens[0] else 0.0
    return min(1.0, max(overlap, coverage * COVERAGE_WEIGHT) + prefix_bonus)


def find_best_fuzzy_match(query_key: str, catalog: Sequence[RecipeEntry]) -> Optional[RecipeEntry]:
    best_score = 0.0
    best: Optional[RecipeEntry] = None

    for candidate in catalog:
        score = score_dish_match(query_key, candidate.dish_key)
        if score > best_score:
            best_score = score
            best = candidate

    if best is None or best_score < MIN_FUZZY_SCORE:
        return None
    return best


def lookup(query: str, catalog: Sequence[RecipeEntry]) -> RecipeLookupResult:
    """요리 이름으로 카탈로그 검색 (exact → fuzzy → none)"""
    query = (query or "").strip()
    query_key = normalize_dish_key(query)
    if not query_key:
        return RecipeLookupResult(found=False, query=query, match_type="none")

    for entry in catalog:
        if entry.dish_key == query_key:
            return RecipeLookupResult(
                found=True, query=query, match_type="exact", recipe=entry.model_copy()
            )

    fuzzy = find_best_fuzzy_match(query_key, catalog)
    if fuzzy is not None:
        return RecipeLookupResult(
            found=True, query=query, match_type="fuzzy", recipe=fuzzy.model_copy()
        )

    return RecipeLookupResult(found=False, query=query, match_type="none")


def save(
    dish: str,
    recipe_text: str,
    catalog: List[RecipeEntry],
    completed_at: Optional[str] = None,
) -> RecipeEntry:
    """완성 레시피 저장 (catalog 리스트를 직접 갱신하고 저장된 항목 반환)"""
    dish = (dish or "").strip()
    recipe_text = (recipe_text or "").strip()
    if not dish or not recipe_text:
        raise ValueError("Both dish and recipe are required to save a completed recipe.")

    dish_key = normalize_dish_key(dish)
    if not dish_key:
        raise ValueError(f"Could not normalize dish name: {dish!r}")

    now = completed_at or utc_now_iso()
    existing_index = next(
        (index for index, entry in enumerate(catalog) if entry.dish_key == dish_key),
        None,
    )

    if existing_index is not None:
        saved = RecipeEntry(
            dish=dish,
            dish_key=dish_key,
            recipe_text=recipe_text,
            completed_at=now,
            times_cooked=catalog[existing_index].times_cooked + 1,
        )
        catalog[existing_index] = saved
    else:
        saved = RecipeEntry(
            dish=dish,
            dish_key=dish_key,
            recipe_text=recipe_text,
            completed_at=now,
            times_cooked=1,
        )
        catalog.append(saved)

    catalog.sort(key=lambda entry: (entry.dish.casefold(), entry.dish))
    return saved.model_copy()
