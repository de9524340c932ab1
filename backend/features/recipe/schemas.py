# backend/features/recipe/schemas.py
"""
Recipe 카탈로그 스키마
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional

MatchType = Literal["exact", "fuzzy", "none"]


class RecipeEntry(BaseModel):
    dish: str
    dish_key: str
    recipe_text: str
    completed_at: str
    times_cooked: int = Field(default=1, ge=1)


class RecipeLookupResult(BaseModel):
    found: bool
    query: str
    match_type: MatchType = "none"
    recipe: Optional[RecipeEntry] = None

    def to_tool_result(self) -> Dict[str, Any]:
        """lookup_recipe 도구 결과 형태"""
        if not self.found or self.recipe is None:
            return {"found": False, "query": self.query, "matchType": "none"}
        return {
            "found": True,
            "query": self.query,
            "matchType": self.match_type,
            "dish": self.recipe.dish,
            "dishKey": self.recipe.dish_key,
            "recipe": self.recipe.recipe_text,
            "completedAt": self.recipe.completed_at,
            "timesCooked": self.recipe.times_cooked,
        }
