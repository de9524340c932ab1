# features/cooking/tools.py
"""
조리모드 도구 정의 + 인자 읽기
"""
import json
import math
from typing import Any, Dict, List, Optional

from core.exceptions import ToolArgumentError


def _function(name: str, description: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "description": description,
        "strict": True,
        "parameters": {
            "type": "object",
            "properties": properties,
            "required": list(properties.keys()),
            "additionalProperties": False,
        },
    }


TOOLS: List[Dict[str, Any]] = [
    _function("speak", "Speak an instruction aloud to the cook.",
              {"message": {"type": "string"}}),
    _function("stay_silent", "Deliberately stay quiet and wait for more evidence or user input.",
              {"reason": {"type": "string"}}),
    _function("set_timer", "Set a cooking timer in seconds.",
              {"duration_seconds": {"type": "number", "minimum": 1}, "label": {"type": "string"}}),
    _function("cancel_timer", "Cancel an active timer by label.",
              {"label": {"type": "string"}}),
    _function("update_plan", "Update the cooking plan as new context appears.",
              {"changes": {"type": "string"}}),
    _function("update_state", "Record a silent observation about progress or setup.",
              {"observation": {"type": "string"}}),
    _function("lookup_recipe", "Look up a saved recipe by dish name.",
              {"dish": {"type": "string"}}),
    _function("set_panel", "Show the dish name and the single next step on screen.",
              {"cooking": {"type": "string"}, "next_step": {"type": "string"}}),
    _function("clear_panel", "Clear the on-screen step panel.", {}),
    _function("set_overlay", "Show a short on-screen overlay instruction.", {
        "text": {"type": "string"},
        "priority": {"type": "string", "enum": ["normal", "urgent"]},
        "ttl_seconds": {"type": ["number", "null"], "minimum": 1, "maximum": 600},
    }),
    _function("clear_overlay", "Clear any visible overlay text.", {}),
    _function("complete_recipe", "Save the final completed recipe for future reuse.",
              {"dish": {"type": "string"}, "recipe": {"type": "string"}}),
]


def parse_arguments(raw: Any) -> Dict[str, Any]:
    """JSON 인자 파싱 (실패 시 빈 dict)"""
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw or "")
    except (TypeError, ValueError, RecursionError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def read_string_arg(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolArgumentError(f"Missing string argument: {key}")
    return value.strip()


def read_number_arg(args: Dict[str, Any], key: str) -> float:
    value = args.get(key)
    if not _is_number(value):
        raise ToolArgumentError(f"Missing numeric argument: {key}")
    return value


def read_optional_number_arg(args: Dict[str, Any], key: str) -> Optional[float]:
    value = args.get(key)
    if value is None:
        return None
    if not _is_number(value):
        raise ToolArgumentError(f"Invalid numeric argument: {key}")
    return value


def read_priority_arg(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    if value in ("normal", "urgent"):
        return value
    raise ToolArgumentError(f"Invalid priority argument: {key}")
