# features/cooking/vision.py
"""
프레임 판정 파싱 + 비전 히스토리 포맷
"""
import json
import math
import re
from typing import Any, Dict, Optional, Sequence

from features.cooking.schemas import STEP_STATUSES, FrameAssessment, StepStatus, VisionHistoryEntry

OBSERVATION_MAX_WORDS = 14
REASON_MAX_WORDS = 18
DEFAULT_OBSERVATION = "No clear visual change."
DEFAULT_REASON = "Insufficient visual evidence."
DEFAULT_CONFIDENCE = 0.5
HISTORY_PROMPT_WINDOW = 6


def _try_parse_json(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (TypeError, ValueError, RecursionError):
        return None


def parse_json_object(text: str) -> Dict[str, Any]:
    """전체 파싱 → 실패 시 첫 {...} 구간 파싱 → 실패 시 빈 dict"""
    direct = _try_parse_json(text)
    if isinstance(direct, dict):
        return direct

    match = re.search(r"\{.*\}", text or "", re.DOTALL)
    if not match:
        return {}
    from_match = _try_parse_json(match.group(0))
    if isinstance(from_match, dict):
        return from_match
    return {}


def trim_to_word_limit(text: str, max_words: int) -> str:
    words = (text or "").split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + "..."


def coerce_step_status(value: Any, fallback: StepStatus) -> StepStatus:
    if value in STEP_STATUSES:
        return value
    return fallback


def coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return DEFAULT_CONFIDENCE
    if not math.isfinite(number):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, number))


def parse_frame_assessment(text: str, has_locked_step: bool) -> FrameAssessment:
    """비전 모델 출력 → FrameAssessment (절대 예외를 던지지 않음)"""
    parsed = parse_json_object(text or "")
    fallback_status: StepStatus = "unclear" if has_locked_step else "not_started"

    observation = parsed.get("observation")
    reason = parsed.get("reason")
    status = parsed.get("step_status", parsed.get("stepStatus"))

    return FrameAssessment(
        observation=trim_to_word_limit(
            observation if isinstance(observation, str) else DEFAULT_OBSERVATION,
            OBSERVATION_MAX_WORDS,
        ),
        step_status=coerce_step_status(status, fallback_status),
        confidence=coerce_confidence(parsed.get("confidence")),
        reason=trim_to_word_limit(
            reason if isinstance(reason, str) else DEFAULT_REASON,
            REASON_MAX_WORDS,
        ),
    )


# ─────────────────────────────────────────────
# 히스토리 텍스트
# ─────────────────────────────────────────────
def format_elapsed_ms(elapsed_ms: int) -> str:
    total_seconds = max(0, int(elapsed_ms // 1000))
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_history_entry(history: Sequence[VisionHistoryEntry], entry: VisionHistoryEntry) -> str:
    first_ms = history[0].captured_at_ms if history else entry.captured_at_ms
    elapsed = max(0, entry.captured_at_ms - first_ms)
    suffix = " (step complete)" if entry.step_status == "complete" else ""
    return f"{format_elapsed_ms(elapsed)} - {entry.observation}{suffix}"


def build_vision_history_text(history: Sequence[VisionHistoryEntry], limit: int = 10) -> str:
    recent = list(history)[-limit:]
    if not recent:
        return "(none yet)"
    return "\n".join(format_history_entry(history, entry) for entry in recent)
