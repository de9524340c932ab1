# features/cooking/step_lock.py
"""
단계 잠금 (Step Lock)

패널에 보이는 "현재 단계"는 하나만 잠겨 있고, 카메라가 완료를 확인하기 전에는
다른 단계로 넘어갈 수 없다. 첫 단계 설정과 같은 단계의 문구 수정은 항상 허용.

    NO_STEP → LOCKED → LOCKED(문구 수정) → LOCKED(다음 단계로 진행)
"""
import re
from typing import Any, Dict, List, Optional

from features.cooking.schemas import FrameAssessment, VisionHistoryEntry
from features.cooking.session import CookingPolicy, CookingSession
from utils.helpers import now_ms

MAX_STEP_WORDS = 12

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "have",
    "in", "into", "is", "it", "of", "on", "or", "that", "the", "then", "to", "up",
    "with", "your", "you",
})

_NEXT_STEP_LABEL = re.compile(r"^next\s*step\s*[:\-]\s*", re.IGNORECASE)
_STEP_N_LABEL = re.compile(r"^step\s*\d+\s*[:.)-]?\s*", re.IGNORECASE)
_BULLET = re.compile(r"^[-*•]\s+")
_TERMINATORS = ".!?"


# ─────────────────────────────────────────────
# 토큰 / 정규화
# ─────────────────────────────────────────────
def normalize_token(token: str) -> str:
    """2글자 이하 제거, -ing/-ed/-es/-s 간단 어간 처리"""
    token = token.strip()
    if len(token) <= 2:
        return ""
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    if token.endswith("es") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and len(token) > 3:
        return token[:-1]
    return token


def tokenize(text: str) -> List[str]:
    tokens = []
    for raw in re.split(r"[^a-z0-9]+", (text or "").lower()):
        token = normalize_token(raw)
        if not token or token in STOPWORDS:
            continue
        tokens.append(token)
    return tokens


def token_overlap(left: str, right: str) -> float:
    """일치 토큰 수 / 작은 쪽 토큰 집합 크기"""
    left_tokens = set(tokenize(left))
    right_tokens = set(tokenize(right))
    if not left_tokens or not right_tokens:
        return 0.0
    matches = len(left_tokens & right_tokens)
    return matches / min(len(left_tokens), len(right_tokens))


def normalize_step_key(text: str) -> str:
    key = re.sub(r"[^a-z0-9\s]", " ", (text or "").lower())
    return re.sub(r"\s+", " ", key).strip()


def is_same_step(left: str, right: str, threshold: float = 0.65) -> bool:
    left_key = normalize_step_key(left)
    right_key = normalize_step_key(right)
    if not left_key or not right_key:
        return False
    if left_key == right_key:
        return True
    return token_overlap(left_key, right_key) >= threshold


# ─────────────────────────────────────────────
# 단계 문구 정리 / 검사
# ─────────────────────────────────────────────
def sanitize_step(raw_step: str) -> str:
    """첫 줄 → 라벨 제거 → 첫 문장 → 12단어 제한 → 마침표 보장"""
    lines = (raw_step or "").replace("\r", "\n").split("\n")
    first_line = next((line.strip() for line in lines if line.strip()), "")
    if not first_line:
        return ""

    step = _NEXT_STEP_LABEL.sub("", first_line)
    step = _STEP_N_LABEL.sub("", step)
    step = _BULLET.sub("", step).strip()
    if not step:
        return ""

    boundary = re.search(r"[.!?]", step)
    if boundary:
        step = step[:boundary.end()].strip()

    words = re.sub(r"[.!?]+$", "", step).split()
    if not words:
        return ""

    if len(words) > MAX_STEP_WORDS:
        return " ".join(words[:MAX_STEP_WORDS]) + "."

    if step[-1] not in _TERMINATORS:
        step = f"{step}."
    return step


def is_step_too_broad(step: str) -> bool:
    """한 번에 눈으로 확인 가능한 단일 동작이 아니면 True"""
    text = (step or "").lower()
    if not text.strip():
        return True
    if re.search(r"\banaly(s|z)(e|ing|ed|is)\b", text):
        return True
    if re.search(r"\bingredients?\b", text):
        return True
    if re.search(r"\bthen\b|\bafter that\b|\bnext\b", text):
        return True
    if len(re.findall(r",", text)) >= 2:
        return True
    if len(re.findall(r"\band\b", text)) >= 2:
        return True
    if re.match(r"^\d+[).]", text):
        return True

    words = re.sub(r"[^\w\s]", " ", text).split()
    return len(words) > MAX_STEP_WORDS


# ─────────────────────────────────────────────
# 상태 전이
# ─────────────────────────────────────────────
def mark_current_step_completed(session: CookingSession):
    """현재 잠긴 단계를 완료로 기록 (같은 단계는 한 번만)"""
    if not session.locked_step:
        return
    key = normalize_step_key(session.locked_step)
    if not key or key in session.completed_step_keys:
        return
    session.completed_step_keys.add(key)
    session.completed_steps.append(session.locked_step)


def propose_step(
    session: CookingSession,
    dish_label: str,
    raw_step: str,
    policy: Optional[CookingPolicy] = None,
) -> Dict[str, Any]:
    """다음 단계 제안 → 잠금 / 수정 / 진행 / 거부"""
    policy = policy or CookingPolicy()

    step = sanitize_step(raw_step)
    if not step:
        return {"ok": False, "blocked": True, "reason": "empty_step", "error": "next_step is empty"}

    if is_step_too_broad(step):
        session.add_observation(f'step_rejected: "{raw_step.strip()}"')
        return {
            "ok": False,
            "blocked": True,
            "reason": "step_too_broad",
            "suggested_format": "Use one short action like 'Grab 2 eggs.'",
        }

    session.dish = dish_label.strip() or session.dish

    if not session.locked_step:
        session.locked_step = step
        session.pending_step = None
        return {"ok": True, "step_locked": step, "advanced": False}

    if is_same_step(session.locked_step, step, policy.same_step_overlap):
        session.locked_step = step
        session.pending_step = None
        return {"ok": True, "step_locked": step, "advanced": False}

    session.pending_step = step
    if not session.frame_allows_advance:
        session.add_observation(
            f'step_gate_blocked: waiting to finish "{session.locked_step}" before "{step}".'
        )
        frame_status = session.latest_assessment.step_status if session.latest_assessment else "unknown"
        return {
            "ok": False,
            "blocked": True,
            "reason": "current_step_not_visually_complete",
            "current_step": session.locked_step,
            "requested_next_step": step,
            "frame_status": frame_status,
        }

    mark_current_step_completed(session)
    session.locked_step = step
    session.pending_step = None
    return {"ok": True, "step_locked": step, "advanced": True, "current_step": step}


def ingest_frame_assessment(
    session: CookingSession,
    assessment: FrameAssessment,
    captured_at_ms: Optional[int] = None,
) -> VisionHistoryEntry:
    """프레임 판정 반영. 진행 허용 여부는 매 프레임 새로 계산"""
    captured_at_ms = captured_at_ms if captured_at_ms is not None else now_ms()
    if session.vision_history:
        captured_at_ms = max(captured_at_ms, session.vision_history[-1].captured_at_ms)

    entry = VisionHistoryEntry(
        captured_at_ms=captured_at_ms,
        observation=assessment.observation,
        step_status=assessment.step_status,
    )
    session.vision_history.append(entry)
    session.latest_assessment = assessment
    session.frame_allows_advance = (
        session.locked_step is None or assessment.step_status == "complete"
    )
    return entry


def clear_step(session: CookingSession):
    session.locked_step = None
    session.pending_step = None
