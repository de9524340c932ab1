# features/cooking/speech_gate.py
"""
발화 게이트

모델이 "말하고 싶다"고 요청한 문장을 실제로 음성 출력할지 결정한다.
반복/질문 남발은 막고, 안전 관련 문장은 절대 막지 않는다.
"""
import re
from typing import Optional

from features.cooking.session import CookingPolicy, CookingSession, SpeechState
from features.cooking.step_lock import normalize_step_key, token_overlap

_URGENT = re.compile(
    r"\b(stop|danger|urgent|fire|smoke|burn|hot oil|knife|raw chicken|gas)\b",
    re.IGNORECASE,
)
_QUESTION = re.compile(r"\?\s*$")
_ROUTINE_PREFERENCE = re.compile(
    r"\b(what|which)\b.*\b(kind|type|brand|milk|flour|pan|oil|butter|sugar|salt)\b",
    re.IGNORECASE,
)

_NEGATED_COMPLETION = re.compile(
    r"\b(not|isn't|isnt|don't|dont)\s+(done|finished|complete|completed)\b", re.IGNORECASE
)
_COMPLETION_PHRASE = re.compile(
    r"\b(done|finished|all done|complete|completed|that's it|thats it|we('?| a)re done|it's done|its done)\b",
    re.IGNORECASE,
)
_COMPLETION_QUESTION = re.compile(
    r"\b(done|finished|complete|completed|wrap up|stop now)\b", re.IGNORECASE
)
_AFFIRMATIVE = re.compile(r"^(yes|yep|yeah|correct|sure|ok|okay|affirmative)[.!]*$", re.IGNORECASE)


def is_urgent(text: str) -> bool:
    return bool(_URGENT.search(text or ""))


def is_question(text: str) -> bool:
    return bool(_QUESTION.search(text or ""))


def is_routine_preference_question(text: str) -> bool:
    return is_question(text) and bool(_ROUTINE_PREFERENCE.search(text))


def speech_key(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "")).strip().lower()


def should_suppress(
    state: SpeechState,
    text: str,
    now_ms: int,
    policy: Optional[CookingPolicy] = None,
) -> Optional[str]:
    """억제 사유 반환 (None이면 발화)"""
    policy = policy or CookingPolicy()
    if is_urgent(text):
        return None

    question = is_question(text)

    if (
        speech_key(text) == state.last_spoken_key
        and now_ms - state.last_spoken_at_ms < policy.speech_repeat_cooldown_ms
    ):
        return "duplicate_recent"

    if state.waiting_for_answer:
        # 같은 억제 결과, 사유만 더 구체적으로
        if question and now_ms - state.last_question_at_ms < policy.question_repeat_cooldown_ms:
            return "question_repeat_too_soon"
        return "awaiting_answer"

    if is_routine_preference_question(text):
        return "routine_preference_question"

    if question and now_ms - state.last_question_at_ms < policy.min_question_gap_ms:
        return "question_gap_too_short"

    return None


def record_spoken(state: SpeechState, text: str, now_ms: int):
    """실제 발화 성공 후 상태 갱신"""
    state.last_spoken_key = speech_key(text)
    state.last_spoken_at_ms = now_ms
    if is_question(text):
        state.waiting_for_answer = True
        state.last_question_at_ms = now_ms
        state.last_question_text = text


def step_speech_block_reason(
    session: CookingSession,
    text: str,
    now_ms: int,
    policy: Optional[CookingPolicy] = None,
) -> Optional[str]:
    """잠긴 단계가 아직 완료되지 않았을 때 단계 관련 발화만 가끔 허용"""
    policy = policy or CookingPolicy()
    if not session.locked_step or session.frame_allows_advance:
        return None
    if is_urgent(text) or is_question(text):
        return None

    if not relates_to_step(session.locked_step, text, policy.step_relation_overlap):
        return "blocked_next_step_until_visual_completion"

    if now_ms - session.last_routine_speech_at_ms < policy.routine_speak_min_gap_ms:
        return "step_waiting_repeat_suppressed"

    return None


def relates_to_step(step: str, text: str, threshold: float = 0.25) -> bool:
    if token_overlap(step, text) >= threshold:
        return True
    text_key = normalize_step_key(text)
    step_key = normalize_step_key(step)
    if not text_key or not step_key:
        return True
    return text_key in step_key or step_key in text_key


def user_confirmed_completion(message: str, waiting_for_answer: bool, last_question_text: str) -> bool:
    """사용자가 요리 완료를 확인했는지 판정"""
    normalized = (message or "").strip().lower()
    if not normalized:
        return False
    if _NEGATED_COMPLETION.search(normalized):
        return False
    if _COMPLETION_PHRASE.search(normalized):
        return True
    if not waiting_for_answer:
        return False

    asked_about_completion = bool(_COMPLETION_QUESTION.search(last_question_text or ""))
    return asked_about_completion and bool(_AFFIRMATIVE.match(normalized))
