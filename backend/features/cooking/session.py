# features/cooking/session.py
"""
CookingSession - 조리 세션 상태 (세션당 하나, 세션 큐 안에서만 변경)
"""
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Deque, Dict, List, Optional, Set

from features.cooking.schemas import (
    ConversationRole,
    FrameAssessment,
    TimerSnapshot,
    VisionHistoryEntry,
)
from utils.helpers import utc_now_iso

MAX_VISION_HISTORY = 10
MAX_OBSERVATIONS = 30
MAX_CONVERSATION = 60


@dataclass
class CookingPolicy:
    """임계값 / 쿨다운 설정"""
    speech_repeat_cooldown_ms: int = 120000
    question_repeat_cooldown_ms: int = 180000
    min_question_gap_ms: int = 600000
    routine_speak_min_gap_ms: int = 45000
    same_step_overlap: float = 0.65
    step_relation_overlap: float = 0.25
    max_tool_rounds: int = 8

    @classmethod
    def from_settings(cls, settings) -> "CookingPolicy":
        return cls(
            speech_repeat_cooldown_ms=settings.SPEECH_REPEAT_COOLDOWN_MS,
            question_repeat_cooldown_ms=settings.QUESTION_REPEAT_COOLDOWN_MS,
            min_question_gap_ms=settings.MIN_QUESTION_GAP_MS,
            routine_speak_min_gap_ms=settings.ROUTINE_SPEAK_MIN_GAP_MS,
            same_step_overlap=settings.SAME_STEP_OVERLAP,
            step_relation_overlap=settings.STEP_RELATION_OVERLAP,
            max_tool_rounds=settings.MAX_TOOL_ROUNDS,
        )


@dataclass
class SpeechState:
    """발화 게이트 상태"""
    last_spoken_key: str = ""
    last_spoken_at_ms: int = 0
    waiting_for_answer: bool = False
    last_question_at_ms: int = 0
    last_question_text: str = ""


@dataclass
class CookingSession:
    """조리 세션"""
    dish: str = ""
    locked_step: Optional[str] = None
    pending_step: Optional[str] = None
    frame_allows_advance: bool = True
    completed_step_keys: Set[str] = field(default_factory=set)
    vision_history: Deque[VisionHistoryEntry] = field(
        default_factory=lambda: deque(maxlen=MAX_VISION_HISTORY)
    )
    latest_assessment: Optional[FrameAssessment] = None
    last_routine_speech_at_ms: int = 0
    speech: SpeechState = field(default_factory=SpeechState)

    # 모델 대화 연속 토큰
    previous_response_id: Optional[str] = None

    # 프롬프트 컨텍스트
    plan: str = ""
    completed_steps: List[str] = field(default_factory=list)
    active_timers: List[TimerSnapshot] = field(default_factory=list)
    recent_observations: List[str] = field(default_factory=list)
    conversation: List[Dict[str, str]] = field(default_factory=list)

    # 레시피 저장 조건
    active_dish_key: str = ""
    recipe_saved: bool = False
    completion_confirmed: bool = False

    def reset(self):
        """모든 필드 초기화"""
        fresh = CookingSession()
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(fresh, name))

    def reset_step_tracking(self):
        """세션 시작 시 단계/비전 상태만 초기화"""
        self.locked_step = None
        self.pending_step = None
        self.latest_assessment = None
        self.frame_allows_advance = True
        self.vision_history.clear()
        self.completed_step_keys = set()
        self.last_routine_speech_at_ms = 0

    def update_plan(self, changes: str):
        changes = changes.strip()
        if not changes:
            return
        if not self.plan:
            self.plan = changes
            return
        self.plan = f"{self.plan}\n\nUpdate: {changes}"

    def add_observation(self, observation: str):
        observation = observation.strip()
        if not observation:
            return
        self.recent_observations.append(observation)
        if len(self.recent_observations) > MAX_OBSERVATIONS:
            self.recent_observations = self.recent_observations[-MAX_OBSERVATIONS:]

    def record_conversation(self, role: ConversationRole, content: str):
        content = content.strip()
        if not content:
            return
        self.conversation.append({
            "timestamp": utc_now_iso(),
            "role": role,
            "content": content,
        })
        if len(self.conversation) > MAX_CONVERSATION:
            self.conversation = self.conversation[-MAX_CONVERSATION:]

    def snapshot(self) -> Dict[str, Any]:
        """상태 API 응답용"""
        return {
            "dish": self.dish,
            "plan": self.plan,
            "lockedStep": self.locked_step,
            "pendingStep": self.pending_step,
            "frameAllowsAdvance": self.frame_allows_advance,
            "completedSteps": list(self.completed_steps),
            "activeTimers": [dict(timer) for timer in self.active_timers],
            "recentObservations": list(self.recent_observations),
            "visionHistory": [asdict(entry) for entry in self.vision_history],
            "conversationHistory": [dict(entry) for entry in self.conversation],
            "waitingForAnswer": self.speech.waiting_for_answer,
            "recipeSaved": self.recipe_saved,
        }
