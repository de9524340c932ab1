"""
Cooking 관련 모델
"""
from dataclasses import dataclass
from typing import Literal, Optional, TypedDict

from pydantic import BaseModel

StepStatus = Literal["not_started", "in_progress", "complete", "unclear"]
STEP_STATUSES = ("not_started", "in_progress", "complete", "unclear")

ConversationRole = Literal["system", "user", "assistant", "tool"]
OverlayPriority = Literal["normal", "urgent"]


@dataclass(frozen=True)
class FrameAssessment:
    """프레임 한 장에 대한 판정"""
    observation: str
    step_status: StepStatus
    confidence: float
    reason: str


@dataclass(frozen=True)
class VisionHistoryEntry:
    captured_at_ms: int
    observation: str
    step_status: StepStatus


@dataclass(frozen=True)
class VisionFrame:
    taken_at: str
    mime_type: str
    base64: str


class TimerSnapshot(TypedDict):
    label: str
    durationSeconds: int
    startedAt: str
    endsAt: str


class TimerFiredEvent(TypedDict):
    label: str
    durationSeconds: int
    startedAt: str
    endsAt: str
    firedAt: str


# ─────────────────────────────────────────────
# HTTP 요청 스키마
# ─────────────────────────────────────────────
class SessionStartRequest(BaseModel):
    recipe_idea: str = ""


class FrameRequest(BaseModel):
    image_base64: str = ""
    mime_type: Optional[str] = None
    taken_at: Optional[str] = None


class UserMessageRequest(BaseModel):
    message: str = ""
