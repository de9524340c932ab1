# core/exceptions.py
"""
커스텀 예외
"""
from fastapi import HTTPException


class ToolArgumentError(ValueError):
    """도구 호출 인자 오류 (해당 호출만 실패 처리)"""


class ToolLoopExceededError(RuntimeError):
    def __init__(self, rounds: int):
        super().__init__("tool_loop_exceeded")
        self.rounds = rounds


class VoiceOutputError(RuntimeError):
    """음성 합성 실패 (REQUIRE_VOICE일 때만 전파)"""


class RecipeStoreError(RuntimeError):
    """레시피 파일 읽기/쓰기 실패"""


class AssistantNotAvailableError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=503,
            detail="Cooking assistant not available"
        )


class InvalidRequestError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            detail=detail
        )


class EventProcessingError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=500,
            detail=detail
        )
