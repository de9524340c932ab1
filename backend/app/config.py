# backend/app/config.py
"""
설정 및 환경변수 관리
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # API 설정
    APP_NAME: str = "CookCam Agent API"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    # OpenAI (Responses API + TTS)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4.1"
    OPENAI_TTS_MODEL: str = "gpt-4o-mini-tts"
    OPENAI_TTS_VOICE: str = "marin"
    OPENAI_TTS_INSTRUCTIONS: Optional[str] = None
    TTS_TIMEOUT_SECONDS: float = 25.0

    # 카메라 / 음성
    CAPTURE_INTERVAL_MS: int = 10000
    REQUIRE_VOICE: bool = True
    VERBOSE_TEXT_LOGS: bool = False

    # 발화 억제 (ms)
    SPEECH_REPEAT_COOLDOWN_MS: int = 120000
    QUESTION_REPEAT_COOLDOWN_MS: int = 180000
    MIN_QUESTION_GAP_MS: int = 600000
    ROUTINE_SPEAK_MIN_GAP_MS: int = 45000

    # 단계 잠금
    SAME_STEP_OVERLAP: float = 0.65
    STEP_RELATION_OVERLAP: float = 0.25
    MAX_TOOL_ROUNDS: int = 8

    # 레시피 저장소
    RECIPE_STORE_PATH: str = "data/recipes/recipes.yaml"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


settings = Settings()
