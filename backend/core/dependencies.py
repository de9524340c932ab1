"""
FastAPI 의존성 관리
"""
import logging
from functools import lru_cache
from typing import Optional

from app.config import settings
from core.websocket import manager
from features.cooking.service import CookingHub
from features.cooking.session import CookingPolicy
from features.recipe.store import RecipeStore
from services.llm import create_llm_client
from services.tts import TextToSpeechService

logger = logging.getLogger(__name__)


@lru_cache()
def get_recipe_store() -> RecipeStore:
    """레시피 저장소 싱글톤"""
    return RecipeStore(settings.RECIPE_STORE_PATH)


@lru_cache()
def get_cooking_hub() -> Optional[CookingHub]:
    """조리 세션 허브 싱글톤"""
    if not settings.OPENAI_API_KEY:
        logger.error("OPENAI_API_KEY 환경변수가 설정되지 않았습니다.")
        return None

    try:
        return CookingHub(
            client=create_llm_client(settings.OPENAI_API_KEY),
            model=settings.OPENAI_MODEL,
            tts=TextToSpeechService(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_TTS_MODEL,
                voice=settings.OPENAI_TTS_VOICE,
                instructions=settings.OPENAI_TTS_INSTRUCTIONS,
                timeout=settings.TTS_TIMEOUT_SECONDS,
            ),
            recipes=get_recipe_store(),
            broadcaster=manager,
            policy=CookingPolicy.from_settings(settings),
            require_voice=settings.REQUIRE_VOICE,
            verbose=settings.VERBOSE_TEXT_LOGS,
            capture_interval_ms=settings.CAPTURE_INTERVAL_MS,
        )
    except Exception as e:
        logger.error(f"조리 허브 초기화 실패: {e}")
        return None
