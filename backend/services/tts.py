# services/tts.py
"""
음성 합성 서비스 (OpenAI /v1/audio/speech)
"""
import base64
import logging
from typing import Dict, Optional

import httpx

logger = logging.getLogger(__name__)

TTS_URL = "https://api.openai.com/v1/audio/speech"
# instructions 파라미터를 지원하지 않는 모델
_NO_INSTRUCTION_MODELS = {"tts-1", "tts-1-hd"}


class TextToSpeechService:
    """텍스트 → mp3 (base64)"""

    def __init__(
        self,
        api_key: str,
        model: str,
        voice: str,
        instructions: Optional[str] = None,
        timeout: float = 25.0,
    ):
        self.api_key = api_key
        self.model = model
        self.voice = voice
        self.instructions = (instructions or "").strip() or None
        self.timeout = timeout

    async def synthesize(self, text: str) -> Dict[str, str]:
        body = {
            "model": self.model,
            "voice": self.voice,
            "response_format": "mp3",
            "input": text,
        }
        if self.instructions and self.model not in _NO_INSTRUCTION_MODELS:
            body["instructions"] = self.instructions

        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(TTS_URL, json=body, headers=headers)

        if response.status_code != 200:
            raise RuntimeError(f"TTS request failed ({response.status_code}): {response.text}")

        logger.debug(f"[TTS] {len(response.content)} bytes: {text[:40]}")
        return {
            "mimeType": "audio/mpeg",
            "base64": base64.b64encode(response.content).decode("ascii"),
        }
