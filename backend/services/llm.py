# services/llm.py
"""
LLM 헬퍼 함수 (OpenAI Responses API)
"""
from typing import Any, List, Optional

from openai import AsyncOpenAI

from app.config import settings


def create_llm_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    """비동기 OpenAI 클라이언트 생성"""
    return AsyncOpenAI(api_key=api_key or settings.OPENAI_API_KEY)


def get_function_calls(response: Any) -> List[Any]:
    """응답 output 중 function_call 항목만 추출"""
    return [
        item for item in (getattr(response, "output", None) or [])
        if getattr(item, "type", None) == "function_call"
    ]


def get_output_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    return text.strip() if isinstance(text, str) else ""


def text_input(text: str) -> List[dict]:
    return [{"role": "user", "content": [{"type": "input_text", "text": text}]}]


def image_input(text: str, mime_type: str, base64_data: str) -> List[dict]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "input_text", "text": text},
                {
                    "type": "input_image",
                    "image_url": f"data:{mime_type};base64,{base64_data}",
                    "detail": "low",
                },
            ],
        }
    ]
