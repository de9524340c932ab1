"""
기타 헬퍼 함수
"""
import time
from datetime import datetime, timezone


def now_ms() -> int:
    """현재 시각 (epoch ms)"""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def ms_to_iso(value_ms: int) -> str:
    return datetime.fromtimestamp(value_ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp_ms(iso_timestamp: str) -> int:
    """ISO 문자열 → epoch ms (파싱 실패 시 현재 시각)"""
    try:
        parsed = datetime.fromisoformat(iso_timestamp.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return now_ms()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def normalize_base64(value: str) -> str:
    """data URL 접두사 제거"""
    trimmed = value.strip()
    marker = "base64,"
    index = trimmed.find(marker)
    if index >= 0:
        return trimmed[index + len(marker):]
    return trimmed
