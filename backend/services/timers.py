# services/timers.py
"""
조리 타이머 (asyncio 이벤트 루프 기반)
"""
import asyncio
import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from features.cooking.schemas import TimerFiredEvent, TimerSnapshot
from utils.helpers import ms_to_iso, now_ms, parse_timestamp_ms, utc_now_iso

logger = logging.getLogger(__name__)


class TimerManager:
    def __init__(
        self,
        on_fired: Optional[Callable[[TimerFiredEvent], None]] = None,
        on_changed: Optional[Callable[[List[TimerSnapshot]], None]] = None,
    ):
        self._timers: Dict[str, Tuple[asyncio.TimerHandle, TimerSnapshot]] = {}
        self.on_fired = on_fired
        self.on_changed = on_changed

    def _emit_changed(self):
        if self.on_changed:
            self.on_changed(self.list_active_timers())

    def set_timer(self, duration_seconds: float, label: str) -> TimerSnapshot:
        """같은 label이 있으면 교체"""
        safe_duration = max(1, int(math.floor(duration_seconds + 0.5)))
        safe_label = (label or "").strip()
        if not safe_label:
            raise ValueError("Timer label cannot be empty.")

        self.cancel_timer(safe_label)

        started_ms = now_ms()
        snapshot: TimerSnapshot = {
            "label": safe_label,
            "durationSeconds": safe_duration,
            "startedAt": ms_to_iso(started_ms),
            "endsAt": ms_to_iso(started_ms + safe_duration * 1000),
        }

        loop = asyncio.get_running_loop()
        handle = loop.call_later(safe_duration, self._fire, safe_label)
        self._timers[safe_label] = (handle, snapshot)
        logger.info(f"[Timer] 설정: {safe_label} ({safe_duration}s)")
        self._emit_changed()
        return snapshot

    def _fire(self, label: str):
        entry = self._timers.pop(label, None)
        if entry is None:
            return
        _, snapshot = entry
        logger.info(f"[Timer] 종료: {label}")
        self._emit_changed()
        if self.on_fired:
            self.on_fired({**snapshot, "firedAt": utc_now_iso()})

    def cancel_timer(self, label: str) -> bool:
        entry = self._timers.pop((label or "").strip(), None)
        if entry is None:
            return False
        entry[0].cancel()
        self._emit_changed()
        return True

    def list_active_timers(self) -> List[TimerSnapshot]:
        current = now_ms()
        active = [
            snapshot for _, snapshot in self._timers.values()
            if parse_timestamp_ms(snapshot["endsAt"]) > current
        ]
        return sorted(active, key=lambda timer: parse_timestamp_ms(timer["endsAt"]))

    def clear_all(self):
        for handle, _ in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if self.on_changed:
            self.on_changed([])
