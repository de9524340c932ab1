# features/cooking/service.py
"""
조리 세션 허브 - Agent와 화면/음성/타이머/저장소를 연결

화면 상태(오버레이, 패널)와 브로드캐스트를 소유하고, Agent의 outputs 역할을 한다.
"""
import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional, Set

from core.exceptions import VoiceOutputError
from features.cooking.agent import CookingAgent
from features.cooking.schemas import OverlayPriority, TimerFiredEvent, VisionFrame
from features.cooking.session import CookingPolicy, CookingSession
from features.recipe.store import RecipeStore
from services.timers import TimerManager
from utils.helpers import ms_to_iso, now_ms, utc_now_iso

logger = logging.getLogger(__name__)


class CookingHub:
    def __init__(
        self,
        client,
        model: str,
        tts,
        recipes: RecipeStore,
        broadcaster,
        policy: Optional[CookingPolicy] = None,
        require_voice: bool = True,
        verbose: bool = False,
        capture_interval_ms: int = 10000,
    ):
        self.tts = tts
        self.recipes = recipes
        self.broadcaster = broadcaster
        self.require_voice = require_voice
        self.capture_interval_ms = capture_interval_ms

        self.overlay: Optional[Dict[str, Any]] = None
        self.panel: Optional[Dict[str, Any]] = None
        self._overlay_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

        self.session = CookingSession()
        self.timers = TimerManager(on_fired=self._on_timer_fired, on_changed=self._on_timers_changed)
        self.agent = CookingAgent(
            client=client,
            model=model,
            session=self.session,
            timers=self.timers,
            outputs=self,
            recipes=recipes,
            policy=policy,
            verbose=verbose,
        )

    # ─────────────────────────────────────────────
    # 상태 / 브로드캐스트
    # ─────────────────────────────────────────────
    def state_snapshot(self) -> Dict[str, Any]:
        state = self.session.snapshot()
        state["activeTimers"] = self.timers.list_active_timers()
        return state

    def ready_event(self) -> Dict[str, Any]:
        return {
            "type": "ready",
            "captureIntervalMs": self.capture_interval_ms,
            "state": self.state_snapshot(),
            "overlay": self.overlay,
            "panel": self.panel,
        }

    async def publish_state(self):
        await self.broadcaster.broadcast({"type": "state", "state": self.state_snapshot()})

    # ─────────────────────────────────────────────
    # Agent outputs
    # ─────────────────────────────────────────────
    async def speak(self, message: str) -> bool:
        text = message.strip()
        if not text:
            return False

        try:
            audio = await self.tts.synthesize(text)
        except Exception as e:
            if self.require_voice:
                raise VoiceOutputError(f"Voice output failed: {e}") from e
            logger.warning(f"[Cook Hub] 음성 출력 실패: {e}")
            await self.broadcaster.broadcast({"type": "error", "message": f"Voice output failed: {e}"})
            return False

        await self.broadcaster.broadcast({
            "type": "speech",
            "text": text,
            "audioBase64": audio["base64"],
            "mimeType": audio["mimeType"],
            "timestamp": utc_now_iso(),
        })
        return True

    async def set_overlay(self, text: str, priority: OverlayPriority, ttl_seconds: Optional[float] = None):
        self._cancel_overlay_expiry()
        ttl_ms = max(1000, round(ttl_seconds * 1000)) if ttl_seconds else None
        self.overlay = {
            "text": text,
            "priority": priority,
            "expiresAt": ms_to_iso(now_ms() + ttl_ms) if ttl_ms else None,
        }
        await self.broadcaster.broadcast({"type": "overlay_set", "overlay": self.overlay})

        if ttl_ms:
            self._overlay_handle = asyncio.get_running_loop().call_later(
                ttl_ms / 1000, lambda: self._spawn(self.clear_overlay(), "overlay-expiry")
            )

    def _cancel_overlay_expiry(self):
        if self._overlay_handle is not None:
            self._overlay_handle.cancel()
            self._overlay_handle = None

    async def clear_overlay(self):
        self._cancel_overlay_expiry()
        self.overlay = None
        await self.broadcaster.broadcast({"type": "overlay_clear"})

    async def set_panel(self, cooking: str, next_step: str):
        self.panel = {"cooking": cooking, "nextStep": next_step, "updatedAt": utc_now_iso()}
        await self.broadcaster.broadcast({"type": "panel_set", "panel": self.panel})

    async def clear_panel(self):
        self.panel = None
        await self.broadcaster.broadcast({"type": "panel_clear"})

    # ─────────────────────────────────────────────
    # 백그라운드 작업
    # ─────────────────────────────────────────────
    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        """콜백에서 띄우는 작업은 참조를 보관하고 실패를 로그로 남김"""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[Cook Hub] 백그라운드 작업 실패 ({task.get_name()}): {exc}", exc_info=exc)

    # ─────────────────────────────────────────────
    # 타이머 콜백
    # ─────────────────────────────────────────────
    def _on_timers_changed(self, _timers):
        self._spawn(self.publish_state(), "publish-state")

    def _on_timer_fired(self, event: TimerFiredEvent):
        self._spawn(self._handle_timer_fired(event), "timer-fired")

    async def _handle_timer_fired(self, event: TimerFiredEvent):
        await self.broadcaster.broadcast({
            "type": "timer_fired",
            "label": event["label"],
            "firedAt": event["firedAt"],
        })
        try:
            await self.agent.handle_timer_fired(event)
        except Exception as e:
            await self.broadcaster.broadcast({
                "type": "error",
                "message": f"Failed handling timer event: {e}",
            })
        await self.publish_state()

    # ─────────────────────────────────────────────
    # 세션 이벤트
    # ─────────────────────────────────────────────
    async def start_session(self, recipe_idea: str) -> Dict[str, Any]:
        result = await self.agent.initialize_with_recipe_idea(recipe_idea)
        await self.publish_state()
        return result

    async def process_frame(self, frame: VisionFrame):
        await self.agent.process_frame(frame)
        await self.publish_state()

    async def handle_user_message(self, message: str):
        await self.agent.handle_user_message(message)
        await self.publish_state()

    async def reset(self):
        await self.agent.reset_session()
        await self.publish_state()

    async def shutdown(self):
        self.timers.clear_all()
        self._cancel_overlay_expiry()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.agent.queue.close()
