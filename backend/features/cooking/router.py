# features/cooking/router.py
"""
조리모드 라우터 (HTTP + WebSocket)
"""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.config import settings
from core.dependencies import get_cooking_hub
from core.exceptions import AssistantNotAvailableError, EventProcessingError, InvalidRequestError
from core.websocket import manager
from features.cooking.schemas import FrameRequest, SessionStartRequest, UserMessageRequest, VisionFrame
from features.cooking.service import CookingHub
from utils.helpers import normalize_base64, utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()


def require_hub(hub=Depends(get_cooking_hub)) -> CookingHub:
    if hub is None:
        raise AssistantNotAvailableError()
    return hub


@router.get("/config")
async def get_config():
    return {
        "captureIntervalMs": settings.CAPTURE_INTERVAL_MS,
        "requireVoice": settings.REQUIRE_VOICE,
    }


@router.get("/state")
async def get_state(hub: CookingHub = Depends(require_hub)):
    return {"state": hub.state_snapshot(), "overlay": hub.overlay, "panel": hub.panel}


@router.post("/session/start")
async def start_session(request: SessionStartRequest, hub: CookingHub = Depends(require_hub)):
    """요리 이름으로 세션 시작"""
    recipe_idea = request.recipe_idea.strip()
    if not recipe_idea:
        raise InvalidRequestError("recipe_idea is required.")

    try:
        result = await hub.start_session(recipe_idea)
    except Exception as e:
        raise EventProcessingError(str(e))
    return {"ok": True, "restoredRecipe": result["restoredRecipe"]}


@router.post("/session/reset")
async def reset_session(hub: CookingHub = Depends(require_hub)):
    try:
        await hub.reset()
    except Exception as e:
        raise EventProcessingError(str(e))
    return {"ok": True}


@router.post("/frame")
async def submit_frame(request: FrameRequest, hub: CookingHub = Depends(require_hub)):
    """카메라 프레임 처리"""
    if not request.image_base64.strip():
        raise InvalidRequestError("image_base64 is required.")

    frame = VisionFrame(
        taken_at=(request.taken_at or "").strip() or utc_now_iso(),
        mime_type=(request.mime_type or "").strip() or "image/jpeg",
        base64=normalize_base64(request.image_base64),
    )
    try:
        await hub.process_frame(frame)
    except Exception as e:
        raise EventProcessingError(str(e))
    return {"ok": True}


@router.post("/user-message")
async def user_message(request: UserMessageRequest, hub: CookingHub = Depends(require_hub)):
    message = request.message.strip()
    if not message:
        raise InvalidRequestError("message is required.")

    try:
        await hub.handle_user_message(message)
    except Exception as e:
        raise EventProcessingError(str(e))
    return {"ok": True}


@router.websocket("/ws")
async def cooking_websocket(websocket: WebSocket, hub=Depends(get_cooking_hub)):
    """화면 갱신 이벤트 수신용 WebSocket"""
    if hub is None:
        await websocket.close(code=1011, reason="Cooking assistant not available")
        return

    await manager.connect(websocket)
    try:
        await manager.send_message(websocket, hub.ready_event())
        while True:
            text = await websocket.receive_text()
            if settings.VERBOSE_TEXT_LOGS:
                logger.info(f"[ws] {text}")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"Cooking WebSocket 오류: {e}")
        manager.disconnect(websocket)
