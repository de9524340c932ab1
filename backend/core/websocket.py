# core/websocket.py
"""
WebSocket 연결 관리
"""
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info(f"[WS] 연결 ({len(self.active_connections)}개)")

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)
        logger.info(f"[WS] 해제 ({len(self.active_connections)}개)")

    async def send_message(self, websocket: WebSocket, message: Dict[str, Any]):
        await websocket.send_json(message)

    async def broadcast(self, message: Dict[str, Any]):
        """모든 클라이언트에 전송 (실패한 연결은 정리)"""
        for websocket in list(self.active_connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"[WS] 전송 실패, 연결 제거: {e}")
                self.disconnect(websocket)


manager = ConnectionManager()
