"""
Reson8 WebSocket Management
Streams analyser snapshots of the live signal to visualizer clients
"""

import asyncio
import json
import logging
from typing import Dict

from fastapi import WebSocket, WebSocketDisconnect

from ..core.engine import EffectsEngine
from ..core.logging import websocket_logger

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages visualizer WebSocket connections"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, connection_id: str):
        """Accept new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[connection_id] = websocket

        websocket_logger.log_connection(connection_id)

    async def disconnect(self, connection_id: str, reason: str = None):
        """Handle WebSocket disconnection"""
        async with self._lock:
            removed = self.active_connections.pop(connection_id, None)

        if removed is not None:
            websocket_logger.log_disconnection(connection_id, reason)

    async def send_message(self, connection_id: str, message: dict) -> bool:
        """Send message to specific connection"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False

        payload = json.dumps(message)
        try:
            await websocket.send_text(payload)
        except (WebSocketDisconnect, RuntimeError):
            await self.disconnect(connection_id, "send failed")
            return False

        websocket_logger.log_message_sent(connection_id, message.get("type", "unknown"), len(payload))
        return True

    async def send_error(self, connection_id: str, error: str):
        """Send error message to connection"""
        await self.send_message(connection_id, {
            "type": "error",
            "data": {"error": error}
        })


class VisualizerStreamHandler:
    """Pushes analyser frames to a connection at a fixed rate"""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    @staticmethod
    def build_frame(engine: EffectsEngine) -> dict:
        analyser = engine.analyser
        return {
            "type": "visualizer_frame",
            "data": {
                "time_domain": analyser.get_byte_time_domain_data().tolist(),
                "frequency": analyser.get_byte_frequency_data().tolist(),
                "status": engine.status.value,
                "position": engine.position,
                "timestamp": asyncio.get_running_loop().time()
            }
        }

    async def stream(self, connection_id: str, engine: EffectsEngine, frame_rate: float):
        """Send frames until the connection goes away"""
        interval = 1.0 / frame_rate if frame_rate > 0 else 1.0
        while await self.manager.send_message(connection_id, self.build_frame(engine)):
            await asyncio.sleep(interval)

    async def serve(self, websocket: WebSocket, connection_id: str, engine: EffectsEngine, frame_rate: float):
        """Run one visualizer connection until the client goes away"""
        await self.manager.connect(websocket, connection_id)
        stream_task = asyncio.create_task(self.stream(connection_id, engine, frame_rate))

        try:
            while True:
                message = await websocket.receive_text()
                await self.handle_message(connection_id, message)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error(f"Visualizer WebSocket error: {e}")
        finally:
            stream_task.cancel()
            await asyncio.gather(stream_task, return_exceptions=True)
            await self.manager.disconnect(connection_id, "client closed")

    async def handle_message(self, connection_id: str, message_str: str):
        """Handle incoming WebSocket message"""
        try:
            message = json.loads(message_str)
        except json.JSONDecodeError as e:
            await self.manager.send_error(connection_id, f"Invalid message: {e}")
            return

        if message.get("type") == "ping":
            await self.manager.send_message(connection_id, {"type": "pong"})
        else:
            await self.manager.send_error(connection_id, f"Unknown message type: {message.get('type')}")
