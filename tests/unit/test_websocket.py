"""
Tests for the visualizer WebSocket handler
"""
import asyncio
import json

import pytest
from fastapi import WebSocketDisconnect

from reson8.api.websocket import ConnectionManager, VisualizerStreamHandler


class FakeWebSocket:
    """Client that sends a fixed script of messages and then hangs up"""

    def __init__(self, incoming):
        self.incoming = list(incoming)
        self.sent = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, payload):
        self.sent.append(json.loads(payload))

    async def receive_text(self):
        await asyncio.sleep(0.05)
        if self.incoming:
            return self.incoming.pop(0)
        raise WebSocketDisconnect(code=1000)


@pytest.mark.unit
class TestVisualizerStreamHandler:
    """Test one connection's lifecycle"""

    @pytest.mark.asyncio
    async def test_serve_streams_and_answers_ping(self, engine):
        manager = ConnectionManager()
        handler = VisualizerStreamHandler(manager)
        websocket = FakeWebSocket([json.dumps({"type": "ping"})])

        await handler.serve(websocket, "viz-1", engine, frame_rate=100)

        types = [message["type"] for message in websocket.sent]
        assert websocket.accepted
        assert "visualizer_frame" in types
        assert "pong" in types

    @pytest.mark.asyncio
    async def test_stream_task_finished_after_disconnect(self, engine):
        manager = ConnectionManager()
        handler = VisualizerStreamHandler(manager)
        websocket = FakeWebSocket([])

        await handler.serve(websocket, "viz-1", engine, frame_rate=100)
        frames_sent = len(websocket.sent)
        await asyncio.sleep(0.05)

        assert manager.active_connections == {}
        assert len(websocket.sent) == frames_sent
        stream_tasks = [
            task for task in asyncio.all_tasks()
            if getattr(task.get_coro(), "__qualname__", "") == "VisualizerStreamHandler.stream"
        ]
        assert stream_tasks == []

    @pytest.mark.asyncio
    async def test_unknown_message_gets_error(self, engine):
        manager = ConnectionManager()
        handler = VisualizerStreamHandler(manager)
        websocket = FakeWebSocket([json.dumps({"type": "subscribe"})])

        await handler.serve(websocket, "viz-1", engine, frame_rate=100)

        errors = [message for message in websocket.sent if message["type"] == "error"]
        assert errors[0]["data"]["error"] == "Unknown message type: subscribe"
