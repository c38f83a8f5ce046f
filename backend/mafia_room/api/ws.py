from fastapi import WebSocket
from typing import Any, Dict, NamedTuple, Optional, Protocol
import asyncio
import logging
from ..core.schemas import Room
from ..core.storage import new_id

logger = logging.getLogger(__name__)

OUTBOX_LIMIT = 256

class ConnectionClosed(Exception):
    pass

class Sink(Protocol):
    def deliver(self, message: Dict[str, Any]) -> None: ...

class Binding(NamedTuple):
    room_id: str
    player_id: str

class WebSocketConnection:
    """
    Outbound side of one websocket.

    `deliver` only enqueues, so game handlers never suspend while sending;
    `pump` drains the queue on its own task until the socket breaks or
    `close` is called. A full outbox (a client that stopped reading) makes
    `deliver` raise `asyncio.QueueFull`, which callers treat as a failed send.
    """

    def __init__(self, websocket: WebSocket, limit: int = OUTBOX_LIMIT):
        self.websocket = websocket
        self.closed = False
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=limit)

    def deliver(self, message: Dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionClosed()
        self._outbox.put_nowait(message)

    def close(self) -> None:
        self.closed = True
        # Pending traffic for a closing socket is discarded so the stop marker fits
        while self._outbox.full():
            self._outbox.get_nowait()
        self._outbox.put_nowait(None)

    async def pump(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is None:
                break
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping outbound traffic on broken socket: {type(e).__name__}: {e}")
                self.closed = True
                break

class ConnectionRegistry:
    """Live connections and the (room, player) each one is bound to."""

    def __init__(self):
        self.sinks: Dict[str, Sink] = {}
        self.bindings: Dict[str, Binding] = {}

    def register(self, sink: Sink, connection_id: Optional[str] = None) -> str:
        connection_id = connection_id or new_id(8)
        self.sinks[connection_id] = sink
        return connection_id

    def unregister(self, connection_id: str) -> None:
        self.sinks.pop(connection_id, None)
        self.bindings.pop(connection_id, None)

    def bind(self, connection_id: str, room_id: str, player_id: str) -> None:
        self.bindings[connection_id] = Binding(room_id, player_id)

    def unbind(self, connection_id: Optional[str]) -> Optional[Binding]:
        if connection_id is None:
            return None
        return self.bindings.pop(connection_id, None)

    def binding(self, connection_id: str) -> Optional[Binding]:
        return self.bindings.get(connection_id)

    def send(self, connection_id: Optional[str], event: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Best-effort delivery; failures are reported, never raised."""
        sink = self.sinks.get(connection_id) if connection_id else None
        if sink is None:
            return False
        try:
            sink.deliver({"type": event, "payload": payload or {}})
        except Exception as e:
            logger.debug(f"Send of {event} to {connection_id} failed: {type(e).__name__}")
            return False
        return True

    def broadcast(self, room: Room, event: str, payload: Dict[str, Any]) -> int:
        delivered = 0
        for player in room.players:
            if self.send(player.connection_id, event, payload):
                delivered += 1
        return delivered

    def broadcast_all(self, event: str, payload: Dict[str, Any]) -> None:
        for connection_id in list(self.sinks):
            self.send(connection_id, event, payload)
