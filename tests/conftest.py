import json
import random
from typing import Callable, Dict, List, Tuple

import pytest

from mafia_room.api.dispatch import Dispatcher
from mafia_room.api.ws import ConnectionClosed, ConnectionRegistry
from mafia_room.core.config import Settings
from mafia_room.core.game import GameController
from mafia_room.core.storage import RoomStore

NOW = 1_700_000_000.0


class FakeSink:
    def __init__(self):
        self.messages: List[dict] = []
        self.broken = False

    def deliver(self, message):
        if self.broken:
            raise ConnectionClosed()
        self.messages.append(message)

    def of_type(self, event: str) -> List[dict]:
        return [m["payload"] for m in self.messages if m["type"] == event]

    def last(self, event: str) -> dict:
        found = self.of_type(event)
        assert found, f"no {event} received; got {[m['type'] for m in self.messages]}"
        return found[-1]

    def clear(self):
        self.messages.clear()


class ManualScheduler:
    """Scheduler double whose timers fire only when a test says so."""

    def __init__(self):
        self.timers: Dict[str, Tuple[float, Callable[[], None]]] = {}
        self.cancelled: List[str] = []

    def schedule(self, room_id, delay, callback):
        self.cancel(room_id)
        self.timers[room_id] = (delay, callback)

    def cancel(self, room_id):
        if self.timers.pop(room_id, None) is None:
            return False
        self.cancelled.append(room_id)
        return True

    def pending(self, room_id):
        return room_id in self.timers

    def cancel_all(self):
        for room_id in list(self.timers):
            self.cancel(room_id)

    def fire(self, room_id):
        _, callback = self.timers.pop(room_id)
        callback()


class Harness:
    def __init__(self, seed: int = 7):
        self.settings = Settings()
        self.store = RoomStore()
        self.registry = ConnectionRegistry()
        self.scheduler = ManualScheduler()
        self.game = GameController(self.store, self.registry, self.scheduler, self.settings,
                                   rng=random.Random(seed), clock=lambda: NOW)
        self.dispatcher = Dispatcher(self.store, self.registry, self.game)
        self.sinks: Dict[str, FakeSink] = {}

    def connect(self) -> str:
        sink = FakeSink()
        connection_id = self.registry.register(sink)
        self.sinks[connection_id] = sink
        return connection_id

    def send(self, connection_id: str, type: str, **payload):
        self.dispatcher.handle(connection_id, json.dumps({"type": type, "payload": payload}))

    def create_room(self, name="Table") -> Tuple[str, str]:
        """Returns (host connection id, room id)."""
        host = self.connect()
        self.send(host, "createRoom", name=name)
        return host, self.sinks[host].last("roomCreated")["roomId"]

    def join(self, room_id: str, name: str, connection_id: str = None) -> Tuple[str, str]:
        connection_id = connection_id or self.connect()
        self.send(connection_id, "joinRoom", roomId=room_id, name=name)
        return connection_id, self.sinks[connection_id].last("joined")["playerId"]

    def room_with_players(self, count: int):
        host, room_id = self.create_room()
        seats = [self.join(room_id, f"P{i}", connection_id=host if i == 0 else None) for i in range(count)]
        return room_id, seats

    def player_by_role(self, room_id: str, role: str):
        room = self.store.get(room_id)
        return [p for p in room.players if p.role is not None and p.role.value == role]


@pytest.fixture
def harness():
    return Harness()
