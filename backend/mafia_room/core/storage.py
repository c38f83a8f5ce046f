import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple
from .schemas import Room, Player
from .errors import RoomNotFound

logger = logging.getLogger(__name__)

def new_id(length: int = 8) -> str:
    return uuid.uuid4().hex[:length]

class RoomStore:
    """In-memory rooms keyed by id. Owns player membership."""

    def __init__(self, id_factory: Callable[[int], str] = new_id):
        self._rooms: Dict[str, Room] = {}
        self._new_id = id_factory

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def create(self, name: Optional[str] = None, host_connection_id: Optional[str] = None) -> Room:
        room_id = self._new_id(6)
        while room_id in self._rooms:
            room_id = self._new_id(6)
        room = Room(id=room_id, name=name or f"Room {room_id}", host_connection_id=host_connection_id)
        self._rooms[room_id] = room
        logger.info(f"Room {room_id} created ({room.name})")
        return room

    def find(self, room_id: Optional[str]) -> Optional[Room]:
        if room_id is None:
            return None
        return self._rooms.get(room_id)

    def get(self, room_id: Optional[str]) -> Room:
        room = self.find(room_id)
        if room is None:
            raise RoomNotFound()
        return room

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def summaries(self) -> List[dict]:
        return [room.summary() for room in self._rooms.values()]

    def add_player(self, room_id: str, name: Optional[str], avatar: Optional[str], connection_id: Optional[str]) -> Tuple[Room, Player]:
        room = self.get(room_id)
        player_id = self._new_id(8)
        while room.find_player(player_id):
            player_id = self._new_id(8)
        player = Player(id=player_id, name=name or "Player", avatar=avatar or "", connection_id=connection_id)
        room.players.append(player)
        return room, player

    def remove_player(self, room: Room, player_id: str) -> Optional[Player]:
        player = room.find_player(player_id)
        if player is None:
            return None
        room.players = [p for p in room.players if p.id != player_id]
        return player

    def delete(self, room_id: str) -> Optional[Room]:
        room = self._rooms.pop(room_id, None)
        if room:
            logger.info(f"Room {room_id} destroyed")
        return room

    def stale_empty_rooms(self, ttl_seconds: float, now: Optional[float] = None) -> List[Room]:
        """Rooms nobody has joined within `ttl_seconds` of creation."""
        now = time.time() if now is None else now
        return [r for r in self._rooms.values() if not r.players and now - r.created_at >= ttl_seconds]
