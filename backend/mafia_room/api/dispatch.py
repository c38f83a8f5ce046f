import logging
from typing import Callable, Dict, Optional, Tuple, Type
from pydantic import BaseModel
from .ws import ConnectionRegistry
from ..core import protocol
from ..core.errors import GameError, EmptyName
from ..core.game import GameController
from ..core.rules import alive_players
from ..core.schemas import Room, Player, Role, RoomState
from ..core.storage import RoomStore

logger = logging.getLogger(__name__)

ACTIVE_STATES = (RoomState.NIGHT, RoomState.DAY)

class Dispatcher:
    """
    Routes inbound messages to one handler per message model.

    Handlers run synchronously to completion; a `GameError` raised inside
    one is answered with an `error` event to the sender only.
    """

    def __init__(self, store: RoomStore, registry: ConnectionRegistry, game: GameController):
        self.store = store
        self.registry = registry
        self.game = game
        self.handlers: Dict[Type[BaseModel], Callable[[str, BaseModel], None]] = {
            protocol.CreateRoom: self.create_room,
            protocol.ListRooms: self.list_rooms,
            protocol.JoinRoom: self.join_room,
            protocol.LeaveRoom: self.leave_room,
            protocol.ChangeName: self.change_name,
            protocol.StartGame: self.start_game,
            protocol.SendChat: self.send_chat,
            protocol.MafiaVote: self.mafia_vote,
            protocol.CommissarCheck: self.commissar_check,
            protocol.Vote: self.vote,
            protocol.RequestRoomState: self.request_room_state,
            protocol.Kick: self.kick,
            protocol.Signal: self.signal,
        }
        missing = set(protocol.MESSAGE_TYPES) - set(self.handlers)
        if missing:
            raise RuntimeError(f"No handler for {sorted(m.__name__ for m in missing)}")

    def handle(self, connection_id: str, raw: str) -> None:
        message = protocol.parse_message(raw)
        if message is None:
            return
        self.dispatch(connection_id, message)

    def dispatch(self, connection_id: str, message: BaseModel) -> None:
        handler = self.handlers[type(message)]
        try:
            handler(connection_id, message)
        except GameError as e:
            self.registry.send(connection_id, "error", {"message": e.message})
        except Exception:
            logger.exception(f"Handler for {message.type} failed")

    def disconnect(self, connection_id: str) -> None:
        self._leave(connection_id)
        self.registry.unregister(connection_id)

    def _current(self, connection_id: str) -> Tuple[Optional[Room], Optional[Player]]:
        binding = self.registry.binding(connection_id)
        if binding is None:
            return None, None
        room = self.store.find(binding.room_id)
        if room is None:
            return None, None
        return room, room.find_player(binding.player_id)

    def _leave(self, connection_id: str) -> None:
        binding = self.registry.unbind(connection_id)
        if binding is None:
            return
        room = self.store.find(binding.room_id)
        if room is None:
            return
        self._remove_player(room, binding.player_id)

    def _remove_player(self, room: Room, player_id: str) -> None:
        if self.store.remove_player(room, player_id) is None:
            return
        if room.players:
            self.game.broadcast_players(room)
        else:
            self.game.discard_room(room)
        self.game.broadcast_rooms_list()

    def create_room(self, connection_id: str, message: protocol.CreateRoom) -> None:
        room = self.store.create(message.payload.name, host_connection_id=connection_id)
        self.registry.send(connection_id, "roomCreated", {"roomId": room.id, "roomName": room.name})
        self.game.broadcast_rooms_list()

    def list_rooms(self, connection_id: str, message: protocol.ListRooms) -> None:
        self.registry.send(connection_id, "roomsList", {"rooms": self.store.summaries()})

    def join_room(self, connection_id: str, message: protocol.JoinRoom) -> None:
        payload = message.payload
        room, player = self.store.add_player(payload.room_id, payload.name, payload.avatar, connection_id)
        # A connection holds at most one seat.
        self._leave(connection_id)
        self.registry.bind(connection_id, room.id, player.id)
        self.registry.send(connection_id, "joined", {"playerId": player.id, "roomId": room.id, "roomName": room.name})
        self.game.broadcast_players(room)
        self.game.broadcast_rooms_list()

    def leave_room(self, connection_id: str, message: protocol.LeaveRoom) -> None:
        self._leave(connection_id)

    def change_name(self, connection_id: str, message: protocol.ChangeName) -> None:
        new_name = (message.payload.name or "").strip()
        if not new_name:
            raise EmptyName()
        room, player = self._current(connection_id)
        if player:
            old_name = player.name
            player.name = new_name
            if message.payload.avatar is not None:
                player.avatar = message.payload.avatar
            self.game.broadcast_players(room)
            entry = {"from": None, "name": "System", "text": f"{old_name} is now known as {new_name}", "ts": self.game.now_ms()}
            room.log.append({"type": "chat", **entry})
            self.registry.broadcast(room, "chatMessage", entry)
        self.registry.send(connection_id, "nameChanged", {"name": new_name})

    def start_game(self, connection_id: str, message: protocol.StartGame) -> None:
        room, _ = self._current(connection_id)
        if room is None:
            return
        self.game.start_game(room)

    def send_chat(self, connection_id: str, message: protocol.SendChat) -> None:
        room, player = self._current(connection_id)
        if room is None:
            return
        entry = {
            "from": player.id if player else None,
            "name": player.name if player else "??",
            "text": message.payload.text,
            "ts": self.game.now_ms(),
        }
        room.log.append({"type": "chat", **entry})
        self.registry.broadcast(room, "chatMessage", entry)

    def _actor(self, connection_id: str, role: Optional[Role] = None) -> Tuple[Optional[Room], Optional[Player]]:
        """The sender's room and player, if they are alive in a running game and hold `role`."""
        room, player = self._current(connection_id)
        if room is None or player is None or not player.alive or room.state not in ACTIVE_STATES:
            return None, None
        if role is not None and player.role != role:
            return None, None
        return room, player

    def mafia_vote(self, connection_id: str, message: protocol.MafiaVote) -> None:
        room, player = self._actor(connection_id, Role.MAFIA)
        if player is None:
            return
        room.night_actions.mafia_votes[player.id] = message.payload.target_id
        self.registry.broadcast(room, "nightActionUpdate", {"actor": player.id})

    def commissar_check(self, connection_id: str, message: protocol.CommissarCheck) -> None:
        room, player = self._actor(connection_id, Role.COMMISSAR)
        if player is None:
            return
        room.night_actions.commissar_checks[player.id] = message.payload.target_id
        self.registry.send(connection_id, "commCheckQueued", {"targetId": message.payload.target_id})

    def vote(self, connection_id: str, message: protocol.Vote) -> None:
        room, player = self._actor(connection_id)
        if player is None:
            return
        room.votes[player.id] = message.payload.target_id or None
        self.registry.broadcast(room, "voteUpdate", {
            "votesCount": len(room.votes),
            "totalAlive": len(alive_players(room)),
        })

    def request_room_state(self, connection_id: str, message: protocol.RequestRoomState) -> None:
        room, player = self._current(connection_id)
        if room is None:
            return
        self.registry.send(connection_id, "roomState", {
            "room": {"id": room.id, "name": room.name, "state": room.state.value, "dayCount": room.day_count},
            "players": room.public_players(player.id if player else None),
            "phaseEnd": room.phase_end,
        })

    def kick(self, connection_id: str, message: protocol.Kick) -> None:
        room, _ = self._current(connection_id)
        if room is None or room.host_connection_id != connection_id:
            return
        target = room.find_player(message.payload.player_id)
        if target is None:
            return
        if target.connection_id:
            self.registry.send(target.connection_id, "kicked", {})
            self.registry.unbind(target.connection_id)
        logger.info(f"Room {room.id}: player {target.id} kicked by host")
        self._remove_player(room, target.id)

    def signal(self, connection_id: str, message: protocol.Signal) -> None:
        room, player = self._current(connection_id)
        payload = message.payload
        if room is None or player is None or not payload.to:
            return
        target = room.find_player(payload.to)
        if target is None:
            return
        forwarded = {"from": player.id}
        for key in ("offer", "answer", "candidate"):
            value = getattr(payload, key)
            if value is not None:
                forwarded[key] = value
        self.registry.send(target.connection_id, "signal", forwarded)
