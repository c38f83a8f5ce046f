import logging
import random
import time
from typing import Callable, Optional
from .config import Settings
from .errors import NotEnoughPlayers
from .rules import assign_roles, resolve_night, resolve_day
from .scheduler import PhaseScheduler
from .schemas import Room, RoomState, Winner, NightActions
from .storage import RoomStore

logger = logging.getLogger(__name__)

class GameController:
    """
    Drives a room through waiting -> night -> day -> ... -> finished.

    Phase timers re-enter through `on_phase_timeout`; everything that a
    resolution produces is pushed to the room's connections through the
    registry.
    """

    def __init__(self, store: RoomStore, registry, scheduler: PhaseScheduler, settings: Settings,
                 rng: Optional[random.Random] = None, clock: Callable[[], float] = time.time):
        self.store = store
        self.registry = registry
        self.scheduler = scheduler
        self.settings = settings
        self.rng = rng or random.SystemRandom()
        self.clock = clock

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def phase_duration(self, phase: RoomState) -> float:
        return self.settings.night_seconds if phase == RoomState.NIGHT else self.settings.day_seconds

    def broadcast_rooms_list(self) -> None:
        self.registry.broadcast_all("roomsList", {"rooms": self.store.summaries()})

    def broadcast_players(self, room: Room) -> None:
        self.registry.broadcast(room, "playerList", {"players": room.public_players()})

    def start_game(self, room: Room) -> None:
        if len(room.players) < self.settings.min_players:
            raise NotEnoughPlayers(self.settings.min_players)
        assign_roles(room, self.rng)
        for player in room.players:
            self.registry.send(player.connection_id, "roleAssigned", {
                "role": player.role.value,
                "players": room.public_players(player.id),
            })
        room.day_count = 0
        room.votes = {}
        room.night_actions = NightActions()
        logger.info(f"Room {room.id} game started with {len(room.players)} players")
        self.start_phase(room, RoomState.NIGHT)

    def start_phase(self, room: Room, phase: RoomState) -> None:
        duration = self.phase_duration(phase)
        room.state = phase
        room.phase_end = self.now_ms() + int(duration * 1000)
        self.scheduler.schedule(room.id, duration, lambda: self.on_phase_timeout(room.id, phase))
        self.registry.broadcast(room, "phaseStarted", {"phase": phase.value, "endsAt": room.phase_end})
        logger.info(f"Room {room.id} entered {phase.value} (day {room.day_count})")

    def on_phase_timeout(self, room_id: str, phase: RoomState) -> None:
        room = self.store.find(room_id)
        if room is None or room.state != phase:
            return
        if phase == RoomState.NIGHT:
            self.finish_night(room)
        elif phase == RoomState.DAY:
            self.finish_day(room)

    def finish_night(self, room: Room) -> None:
        outcome = resolve_night(room)
        for check in outcome.checks:
            commissar = room.find_player(check.commissar_id)
            if commissar:
                self.registry.send(commissar.connection_id, "commCheckResult", {
                    "checkedId": check.checked_id,
                    "role": check.role.value if check.role else None,
                })
        if outcome.winner:
            self.end_game(room, outcome.winner)
            return
        self.start_phase(room, RoomState.DAY)
        self.registry.broadcast(room, "nightResult", {"victimId": outcome.victim_id})

    def finish_day(self, room: Room) -> None:
        outcome = resolve_day(room)
        self.registry.broadcast(room, "dayResult", {"executedId": outcome.executed_id, "tally": outcome.tally})
        if outcome.winner:
            self.end_game(room, outcome.winner)
            return
        self.start_phase(room, RoomState.NIGHT)

    def end_game(self, room: Room, winner: Winner) -> None:
        self.scheduler.cancel(room.id)
        room.state = RoomState.FINISHED
        room.phase_end = None
        self.registry.broadcast(room, "gameEnded", {"winner": winner.value})
        logger.info(f"Room {room.id} finished: {winner.value} win")

    def discard_room(self, room: Room) -> None:
        self.scheduler.cancel(room.id)
        self.store.delete(room.id)
