from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from enum import Enum
import time

class RoomState(str, Enum):
    WAITING = "waiting"
    NIGHT = "night"
    DAY = "day"
    FINISHED = "finished"

class Role(str, Enum):
    MAFIA = "mafia"
    COMMISSAR = "commissar"
    VILLAGER = "villager"

class Winner(str, Enum):
    VILLAGERS = "villagers"
    MAFIA = "mafia"

class Player(BaseModel):
    id: str
    name: str = "Player"
    avatar: str = ""
    connection_id: Optional[str] = None
    role: Optional[Role] = None  # None until the game starts
    alive: bool = True

class NightActions(BaseModel):
    mafia_votes: Dict[str, Optional[str]] = {}
    commissar_checks: Dict[str, Optional[str]] = {}

class Room(BaseModel):
    id: str
    name: str
    players: List[Player] = []
    state: RoomState = RoomState.WAITING
    phase_end: Optional[int] = None  # epoch milliseconds
    day_count: int = 0
    votes: Dict[str, Optional[str]] = {}
    night_actions: NightActions = Field(default_factory=NightActions)
    log: List[Dict[str, Any]] = []
    host_connection_id: Optional[str] = None
    created_at: float = Field(default_factory=time.time)

    def find_player(self, player_id: Optional[str]) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "players": len(self.players),
            "state": self.state.value,
        }

    def public_players(self, for_player_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Player roster as clients see it; only the viewer's own role is revealed."""
        return [
            {
                "id": p.id,
                "name": p.name,
                "avatar": p.avatar,
                "alive": p.alive,
                "role": p.role.value if p.role and p.id == for_player_id else None,
            }
            for p in self.players
        ]

class CommissarCheck(BaseModel):
    commissar_id: str
    checked_id: str
    role: Optional[Role] = None

class NightOutcome(BaseModel):
    victim_id: Optional[str] = None
    checks: List[CommissarCheck] = []
    winner: Optional[Winner] = None

class DayOutcome(BaseModel):
    executed_id: Optional[str] = None
    tally: Dict[str, int] = {}
    winner: Optional[Winner] = None
