import logging
import random
from typing import Dict, Iterable, List, Optional
from .schemas import Room, Player, Role, RoomState, Winner, NightActions, NightOutcome, DayOutcome, CommissarCheck

logger = logging.getLogger(__name__)

def mafia_count_for(player_count: int) -> int:
    if player_count <= 5:
        return 1
    return max(1, player_count // 4)

def build_role_pool(player_count: int) -> List[Role]:
    """Unshuffled roles for a table of `player_count` seats."""
    pool = [Role.MAFIA] * mafia_count_for(player_count)
    pool.append(Role.COMMISSAR)
    while len(pool) < player_count:
        pool.append(Role.VILLAGER)
    return pool

def assign_roles(room: Room, rng: random.Random) -> None:
    pool = build_role_pool(len(room.players))
    # Fisher-Yates; any permutation of the pool is equally likely
    rng.shuffle(pool)
    for player, role in zip(room.players, pool):
        player.role = role
        player.alive = True

def alive_players(room: Room) -> List[Player]:
    return [p for p in room.players if p.alive]

def check_end_conditions(room: Room) -> Optional[Winner]:
    alive = alive_players(room)
    mafia = len([p for p in alive if p.role == Role.MAFIA])
    others = len(alive) - mafia
    if mafia == 0:
        return Winner.VILLAGERS
    if mafia >= others:
        return Winner.MAFIA
    return None

def tally_votes(votes: Iterable[Optional[str]]) -> Dict[str, int]:
    """Count non-empty targets, keeping first-vote order per target."""
    tally: Dict[str, int] = {}
    for target_id in votes:
        if not target_id:
            continue
        tally[target_id] = tally.get(target_id, 0) + 1
    return tally

def night_victim(tally: Dict[str, int]) -> Optional[str]:
    # First target to reach the top count keeps it on a tie.
    victim_id = None
    most = 0
    for target_id, count in tally.items():
        if count > most:
            most = count
            victim_id = target_id
    return victim_id

def day_execution(tally: Dict[str, int]) -> Optional[str]:
    # Any target matching the current top count cancels the execution.
    executed_id = None
    most = 0
    for target_id, count in tally.items():
        if count > most:
            most = count
            executed_id = target_id
        elif count == most:
            executed_id = None
    return executed_id

def resolve_night(room: Room) -> NightOutcome:
    """
    Applies the night's actions to the room.

    Commissar checks are reported whether or not anyone dies. On a win the
    room is marked finished; otherwise the day counter advances and the
    caller is expected to start the day phase.
    """
    tally = tally_votes(room.night_actions.mafia_votes.values())
    victim_id = night_victim(tally)

    checks = []
    for commissar_id, checked_id in room.night_actions.commissar_checks.items():
        target = room.find_player(checked_id)
        if target:
            checks.append(CommissarCheck(commissar_id=commissar_id, checked_id=target.id, role=target.role))

    if victim_id:
        victim = room.find_player(victim_id)
        if victim:
            victim.alive = False
            room.log.append({"type": "nightKill", "victimId": victim_id, "day": room.day_count + 1})

    room.night_actions = NightActions()

    winner = check_end_conditions(room)
    if winner:
        room.state = RoomState.FINISHED
        room.phase_end = None
    else:
        room.day_count += 1
    logger.info(f"Room {room.id} night resolved: victim={victim_id} winner={winner}")
    return NightOutcome(victim_id=victim_id, checks=checks, winner=winner)

def resolve_day(room: Room) -> DayOutcome:
    tally = tally_votes(room.votes.values())
    executed_id = day_execution(tally)

    if executed_id:
        target = room.find_player(executed_id)
        if target:
            target.alive = False
            room.log.append({"type": "executed", "victimId": executed_id, "day": room.day_count})

    room.votes = {}

    winner = check_end_conditions(room)
    if winner:
        room.state = RoomState.FINISHED
        room.phase_end = None
    logger.info(f"Room {room.id} day {room.day_count} resolved: executed={executed_id} winner={winner}")
    return DayOutcome(executed_id=executed_id, tally=tally, winner=winner)
