from mafia_room.core.schemas import RoomState

from conftest import NOW


def start(harness, count):
    room_id, seats = harness.room_with_players(count)
    harness.send(seats[0][0], "startGame")
    return room_id, harness.store.get(room_id)


def test_three_player_night_kill_ends_game_for_mafia(harness):
    room_id, room = start(harness, 3)
    mafia = harness.player_by_role(room_id, "mafia")[0]
    commissar = harness.player_by_role(room_id, "commissar")[0]
    villager = harness.player_by_role(room_id, "villager")[0]
    assert harness.scheduler.timers[room_id][0] == 60

    harness.send(mafia.connection_id, "mafiaVote", targetId=villager.id)
    harness.scheduler.fire(room_id)

    # one mafia against one commissar: mafia >= non-mafia
    assert not villager.alive
    assert room.state == RoomState.FINISHED
    for player in (mafia, commissar, villager):
        sink = harness.sinks[player.connection_id]
        assert sink.last("gameEnded") == {"winner": "mafia"}
        assert sink.of_type("nightResult") == []
    assert not harness.scheduler.pending(room_id)
    assert room.log[-1] == {"type": "nightKill", "victimId": villager.id, "day": 1}


def test_night_then_day_then_night(harness):
    room_id, room = start(harness, 5)
    mafia = harness.player_by_role(room_id, "mafia")[0]
    commissar = harness.player_by_role(room_id, "commissar")[0]
    villagers = harness.player_by_role(room_id, "villager")

    harness.send(mafia.connection_id, "mafiaVote", targetId=villagers[0].id)
    harness.send(commissar.connection_id, "commissarCheck", targetId=villagers[1].id)
    harness.scheduler.fire(room_id)

    assert harness.sinks[commissar.connection_id].last("commCheckResult") == {
        "checkedId": villagers[1].id, "role": "villager",
    }
    assert harness.sinks[mafia.connection_id].of_type("commCheckResult") == []
    watcher = harness.sinks[villagers[2].connection_id]
    assert watcher.last("nightResult") == {"victimId": villagers[0].id}
    assert watcher.last("phaseStarted") == {"phase": "day", "endsAt": int(NOW * 1000) + 90000}
    assert room.state == RoomState.DAY
    assert room.day_count == 1
    assert harness.scheduler.timers[room_id][0] == 90

    # a tie at the top executes nobody
    harness.send(villagers[1].connection_id, "vote", targetId=mafia.id)
    harness.send(villagers[2].connection_id, "vote", targetId=commissar.id)
    harness.send(villagers[0].connection_id, "vote", targetId=mafia.id)  # dead, ignored
    harness.scheduler.fire(room_id)

    assert watcher.last("dayResult") == {"executedId": None, "tally": {mafia.id: 1, commissar.id: 1}}
    assert room.state == RoomState.NIGHT
    assert room.votes == {}
    assert watcher.last("phaseStarted")["phase"] == "night"


def test_day_execution_of_mafia_wins_for_villagers(harness):
    room_id, room = start(harness, 4)
    mafia = harness.player_by_role(room_id, "mafia")[0]
    others = [p for p in room.players if p.id != mafia.id]

    harness.scheduler.fire(room_id)  # quiet night
    watcher = harness.sinks[others[0].connection_id]
    assert watcher.last("nightResult") == {"victimId": None}

    for player in others:
        harness.send(player.connection_id, "vote", targetId=mafia.id)
    harness.send(mafia.connection_id, "vote", targetId=others[0].id)
    harness.scheduler.fire(room_id)

    assert watcher.last("dayResult") == {"executedId": mafia.id, "tally": {mafia.id: 3, others[0].id: 1}}
    assert watcher.last("gameEnded") == {"winner": "villagers"}
    assert room.state == RoomState.FINISHED
    assert room.log[-1] == {"type": "executed", "victimId": mafia.id, "day": 1}
    assert not harness.scheduler.pending(room_id)


def test_night_tie_still_kills_first_target(harness):
    room_id, room = start(harness, 8)
    mafia = harness.player_by_role(room_id, "mafia")
    villagers = harness.player_by_role(room_id, "villager")
    assert len(mafia) == 2

    harness.send(mafia[0].connection_id, "mafiaVote", targetId=villagers[0].id)
    harness.send(mafia[1].connection_id, "mafiaVote", targetId=villagers[1].id)
    harness.scheduler.fire(room_id)

    assert not villagers[0].alive
    assert villagers[1].alive


def test_restarting_supersedes_pending_timer(harness):
    room_id, room = start(harness, 3)
    harness.send(room.players[0].connection_id, "startGame")

    assert harness.scheduler.cancelled.count(room_id) == 1
    assert list(harness.scheduler.timers) == [room_id]

    # an expiry for a phase the room is no longer in is ignored
    harness.game.on_phase_timeout(room_id, RoomState.DAY)
    assert room.state == RoomState.NIGHT


def test_new_game_after_finish(harness):
    room_id, room = start(harness, 3)
    mafia = harness.player_by_role(room_id, "mafia")[0]
    villager = harness.player_by_role(room_id, "villager")[0]
    harness.send(mafia.connection_id, "mafiaVote", targetId=villager.id)
    harness.scheduler.fire(room_id)
    assert room.state == RoomState.FINISHED

    harness.send(room.players[0].connection_id, "startGame")
    assert room.state == RoomState.NIGHT
    assert all(p.alive for p in room.players)
    assert room.day_count == 0


def test_leaving_player_votes_stay_counted(harness):
    room_id, room = start(harness, 5)
    mafia = harness.player_by_role(room_id, "mafia")[0]
    villagers = harness.player_by_role(room_id, "villager")

    harness.send(mafia.connection_id, "mafiaVote", targetId=villagers[0].id)
    harness.dispatcher.disconnect(mafia.connection_id)
    assert room_id in harness.store
    harness.scheduler.fire(room_id)

    # the departed mafia's vote was still tallied; no mafia left -> villagers win
    assert not villagers[0].alive
    assert harness.sinks[villagers[1].connection_id].last("gameEnded") == {"winner": "villagers"}
