import asyncio

import pytest

from partyhub.backend.admission import StaticPlanSource
from partyhub.backend.bingo import BingoGame, create_bingo_store
from partyhub.backend.confessions import ConfessionsGame, create_confessions_store
from partyhub.backend.engine import now_ms
from partyhub.backend.errors import QuotaExceededError
from partyhub.backend.hub import BroadcastHub, Connection
from partyhub.backend.raffle import RaffleGame, create_raffle_store
from partyhub.backend.sweeper import IdleSweeper

ELEVEN_MINUTES_MS = 11 * 60 * 1000


class QuietSocket:
    async def send_json(self, data) -> None:
        return None


class NoMedia:
    async def resolve(self, album_url: str) -> list[str]:
        return []


def make_sweeper(games: dict, published: list) -> IdleSweeper:
    async def publish(game_type: str, event_id: str) -> None:
        published.append((game_type, event_id))

    return IdleSweeper(games=games, hub=BroadcastHub(), publish=publish, idle_seconds=600.0)


def test_stale_players_free_their_slots_unless_connected() -> None:
    bingo = BingoGame(store=create_bingo_store(), plans=StaticPlanSource())
    player_ids = [bingo.join("evt-1", name=f"Guest {index}").data["player"]["id"] for index in range(20)]
    with pytest.raises(QuotaExceededError):
        bingo.join("evt-1", name="Late guest")
    published: list = []
    sweeper = make_sweeper({"bingo": bingo}, published)
    sweeper.hub.register(Connection(QuietSocket(), "bingo", "evt-1", participant_id=player_ids[0]))

    evicted = asyncio.run(sweeper.sweep_once(now=now_ms() + ELEVEN_MINUTES_MS))

    assert evicted == 19
    assert list(bingo.state("evt-1")["players"]) == [player_ids[0]]
    assert published == [("bingo", "evt-1")]
    assert bingo.join("evt-1", name="Late guest").changed


def test_recently_seen_players_survive_the_sweep() -> None:
    bingo = BingoGame(store=create_bingo_store(), plans=StaticPlanSource())
    stale = bingo.join("evt-1", name="Ana").data["player"]["id"]
    fresh = bingo.join("evt-1", name="Bo").data["player"]["id"]
    now = now_ms()
    bingo.state("evt-1")["players"][stale]["lastSeen"] = now - ELEVEN_MINUTES_MS
    published: list = []

    evicted = asyncio.run(make_sweeper({"bingo": bingo}, published).sweep_once(now=now))

    assert evicted == 1
    assert list(bingo.state("evt-1")["players"]) == [fresh]
    assert published == [("bingo", "evt-1")]


def test_sweep_without_idle_players_stays_silent() -> None:
    raffle = RaffleGame(store=create_raffle_store(), plans=StaticPlanSource(), media=NoMedia())
    raffle.join("evt-1", name="Ana")
    confessions = ConfessionsGame(store=create_confessions_store(), media=NoMedia())
    confessions.state("evt-1")
    published: list = []

    evicted = asyncio.run(make_sweeper({"raffle": raffle, "confessions": confessions}, published).sweep_once())

    assert evicted == 0
    assert published == []
    assert len(raffle.state("evt-1")["participants"]) == 1


def test_touch_refreshes_raffle_participant_and_ignores_strangers() -> None:
    raffle = RaffleGame(store=create_raffle_store(), plans=StaticPlanSource(), media=NoMedia())
    ana = raffle.join("evt-1", name="Ana").data["participant"]["id"]
    raffle.state("evt-1")["participants"][ana]["lastSeen"] = 0

    assert raffle.idle_participants("evt-1", cutoff_ms=1) == [ana]
    assert raffle.touch("evt-1", ana) is True
    assert raffle.idle_participants("evt-1", cutoff_ms=1) == []
    assert raffle.touch("evt-1", "stranger") is False
    assert raffle.touch("evt-unknown", ana) is False
