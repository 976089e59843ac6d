import asyncio
import random

import pytest

from partyhub.backend.confessions import MAX_MESSAGE_LENGTH, MAX_MESSAGES, ConfessionsGame, create_confessions_store
from partyhub.backend.errors import ExternalDependencyError, IllegalTransitionError, ValidationError


class FakeResolver:
    def __init__(self, photos=None, error: Exception | None = None) -> None:
        self.photos = photos or []
        self.error = error

    async def resolve(self, album_url: str) -> list[str]:
        if self.error is not None:
            raise self.error
        return list(self.photos)


def make_game(media=None) -> ConfessionsGame:
    return ConfessionsGame(store=create_confessions_store(), media=media or FakeResolver(), rng=random.Random(5))


def test_add_message_truncates_and_defaults_author() -> None:
    game = make_game()

    result = game.add_message("evt-1", "x" * 300)
    message = result.data["message"]

    assert len(message["text"]) == MAX_MESSAGE_LENGTH
    assert message["author"] == "Anonymous"
    assert message["isNew"] is True
    assert message["rotate"].endswith("deg")
    assert -12 <= int(message["rotate"][:-3]) <= 11


def test_wall_keeps_only_latest_messages() -> None:
    game = make_game()

    for index in range(MAX_MESSAGES + 5):
        game.add_message("evt-1", f"note {index}")

    messages = game.state("evt-1")["messages"]
    assert len(messages) == MAX_MESSAGES
    assert messages[0]["text"] == "note 5"
    assert messages[-1]["text"] == f"note {MAX_MESSAGES + 4}"


def test_blank_message_rejected_and_stopped_wall_refuses() -> None:
    game = make_game()

    with pytest.raises(ValidationError):
        game.add_message("evt-1", "   ")

    asyncio.run(game.configure("evt-1", {"status": "STOPPED"}))
    with pytest.raises(IllegalTransitionError):
        game.add_message("evt-1", "hello")


def test_configure_resolves_album_background() -> None:
    game = make_game(FakeResolver(photos=["https://lh3.example/first", "https://lh3.example/second"]))

    result = asyncio.run(game.configure("evt-1", {"backgroundUrl": "https://photos.app.goo.gl/abc"}))

    assert result.state["backgroundUrl"] == "https://lh3.example/first"


def test_configure_keeps_link_when_album_fails() -> None:
    game = make_game(FakeResolver(error=ExternalDependencyError("offline")))

    result = asyncio.run(game.configure("evt-1", {"backgroundUrl": "https://photos.app.goo.gl/abc"}))

    assert result.state["backgroundUrl"] == "https://photos.app.goo.gl/abc"


def test_configure_rejects_unknown_status() -> None:
    game = make_game()

    with pytest.raises(ValidationError):
        asyncio.run(game.configure("evt-1", {"status": "PAUSED"}))


def test_reset_keeps_background_and_clears_messages() -> None:
    game = make_game()
    asyncio.run(game.configure("evt-1", {"backgroundUrl": "https://cdn.example/bg.png"}))
    game.add_message("evt-1", "hi")

    state = game.reset("evt-1").state

    assert state["backgroundUrl"] == "https://cdn.example/bg.png"
    assert state["messages"] == []
