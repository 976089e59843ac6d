"""Initial session records for every game type."""

from __future__ import annotations

from typing import Any

from .config import DEFAULT_MEDIA_URL

BINGO = "bingo"
RAFFLE = "raffle"
IMPOSTOR = "impostor"
CONFESSIONS = "confessions"
TRIVIA = "trivia"

GAME_TYPES = (BINGO, RAFFLE, IMPOSTOR, CONFESSIONS, TRIVIA)

DEFAULT_BINGO_PROMPTS: tuple[dict[str, Any], ...] = (
    {"id": 1, "text": "Selfie with the host", "icon": "person_pin"},
    {"id": 2, "text": "Someone laughing", "icon": "sentiment_very_satisfied"},
    {"id": 3, "text": "The tallest person", "icon": "height"},
    {"id": 4, "text": "A strange drink", "icon": "local_bar"},
    {"id": 5, "text": "Group selfie (3+)", "icon": "groups"},
    {"id": 6, "text": "Someone wearing red", "icon": "palette"},
    {"id": 7, "text": "Funny dance move", "icon": "music_note"},
    {"id": 8, "text": "The oldest guest", "icon": "elderly"},
    {"id": 9, "text": "A toast!", "icon": "celebration"},
)

DEFAULT_IMPOSTOR_CONFIG: dict[str, Any] = {
    "playerCount": 5,
    "impostorCount": 1,
    "mainPrompt": "Describe in one word what excites you most about a party",
    "impostorPrompt": "Describe in one word what excites you most about a birthday",
    "knowsRole": True,
    "customImageUrl": DEFAULT_MEDIA_URL,
}


def _base(event_id: str, game_type: str, status: str) -> dict[str, Any]:
    return {
        "eventId": event_id,
        "gameType": game_type,
        "status": status,
        "generation": 0,
        "hostPlan": None,
    }


def build_initial_bingo_state(event_id: str) -> dict[str, Any]:
    state = _base(event_id, BINGO, "WAITING")
    state.update(
        {
            "prompts": [dict(prompt) for prompt in DEFAULT_BINGO_PROMPTS],
            "googlePhotosLink": "",
            "customImageUrl": DEFAULT_MEDIA_URL,
            "winner": None,
            "players": {},
            "cards": {},
            "submissions": [],
        }
    )
    return state


def build_initial_raffle_state(event_id: str) -> dict[str, Any]:
    state = _base(event_id, RAFFLE, "IDLE")
    state.update(
        {
            "mode": "PHOTO",
            "googlePhotosUrl": "",
            "customImageUrl": "",
            "participants": {},
            "winner": None,
            "pendingWinner": None,
            "countdownEndsAt": None,
            "config": {"allowRegistration": True},
        }
    )
    return state


def build_initial_impostor_state(event_id: str) -> dict[str, Any]:
    state = _base(event_id, IMPOSTOR, "WAITING")
    state.update(
        {
            "config": dict(DEFAULT_IMPOSTOR_CONFIG),
            "lobby": [],
            "activePlayers": [],
            "votes": {},
            "winner": None,
            "result": None,
        }
    )
    return state


def build_initial_confessions_state(event_id: str) -> dict[str, Any]:
    state = _base(event_id, CONFESSIONS, "ACTIVE")
    state.update({"backgroundUrl": DEFAULT_MEDIA_URL, "messages": []})
    return state


def build_initial_trivia_state(event_id: str) -> dict[str, Any]:
    state = _base(event_id, TRIVIA, "WAITING")
    state.update(
        {
            "questions": [],
            "currentQuestionIndex": -1,
            "questionStartTime": None,
            "isAnswerRevealed": False,
            "backgroundUrl": DEFAULT_MEDIA_URL,
            "players": {},
        }
    )
    return state
