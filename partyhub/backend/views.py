"""Broadcast-safe projections of session records.

Both projections are pure: they build new dicts and never touch the
canonical record.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

from .state import BINGO

HIDDEN_KEYS = ("pendingWinner",)

FULL = "full"
LIGHT = "light"

Projection = Callable[[dict[str, Any]], dict[str, Any]]


def full_view(state: dict[str, Any]) -> dict[str, Any]:
    """Admin/reviewer view: everything except values not yet revealed."""
    return {key: copy.deepcopy(value) for key, value in state.items() if key not in HIDDEN_KEYS}


def _cell_summary(cell: dict[str, Any], keep_photo: bool) -> dict[str, Any]:
    summary = {
        "promptId": cell.get("promptId"),
        "timestamp": cell.get("timestamp"),
        "hasPhoto": bool(cell.get("photoUrl")),
    }
    if keep_photo:
        summary["photoUrl"] = cell.get("photoUrl")
    return summary


def _card_summary(card: dict[str, Any], keep_photo: bool) -> dict[str, Any]:
    summary = {key: copy.deepcopy(value) for key, value in card.items() if key != "cells"}
    summary["cells"] = {prompt_id: _cell_summary(cell, keep_photo) for prompt_id, cell in card.get("cells", {}).items()}
    return summary


def bingo_light_view(state: dict[str, Any]) -> dict[str, Any]:
    """Card photos collapse to ``hasPhoto``; submissions keep photos for moderation."""
    view = {key: copy.deepcopy(value) for key, value in state.items() if key not in ("cards", "submissions", *HIDDEN_KEYS)}
    view["cards"] = {player_id: _card_summary(card, keep_photo=False) for player_id, card in state["cards"].items()}
    view["submissions"] = [
        {
            **{key: copy.deepcopy(value) for key, value in submission.items() if key != "card"},
            "card": _card_summary(submission["card"], keep_photo=True),
        }
        for submission in state["submissions"]
    ]
    return view


LIGHT_PROJECTIONS: dict[str, Projection] = {BINGO: bingo_light_view}


def light_view(state: dict[str, Any]) -> dict[str, Any]:
    projection = LIGHT_PROJECTIONS.get(state.get("gameType", ""), full_view)
    return projection(state)


def project(state: dict[str, Any], view: str = LIGHT) -> dict[str, Any]:
    if view == FULL:
        return full_view(state)
    return light_view(state)
