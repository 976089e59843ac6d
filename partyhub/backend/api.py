"""FastAPI endpoints for live party games, balances and websocket sync."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import random
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .admission import PlanSource, StaticPlanSource, check_limit, get_plan_limits, normalize_plan
from .bingo import BingoGame, create_bingo_store
from .config import Settings, load_settings
from .confessions import ConfessionsGame, create_confessions_store
from .engine import ActionResult
from .errors import GameError
from .hub import BroadcastHub, SessionTransport
from .impostor import ImpostorGame, create_impostor_store
from .ledger import LedgerSource, create_ledger_source
from .media import GooglePhotosResolver, MediaResolver
from .models import decision_to_dict
from .raffle import RaffleGame, create_raffle_store
from .settlement import settle
from .state import BINGO, CONFESSIONS, IMPOSTOR, RAFFLE, TRIVIA
from .sweeper import IdleSweeper
from .trivia import TriviaGame, create_trivia_store
from .views import FULL, LIGHT, light_view, project

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StateResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    state: dict[str, Any]


class BingoJoinRequest(CamelModel):
    name: str | None = Field(default=None, max_length=80)
    user_role: str | None = None


class BingoConfigRequest(CamelModel):
    google_photos_link: str | None = None
    custom_image_url: str | None = None
    host_plan: str | None = None


class PromptsRequest(CamelModel):
    prompts: list[dict[str, Any]]


class UploadRequest(CamelModel):
    player_id: str = Field(min_length=1)
    prompt_id: int | str
    photo_url: str = Field(min_length=1)


class PlayerRequest(CamelModel):
    player_id: str = Field(min_length=1)


class RaffleJoinRequest(CamelModel):
    name: str | None = Field(default=None, max_length=80)
    user_role: str | None = None


class RaffleConfigRequest(CamelModel):
    google_photos_url: str | None = None
    custom_image_url: str | None = None
    mode: str | None = None
    allow_registration: bool | None = None
    host_plan: str | None = None


class ImpostorJoinRequest(CamelModel):
    player_id: str | None = None
    name: str | None = Field(default=None, max_length=80)
    avatar: str | None = None
    user_role: str | None = None


class ImpostorConfigRequest(CamelModel):
    player_count: int | None = None
    impostor_count: int | None = None
    main_prompt: str | None = None
    impostor_prompt: str | None = None
    knows_role: bool | None = None
    custom_image_url: str | None = None
    host_plan: str | None = None


class SelectPlayersRequest(CamelModel):
    candidates: list[dict[str, Any]] = Field(default_factory=list)


class ImpostorAnswerRequest(CamelModel):
    player_id: str = Field(min_length=1)
    answer: str | None = None


class VoteRequest(CamelModel):
    voter_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)


class ConfessionsConfigRequest(CamelModel):
    background_url: str | None = None
    status: str | None = None


class MessageRequest(CamelModel):
    text: str | None = None
    author: str | None = Field(default=None, max_length=80)


class TriviaConfigRequest(CamelModel):
    background_url: str | None = None
    host_plan: str | None = None


class TriviaQuestionRequest(CamelModel):
    text: str | None = None
    options: list[str] = Field(default_factory=list)
    correct_option: int | None = None
    duration_seconds: int | None = None
    user_plan: str | None = None
    user_role: str | None = None


class TriviaQuestionUpdate(CamelModel):
    text: str | None = None
    options: list[str] | None = None
    correct_option: int | None = None
    duration_seconds: int | None = None


class DurationRequest(CamelModel):
    duration_seconds: int


class TriviaJoinRequest(CamelModel):
    player_id: str | None = None
    name: str | None = Field(default=None, max_length=80)
    user_role: str | None = None


class TriviaAnswerRequest(CamelModel):
    player_id: str = Field(min_length=1)
    question_id: str = Field(min_length=1)
    answer: int


Respond = Callable[[str, str, ActionResult], Awaitable[StateResponse]]


def _state_route(router: APIRouter, game: Any) -> None:
    @router.get("/{event_id}/state", response_model=StateResponse)
    async def get_state(event_id: str, view: str = Query(default=LIGHT, pattern=f"^({LIGHT}|{FULL})$")) -> StateResponse:
        return StateResponse(state=project(game.state(event_id), view=view))


def _bingo_router(game: BingoGame, respond: Respond) -> APIRouter:
    router = APIRouter(prefix=f"/api/{BINGO}", tags=[BINGO])
    _state_route(router, game)

    @router.post("/{event_id}/join", response_model=StateResponse)
    async def join(event_id: str, payload: BingoJoinRequest) -> StateResponse:
        return await respond(BINGO, event_id, game.join(event_id, name=payload.name, role=payload.user_role))

    @router.put("/{event_id}/config", response_model=StateResponse)
    async def configure(event_id: str, payload: BingoConfigRequest) -> StateResponse:
        return await respond(BINGO, event_id, game.configure(event_id, payload.changes()))

    @router.put("/{event_id}/prompts", response_model=StateResponse)
    async def configure_prompts(event_id: str, payload: PromptsRequest) -> StateResponse:
        return await respond(BINGO, event_id, game.configure_prompts(event_id, payload.prompts))

    @router.post("/{event_id}/start", response_model=StateResponse)
    async def start(event_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.start(event_id))

    @router.post("/{event_id}/upload", response_model=StateResponse)
    async def upload(event_id: str, payload: UploadRequest) -> StateResponse:
        result = game.upload_cell(event_id, payload.player_id, payload.prompt_id, payload.photo_url)
        return await respond(BINGO, event_id, result)

    @router.post("/{event_id}/submit", response_model=StateResponse)
    async def submit(event_id: str, payload: PlayerRequest) -> StateResponse:
        return await respond(BINGO, event_id, game.submit(event_id, payload.player_id))

    @router.post("/{event_id}/stop", response_model=StateResponse)
    async def stop(event_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.stop(event_id))

    @router.post("/{event_id}/resume", response_model=StateResponse)
    async def resume(event_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.resume(event_id))

    @router.post("/{event_id}/finish", response_model=StateResponse)
    async def finish(event_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.finish(event_id))

    @router.post("/{event_id}/approve/{submission_id}", response_model=StateResponse)
    async def approve(event_id: str, submission_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.approve(event_id, submission_id))

    @router.post("/{event_id}/reject/{submission_id}", response_model=StateResponse)
    async def reject(event_id: str, submission_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.reject(event_id, submission_id))

    @router.post("/{event_id}/reset", response_model=StateResponse)
    async def reset(event_id: str) -> StateResponse:
        return await respond(BINGO, event_id, game.reset(event_id))

    return router


def _raffle_router(game: RaffleGame, respond: Respond) -> APIRouter:
    router = APIRouter(prefix=f"/api/{RAFFLE}", tags=[RAFFLE])
    _state_route(router, game)

    @router.post("/{event_id}/join", response_model=StateResponse)
    async def join(event_id: str, payload: RaffleJoinRequest) -> StateResponse:
        return await respond(RAFFLE, event_id, game.join(event_id, name=payload.name, role=payload.user_role))

    @router.put("/{event_id}/config", response_model=StateResponse)
    async def configure(event_id: str, payload: RaffleConfigRequest) -> StateResponse:
        return await respond(RAFFLE, event_id, game.configure(event_id, payload.changes()))

    @router.post("/{event_id}/start", response_model=StateResponse)
    async def start(event_id: str) -> StateResponse:
        return await respond(RAFFLE, event_id, game.start(event_id))

    @router.post("/{event_id}/draw", response_model=StateResponse)
    async def draw(event_id: str) -> StateResponse:
        return await respond(RAFFLE, event_id, await game.draw(event_id))

    @router.post("/{event_id}/reset", response_model=StateResponse)
    async def reset(event_id: str) -> StateResponse:
        return await respond(RAFFLE, event_id, game.reset(event_id))

    return router


def _impostor_router(game: ImpostorGame, respond: Respond) -> APIRouter:
    router = APIRouter(prefix=f"/api/{IMPOSTOR}", tags=[IMPOSTOR])
    _state_route(router, game)

    @router.post("/{event_id}/join", response_model=StateResponse)
    async def join(event_id: str, payload: ImpostorJoinRequest) -> StateResponse:
        result = game.join(event_id, payload.player_id, payload.name, avatar=payload.avatar, role=payload.user_role)
        return await respond(IMPOSTOR, event_id, result)

    @router.put("/{event_id}/config", response_model=StateResponse)
    async def configure(event_id: str, payload: ImpostorConfigRequest) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.configure(event_id, payload.changes()))

    @router.post("/{event_id}/select-players", response_model=StateResponse)
    async def select_players(event_id: str, payload: SelectPlayersRequest) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.select_players(event_id, payload.candidates))

    @router.post("/{event_id}/start", response_model=StateResponse)
    async def start(event_id: str) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.start_round(event_id))

    @router.post("/{event_id}/answer", response_model=StateResponse)
    async def answer(event_id: str, payload: ImpostorAnswerRequest) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.submit_answer(event_id, payload.player_id, payload.answer))

    @router.post("/{event_id}/open-voting", response_model=StateResponse)
    async def open_voting(event_id: str) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.open_voting(event_id))

    @router.post("/{event_id}/vote", response_model=StateResponse)
    async def vote(event_id: str, payload: VoteRequest) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.cast_vote(event_id, payload.voter_id, payload.target_id))

    @router.post("/{event_id}/reveal", response_model=StateResponse)
    async def reveal(event_id: str) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.reveal(event_id))

    @router.post("/{event_id}/reset", response_model=StateResponse)
    async def reset(event_id: str) -> StateResponse:
        return await respond(IMPOSTOR, event_id, game.reset(event_id))

    return router


def _confessions_router(game: ConfessionsGame, respond: Respond) -> APIRouter:
    router = APIRouter(prefix=f"/api/{CONFESSIONS}", tags=[CONFESSIONS])
    _state_route(router, game)

    @router.put("/{event_id}/config", response_model=StateResponse)
    async def configure(event_id: str, payload: ConfessionsConfigRequest) -> StateResponse:
        return await respond(CONFESSIONS, event_id, await game.configure(event_id, payload.changes()))

    @router.post("/{event_id}/message", response_model=StateResponse)
    async def message(event_id: str, payload: MessageRequest) -> StateResponse:
        return await respond(CONFESSIONS, event_id, game.add_message(event_id, payload.text, payload.author))

    @router.post("/{event_id}/reset", response_model=StateResponse)
    async def reset(event_id: str) -> StateResponse:
        return await respond(CONFESSIONS, event_id, game.reset(event_id))

    return router


def _trivia_router(game: TriviaGame, respond: Respond) -> APIRouter:
    router = APIRouter(prefix=f"/api/{TRIVIA}", tags=[TRIVIA])
    _state_route(router, game)

    @router.post("/{event_id}/join", response_model=StateResponse)
    async def join(event_id: str, payload: TriviaJoinRequest) -> StateResponse:
        return await respond(TRIVIA, event_id, game.join(event_id, payload.player_id, payload.name, role=payload.user_role))

    @router.put("/{event_id}/config", response_model=StateResponse)
    async def configure(event_id: str, payload: TriviaConfigRequest) -> StateResponse:
        return await respond(TRIVIA, event_id, game.configure(event_id, payload.changes()))

    @router.post("/{event_id}/questions", response_model=StateResponse)
    async def add_question(event_id: str, payload: TriviaQuestionRequest) -> StateResponse:
        question = payload.model_dump(by_alias=True, exclude={"user_plan", "user_role"})
        result = game.add_question(event_id, question, plan=payload.user_plan, role=payload.user_role)
        return await respond(TRIVIA, event_id, result)

    @router.put("/{event_id}/questions/duration", response_model=StateResponse)
    async def set_duration(event_id: str, payload: DurationRequest) -> StateResponse:
        return await respond(TRIVIA, event_id, game.set_duration(event_id, payload.duration_seconds))

    @router.put("/{event_id}/questions/{question_id}", response_model=StateResponse)
    async def update_question(event_id: str, question_id: str, payload: TriviaQuestionUpdate) -> StateResponse:
        return await respond(TRIVIA, event_id, game.update_question(event_id, question_id, payload.changes()))

    @router.delete("/{event_id}/questions/{question_id}", response_model=StateResponse)
    async def delete_question(event_id: str, question_id: str) -> StateResponse:
        return await respond(TRIVIA, event_id, game.delete_question(event_id, question_id))

    @router.post("/{event_id}/start", response_model=StateResponse)
    async def start(event_id: str) -> StateResponse:
        return await respond(TRIVIA, event_id, game.start(event_id))

    @router.post("/{event_id}/next", response_model=StateResponse)
    async def next_question(event_id: str) -> StateResponse:
        return await respond(TRIVIA, event_id, game.next_question(event_id))

    @router.post("/{event_id}/reveal", response_model=StateResponse)
    async def reveal(event_id: str) -> StateResponse:
        return await respond(TRIVIA, event_id, game.reveal_answer(event_id))

    @router.post("/{event_id}/answer", response_model=StateResponse)
    async def answer(event_id: str, payload: TriviaAnswerRequest) -> StateResponse:
        result = game.answer(event_id, payload.player_id, payload.question_id, payload.answer)
        return await respond(TRIVIA, event_id, result)

    @router.post("/{event_id}/end", response_model=StateResponse)
    async def end(event_id: str) -> StateResponse:
        return await respond(TRIVIA, event_id, game.end(event_id))

    @router.post("/{event_id}/reset", response_model=StateResponse)
    async def reset(event_id: str) -> StateResponse:
        return await respond(TRIVIA, event_id, game.reset(event_id))

    return router


def _public_limits(plan: str) -> dict[str, Any]:
    return {key: (None if value == math.inf else value) for key, value in get_plan_limits(plan).items()}


def create_app(
    settings: Settings | None = None,
    plans: PlanSource | None = None,
    ledger: LedgerSource | None = None,
    media: MediaResolver | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    settings = settings if settings is not None else load_settings()
    plan_source = plans if plans is not None else StaticPlanSource(default_plan=settings.default_plan)
    ledger_source = ledger if ledger is not None else create_ledger_source(settings.database_url)
    media_resolver = media if media is not None else GooglePhotosResolver()
    shared_rng = rng if rng is not None else random.Random()

    bingo = BingoGame(store=create_bingo_store(), plans=plan_source)
    raffle = RaffleGame(
        store=create_raffle_store(),
        plans=plan_source,
        media=media_resolver,
        countdown_seconds=settings.raffle_countdown_seconds,
        fallback_media_url=settings.fallback_media_url,
        rng=shared_rng,
    )
    impostor = ImpostorGame(store=create_impostor_store(), plans=plan_source, rng=shared_rng)
    confessions = ConfessionsGame(store=create_confessions_store(), media=media_resolver, rng=shared_rng)
    trivia = TriviaGame(store=create_trivia_store(), plans=plan_source)
    games: dict[str, Any] = {
        BINGO: bingo,
        RAFFLE: raffle,
        IMPOSTOR: impostor,
        CONFESSIONS: confessions,
        TRIVIA: trivia,
    }

    websocket_hub = BroadcastHub()

    def snapshot(game_type: str, event_id: str) -> dict[str, Any]:
        return light_view(games[game_type].state(event_id))

    async def publish_state(game_type: str, event_id: str) -> None:
        await websocket_hub.broadcast_state(game_type=game_type, event_id=event_id, state=snapshot(game_type, event_id))

    async def publish_raffle(event_id: str) -> None:
        await publish_state(RAFFLE, event_id)

    def leave(game_type: str, event_id: str, participant_id: str) -> bool:
        return games[game_type].leave(event_id, participant_id)

    def touch(game_type: str, event_id: str, participant_id: str) -> bool:
        return games[game_type].touch(event_id, participant_id)

    raffle.on_reveal = publish_raffle
    transport = SessionTransport(
        hub=websocket_hub,
        leave=leave,
        publish=publish_state,
        snapshot=snapshot,
        keepalive_seconds=settings.keepalive_seconds,
        touch=touch,
    )
    sweeper = IdleSweeper(
        games=games,
        hub=websocket_hub,
        publish=publish_state,
        idle_seconds=settings.idle_player_seconds,
        interval_seconds=settings.sweep_interval_seconds,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = asyncio.create_task(sweeper.run()) if settings.sweep_interval_seconds > 0 else None
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(title="Partyhub Live Games API", version="0.3.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.games = games
    app.state.websocket_hub = websocket_hub
    app.state.transport = transport
    app.state.sweeper = sweeper
    app.state.publish_state = publish_state

    async def respond(game_type: str, event_id: str, result: ActionResult) -> StateResponse:
        view = light_view(result.state)
        if result.changed:
            await publish_state(game_type, event_id)
        return StateResponse(state=view, **result.data)

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    app.include_router(_bingo_router(bingo, respond))
    app.include_router(_raffle_router(raffle, respond))
    app.include_router(_impostor_router(impostor, respond))
    app.include_router(_confessions_router(confessions, respond))
    app.include_router(_trivia_router(trivia, respond))

    @app.get("/api/events/{event_id}/balances")
    def get_balances(event_id: str) -> dict[str, Any]:
        return settle(ledger_source.get_ledger(event_id)).to_dict()

    @app.get("/api/plans/{plan}")
    def get_plan(plan: str) -> dict[str, Any]:
        return {"plan": normalize_plan(plan), "limits": _public_limits(plan)}

    @app.get("/api/plans/{plan}/check/{resource}")
    def check_plan_limit(plan: str, resource: str, current: int = Query(default=0, ge=0)) -> dict[str, Any]:
        return {"plan": normalize_plan(plan), "resource": resource, **decision_to_dict(check_limit(plan, resource, current))}

    @app.websocket("/ws/{game_type}/{event_id}")
    async def game_ws(websocket: WebSocket, game_type: str, event_id: str) -> None:
        if game_type not in games:
            await websocket.close(code=1008)
            return
        participant_id = websocket.query_params.get("participantId") or None
        connection = await transport.open(websocket, game_type, event_id, participant_id=participant_id)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug("websocket closed by client %s/%s", game_type, event_id)
        finally:
            await transport.close(connection)

    return app


app = create_app()
