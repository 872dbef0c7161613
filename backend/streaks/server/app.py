from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from shared.db import Database, SqliteStateRepository
from shared.logging import setup_logging
from streaks.logic.enums import EscalationResponse
from streaks.logic.exceptions import NotFoundError, StreakRuleError
from streaks.logic.formulas import is_in_danger_zone, stake_for_streak
from streaks.logic.rollover import matches_for_month, monthly_summary
from streaks.server.settings import ServerSettings
from streaks.server.types import (
    BallsRequest,
    PlayerRequest,
    PowerUpsRequest,
    RecordMatchRequest,
    RespondRequest,
    WinnerRequest,
)
from streaks.session.service import StreakService

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from streaks.logic.settings import RuleSettings
    from streaks.logic.state import GameState, LiveGame

_MAX_REQUEST_BODY_SIZE = 4096

RequestModel = TypeVar("RequestModel", bound=BaseModel)


class BadRequestError(ValueError):
    """Request body is missing, too large or not valid JSON."""


async def _parse(request: Request, model: type[RequestModel]) -> RequestModel:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise BadRequestError("Request body too large")
    try:
        body = json.loads(raw_body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BadRequestError("Invalid request body") from e
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")
    return model.model_validate(body)


def _service(request: Request) -> StreakService:
    return request.app.state.service


def _state_payload(state: GameState, rules: RuleSettings) -> dict[str, Any]:
    payload = state.model_dump(mode="json")
    payload["stakes"] = {
        pid.value: {
            "next_stake": stake_for_streak(player.streak + 1, rules),
            "danger_zone": is_in_danger_zone(player.streak, rules),
        }
        for pid, player in state.players.items()
    }
    payload["month_matches"] = len(matches_for_month(state))
    payload["summary"] = {pid.value: entry for pid, entry in monthly_summary(state).items()}
    return payload


def _game_payload(game: LiveGame | None) -> dict[str, Any] | None:
    return game.model_dump(mode="json") if game is not None else None


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def get_state(request: Request) -> JSONResponse:
    service = _service(request)
    state = await service.get_or_create_current_state()
    return JSONResponse(_state_payload(state, service.rules))


async def record_match(request: Request) -> JSONResponse:
    service = _service(request)
    body = await _parse(request, RecordMatchRequest)
    state, record = await service.record_match(body.to_input())
    return JSONResponse(
        {"state": _state_payload(state, service.rules), "match": record.model_dump(mode="json")},
        status_code=201,
    )


async def delete_match(request: Request) -> JSONResponse:
    service = _service(request)
    state = await service.remove_match(request.path_params["match_id"])
    return JSONResponse(_state_payload(state, service.rules))


async def reset(request: Request) -> JSONResponse:
    service = _service(request)
    state = await service.reset_all()
    return JSONResponse(_state_payload(state, service.rules))


async def get_live_game(request: Request) -> JSONResponse:
    game = await _service(request).get_active_live_game()
    return JSONResponse({"live_game": _game_payload(game)})


async def start_live_game(request: Request) -> JSONResponse:
    game = await _service(request).start_live_game()
    return JSONResponse({"live_game": _game_payload(game)}, status_code=201)


async def escalate(request: Request) -> JSONResponse:
    body = await _parse(request, PlayerRequest)
    game = await _service(request).escalate(request.path_params["game_id"], body.player)
    return JSONResponse({"live_game": _game_payload(game)})


async def respond(request: Request) -> JSONResponse:
    service = _service(request)
    body = await _parse(request, RespondRequest)
    game_id = request.path_params["game_id"]
    if body.response is EscalationResponse.REJECTED and body.record:
        game, state, record = await service.reject_and_finish(game_id)
        return JSONResponse(
            {
                "live_game": _game_payload(game),
                "state": _state_payload(state, service.rules),
                "match": record.model_dump(mode="json"),
            },
        )
    game = await service.respond_escalation(game_id, body.response)
    return JSONResponse({"live_game": _game_payload(game)})


async def update_balls(request: Request) -> JSONResponse:
    body = await _parse(request, BallsRequest)
    game = await _service(request).update_balls(request.path_params["game_id"], body.player, body.count)
    return JSONResponse({"live_game": _game_payload(game)})


async def set_power_ups(request: Request) -> JSONResponse:
    body = await _parse(request, PowerUpsRequest)
    game = await _service(request).set_power_ups(request.path_params["game_id"], body.player, body.power_ups)
    return JSONResponse({"live_game": _game_payload(game)})


async def declare_winner(request: Request) -> JSONResponse:
    service = _service(request)
    body = await _parse(request, WinnerRequest)
    game_id = request.path_params["game_id"]
    if not body.record:
        game, match_input = await service.declare_winner(game_id, body.player)
        return JSONResponse({"live_game": _game_payload(game), "match_input": match_input.model_dump(mode="json")})
    game, state, record = await service.finish_live_game(game_id, body.player)
    return JSONResponse(
        {
            "live_game": _game_payload(game),
            "state": _state_payload(state, service.rules),
            "match": record.model_dump(mode="json"),
        },
    )


async def _bad_request(_request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, ValidationError):
        message = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
        return JSONResponse({"error": message or "Invalid request body", "code": "invalid_request"}, status_code=400)
    return JSONResponse({"error": str(exc), "code": "invalid_request"}, status_code=400)


async def _rule_error(_request: Request, exc: Exception) -> JSONResponse:
    status_code = 404 if isinstance(exc, NotFoundError) else 409
    code = getattr(exc, "code", StreakRuleError.code)
    logger.info("rule violation", code=code, error_message=str(exc))
    return JSONResponse({"error": str(exc), "code": code}, status_code=status_code)


def create_app(
    settings: ServerSettings | None = None,
    service: StreakService | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ServerSettings()

    # When the app creates its own service, it owns the DB lifecycle.
    owned_db: Database | None = None

    if service is None:
        db = Database(settings.database_path)
        db.connect()
        owned_db = db
        service = StreakService(SqliteStateRepository(db), rules=settings.rules)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/state", get_state, methods=["GET"]),
        Route("/matches", record_match, methods=["POST"]),
        Route("/matches/{match_id}", delete_match, methods=["DELETE"]),
        Route("/reset", reset, methods=["POST"]),
        Route("/live-game", get_live_game, methods=["GET"]),
        Route("/live-game", start_live_game, methods=["POST"]),
        Route("/live-game/{game_id}/escalate", escalate, methods=["POST"]),
        Route("/live-game/{game_id}/respond", respond, methods=["POST"]),
        Route("/live-game/{game_id}/balls", update_balls, methods=["POST"]),
        Route("/live-game/{game_id}/power-ups", set_power_ups, methods=["POST"]),
        Route("/live-game/{game_id}/winner", declare_winner, methods=["POST"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        if owned_db is not None:
            owned_db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={
            ValueError: _bad_request,
            StreakRuleError: _rule_error,
        },
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.service = service

    logger.info("streaks server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = ServerSettings()
    setup_logging(_settings.log_dir)
    return create_app(settings=_settings)
