"""
FastAPI application: the event-delivery adapter around the tournament core.

Exposes:
  GET  /api/tournament          Current snapshot
  POST /api/tournament          Create a tournament (opens registration)
  POST /api/tournament/join     Register a player
  POST /api/tournament/winner   Declare the winner of a player's open match
  POST /api/tournament/reset    Discard the tournament
  WS   /ws/tournament           Current snapshot, then one message per change

Create, winner and reset are admin routes: they need
"Authorization: Bearer <server.admin_token>".  With no token configured
they are refused outright.

A chat bot (reaction sign-ups, /updatewinner, /endtournament) or a web form
drives these endpoints.  Nothing here renders: consumers turn the snapshot
JSON into embeds or bracket images themselves.
"""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import os
import secrets
from pathlib import Path

from fastapi import Depends, FastAPI, Header, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from tourneybot.config import Config, LoggingConfig, load_config
from tourneybot.tournament import (
    InvalidInput,
    MatchRecorded,
    NoActiveMatchForPlayer,
    NoActiveTournament,
    Player,
    RegistrationClosed,
    RoundAdvanced,
    RoundOutcome,
    ShuffleSource,
    SnapshotChangedEvent,
    TournamentAlreadyActive,
    TournamentDetails,
    TournamentError,
    TournamentWon,
    create_state_machine,
    snapshot_to_json,
)
from tourneybot.tournament.snapshot import match_to_json, occupant_to_json

logger = logging.getLogger("tourneybot")

_CONFIG_PATH = Path(os.environ.get("TOURNEYBOT_CONFIG", "config.yaml"))

_ERROR_STATUS: dict[type[TournamentError], int] = {
    TournamentAlreadyActive: 409,
    NoActiveTournament: 409,
    RegistrationClosed: 409,
    NoActiveMatchForPlayer: 404,
    InvalidInput: 422,
}


class AdminAuthError(Exception):
    """Request to an admin route without a valid bearer token."""

    def __init__(self, kind: str, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.kind = kind
        self.status_code = status_code


def _admin_guard(admin_token: str | None):
    """Dependency that checks the Authorization header against admin_token."""

    def require_admin(authorization: str | None = Header(default=None)) -> None:
        if admin_token is None:
            raise AdminAuthError("AdminDisabled", 403, "No admin token is configured on this server")
        scheme, _, provided = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not provided:
            raise AdminAuthError("Unauthorized", 401, "Missing bearer token")
        if not secrets.compare_digest(provided.encode(), admin_token.encode()):
            raise AdminAuthError("Forbidden", 403, "Invalid admin token")

    return require_admin


# --------------------------------------------------------------------------- #
# Logging                                                                      #
# --------------------------------------------------------------------------- #

def configure_logging(cfg: LoggingConfig) -> None:
    """Console plus rotating file handler, as configured in config.yaml."""
    cfg.file_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, cfg.level),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        handlers=[
            logging.StreamHandler(),                                   # server console
            logging.handlers.RotatingFileHandler(
                cfg.file_path, maxBytes=cfg.max_bytes, backupCount=cfg.backup_count,
                encoding="utf-8",
            ),
        ],
    )


# --------------------------------------------------------------------------- #
# Snapshot fan-out                                                             #
# --------------------------------------------------------------------------- #

class SnapshotBroadcaster:
    """
    Fans SnapshotChangedEvents out to WebSocket subscribers.

    publish() is registered as a state machine listener.  Handlers are async
    and run on the event loop thread, so put_nowait() needs no locking.
    """

    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue[dict]] = set()

    def subscribe(self) -> asyncio.Queue[dict]:
        queue: asyncio.Queue[dict] = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict]) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: SnapshotChangedEvent) -> None:
        payload = {
            "type": "SnapshotChangedEvent",
            "reason": event.reason,
            "timestamp": event.timestamp.isoformat(),
            "snapshot": snapshot_to_json(event.snapshot),
        }
        for queue in list(self._subscribers):
            queue.put_nowait(payload)


def _outcome_to_json(outcome: RoundOutcome) -> dict:
    match outcome:
        case MatchRecorded():
            return {
                "type": "MatchRecorded",
                "round_number": outcome.round_number,
                "match": match_to_json(outcome.match),
            }
        case RoundAdvanced():
            return {
                "type": "RoundAdvanced",
                "round_number": outcome.round_number,
                "new_round": [match_to_json(m) for m in outcome.new_round],
            }
        case TournamentWon():
            return {
                "type": "TournamentWon",
                "champion": occupant_to_json(outcome.champion),
                "final_match": match_to_json(outcome.final_match),
            }
    raise TypeError(f"Unknown round outcome: {outcome!r}")


# --------------------------------------------------------------------------- #
# App factory                                                                  #
# --------------------------------------------------------------------------- #

def create_app(config: Config, *, rng: ShuffleSource | None = None) -> FastAPI:
    """Build an app around a fresh session; tests pass a fixed rng."""
    machine = create_state_machine(config.tournament, rng=rng)
    broadcaster = SnapshotBroadcaster()
    machine.subscribe(broadcaster.publish)

    app = FastAPI(title="tourneybot")
    app.state.machine = machine
    app.state.broadcaster = broadcaster
    admin = [Depends(_admin_guard(config.server.admin_token))]
    if config.server.admin_token is None:
        logger.warning("server.admin_token is not set: create, winner and reset are disabled")

    @app.exception_handler(TournamentError)
    async def _tournament_error(request: Request, exc: TournamentError) -> JSONResponse:
        status = _ERROR_STATUS.get(type(exc), 400)
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.kind)
        return JSONResponse(status_code=status, content={"error": exc.kind, "detail": str(exc)})

    @app.exception_handler(AdminAuthError)
    async def _admin_auth_error(request: Request, exc: AdminAuthError) -> JSONResponse:
        logger.warning("%s %s refused: %s", request.method, request.url.path, exc.kind)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.kind, "detail": str(exc)},
            headers=headers,
        )

    # ----------------------------------------------------------------------- #
    # REST                                                                    #
    # ----------------------------------------------------------------------- #

    @app.get("/api/tournament")
    async def get_tournament():
        return snapshot_to_json(machine.snapshot())

    @app.post("/api/tournament", status_code=201, dependencies=admin)
    async def create_tournament(payload: dict):
        machine.create(TournamentDetails.from_payload(payload))
        return snapshot_to_json(machine.snapshot())

    @app.post("/api/tournament/join")
    async def join_tournament(payload: dict):
        joined = machine.join(Player.from_payload(payload))
        return {"joined": joined, "snapshot": snapshot_to_json(machine.snapshot())}

    @app.post("/api/tournament/winner", dependencies=admin)
    async def declare_winner(payload: dict):
        outcome = machine.declare_winner(Player.from_payload(payload))
        return {
            "outcome": _outcome_to_json(outcome),
            "snapshot": snapshot_to_json(machine.snapshot()),
        }

    @app.post("/api/tournament/reset", dependencies=admin)
    async def reset_tournament():
        machine.reset()
        return snapshot_to_json(machine.snapshot())

    # ----------------------------------------------------------------------- #
    # WebSocket snapshot stream                                               #
    # ----------------------------------------------------------------------- #

    @app.websocket("/ws/tournament")
    async def tournament_ws(ws: WebSocket) -> None:
        await ws.accept()
        queue = broadcaster.subscribe()

        async def _send_loop() -> None:
            await ws.send_json(
                {"type": "TournamentSnapshot", "snapshot": snapshot_to_json(machine.snapshot())}
            )
            while True:
                await ws.send_json(await queue.get())

        async def _receive_loop() -> None:
            # Clients only ever close; anything they send is ignored.
            try:
                while True:
                    await ws.receive_text()
            except (WebSocketDisconnect, RuntimeError):
                pass

        # Stop streaming as soon as the client goes away.
        send_task = asyncio.create_task(_send_loop())
        recv_task = asyncio.create_task(_receive_loop())
        try:
            done, pending = await asyncio.wait(
                {send_task, recv_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, WebSocketDisconnect):
                    pass
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.warning("Snapshot stream closed with error: %s", exc)
        finally:
            broadcaster.unsubscribe(queue)

    return app


config = load_config(_CONFIG_PATH, missing_ok=True)
configure_logging(config.logging)
app = create_app(config)
