"""
FastAPI application — HTTP/WebSocket adapter over TournamentService.

Exposes:
  GET    /api/config                                  Defaults used for new tournaments
  POST   /api/tournaments                             Create a tournament
  GET    /api/tournaments/{id}                        Tournament + derived current round
  PATCH  /api/tournaments/{id}                        Rename / change rules (draft)
  POST   /api/tournaments/{id}/participants           Register a participant
  GET    /api/tournaments/{id}/participants
  DELETE /api/tournaments/{id}/participants/{pid}     Withdraw a participant (draft)
  POST   /api/tournaments/{id}/fixtures               Generate fixtures
  POST   /api/tournaments/{id}/status                 Change tournament status
  GET    /api/tournaments/{id}/matches                List matches (filterable)
  GET    /api/tournaments/{id}/standings              Overall or ?group= standings
  GET    /api/tournaments/{id}/rounds/locked          Is a round locked
  POST   /api/matches/{id}/start                      Put a match on court
  POST   /api/matches/{id}/score                      Running score
  POST   /api/matches/{id}/result                     Final score + progression
  DELETE /api/matches/{id}
  WS     /ws/tournaments/{id}                         Event replay + live stream
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import logging.handlers
import random
import threading
from datetime import date, datetime

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from courtside.config import Config, load_config
from courtside.errors import NotFoundError, StateError, ValidationError
from courtside.notifications import FanOutSink, LoggingSink, NotificationSink
from courtside.service import TournamentService
from courtside.storage import InMemoryRepository
from courtside.tournaments.base import RoundDescriptor, Rules
from courtside.tournaments.events import (
    MatchCompletedEvent,
    MatchStartedEvent,
    ScoreUpdatedEvent,
    TournamentEvent,
    TournamentLiveEvent,
)
from courtside.tournaments.fixtures import FixtureOptions

try:
    config = load_config()
    _config_source = "config.yaml"
except FileNotFoundError:
    config = Config()
    _config_source = "built-in defaults"

# --------------------------------------------------------------------------- #
# Logging                                                                      #
# --------------------------------------------------------------------------- #

_LOG_FILE = config.log_file_path
_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    level=getattr(logging, config.logging.level),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    handlers=[
        logging.StreamHandler(),                                   # server console
        logging.handlers.RotatingFileHandler(
            _LOG_FILE, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
            encoding="utf-8",
        ),
    ],
)
logger = logging.getLogger("courtside")
logger.info("Configuration loaded from %s", _config_source)

_EVENT_TYPES = (MatchStartedEvent, ScoreUpdatedEvent, MatchCompletedEvent, TournamentLiveEvent)


def _to_json_dict(obj: object) -> object:
    """
    Dataclass → JSON-safe structure.  Every dataclass, nested or not, gets a
    "type" key with its class name; events also carry their "event" name.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        data: dict[str, object] = {"type": type(obj).__name__}
        if isinstance(obj, _EVENT_TYPES):
            data["event"] = obj.name
        for f in dataclasses.fields(obj):
            data[f.name] = _to_json_dict(getattr(obj, f.name))
        return data
    if isinstance(obj, (list, tuple)):
        return [_to_json_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): _to_json_dict(v) for k, v in obj.items()}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


# --------------------------------------------------------------------------- #
# Broadcaster                                                                  #
# --------------------------------------------------------------------------- #

class TournamentBroadcaster(NotificationSink):
    """
    Keeps a per-tournament log of serialised events and fans new ones out
    to connected WebSocket clients.

    publish() is called from the worker threads that run sync endpoints,
    so delivery hops onto each subscriber's event loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tournament_log: dict[str, list[dict]] = {}
        self._subscribers: dict[str, list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}

    def publish(self, event: TournamentEvent) -> None:
        payload = _to_json_dict(event)
        with self._lock:
            self._tournament_log.setdefault(event.tournament_id, []).append(payload)
            subscribers = list(self._subscribers.get(event.tournament_id, ()))
        for loop, queue in subscribers:
            loop.call_soon_threadsafe(queue.put_nowait, payload)

    def subscribe(self, tournament_id: str) -> tuple[list[dict], asyncio.Queue]:
        """Register the calling event loop; returns (replay, live queue)."""
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            replay = list(self._tournament_log.get(tournament_id, ()))
            self._subscribers.setdefault(tournament_id, []).append((loop, queue))
        return replay, queue

    def unsubscribe(self, tournament_id: str, queue: asyncio.Queue) -> None:
        with self._lock:
            remaining = [
                (loop, q) for loop, q in self._subscribers.get(tournament_id, ()) if q is not queue
            ]
            if remaining:
                self._subscribers[tournament_id] = remaining
            else:
                self._subscribers.pop(tournament_id, None)


_tournament_broadcaster = TournamentBroadcaster()
service = TournamentService(
    InMemoryRepository(),
    sink=FanOutSink(_tournament_broadcaster, LoggingSink()),
    config=config,
)

app = FastAPI(title="Courtside")


# --------------------------------------------------------------------------- #
# Error mapping                                                                #
# --------------------------------------------------------------------------- #

@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "validation", "message": str(exc)})


@app.exception_handler(StateError)
async def _state_error(request: Request, exc: StateError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": "state", "message": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found_error(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "not_found", "message": str(exc)})


def _required(payload: dict, key: str) -> object:
    if key not in payload:
        raise HTTPException(status_code=400, detail=f"Missing field: {key}")
    return payload[key]


def _round_from_query(
    tournament_id: str, stage: str | None, label: str | None, depth: int | None
) -> RoundDescriptor | None:
    """Resolve a stage/label (and optional depth) filter to a scheduled round."""
    if stage is None and label is None:
        return None
    if stage is None or label is None:
        raise HTTPException(status_code=400, detail="Round filter needs both stage and label")
    return service.find_round(tournament_id, stage, label, depth)


# --------------------------------------------------------------------------- #
# REST: tournaments                                                            #
# --------------------------------------------------------------------------- #

@app.get("/api/config")
def get_config():
    return {
        "rules": _to_json_dict(config.rules),
        "group_size": config.fixtures.group_size,
        "top_per_group": config.fixtures.top_per_group,
    }


@app.post("/api/tournaments", status_code=201)
def create_tournament(payload: dict):
    rules_raw = payload.get("rules")
    rules = None
    if rules_raw is not None:
        rules = Rules(
            winning_score=rules_raw.get("winning_score", config.rules.winning_score),
            scoring_system=rules_raw.get("scoring_system", config.rules.scoring_system),
        )
    tournament = service.create_tournament(
        name=_required(payload, "name"),
        participant_mode=payload.get("participant_mode", "singles"),
        format=_required(payload, "format"),
        rules=rules,
        tournament_id=payload.get("id"),
    )
    return _to_json_dict(tournament)


@app.get("/api/tournaments/{tournament_id}")
def get_tournament(tournament_id: str):
    data = _to_json_dict(service.get_tournament(tournament_id))
    data["current_round"] = service.current_round(tournament_id)
    return data


@app.patch("/api/tournaments/{tournament_id}")
def update_tournament(tournament_id: str, payload: dict):
    rules_raw = payload.get("rules")
    rules = None
    if rules_raw is not None:
        changes = {k: rules_raw[k] for k in ("winning_score", "scoring_system") if k in rules_raw}
        rules = dataclasses.replace(service.get_tournament(tournament_id).rules, **changes)
    tournament = service.update_tournament(tournament_id, name=payload.get("name"), rules=rules)
    return _to_json_dict(tournament)


@app.post("/api/tournaments/{tournament_id}/participants", status_code=201)
def add_participant(tournament_id: str, payload: dict):
    participant = service.add_participant(
        tournament_id,
        display_name=_required(payload, "display_name"),
        roster=payload.get("roster"),
        participant_id=payload.get("id"),
    )
    return _to_json_dict(participant)


@app.get("/api/tournaments/{tournament_id}/participants")
def list_participants(tournament_id: str):
    return _to_json_dict(service.list_participants(tournament_id))


@app.delete("/api/tournaments/{tournament_id}/participants/{participant_id}", status_code=204)
def remove_participant(tournament_id: str, participant_id: str) -> None:
    service.remove_participant(tournament_id, participant_id)


@app.post("/api/tournaments/{tournament_id}/fixtures", status_code=201)
def generate_fixtures(tournament_id: str, payload: dict | None = None):
    payload = payload or {}
    defaults = config.fixture_options()
    seed = payload.get("random_seed")
    options = FixtureOptions(
        num_groups=payload.get("num_groups"),
        group_size=payload.get("group_size", defaults.group_size),
        top_per_group=payload.get("top_per_group", defaults.top_per_group),
        seeding=payload.get("seeding"),
        rng=random.Random(seed) if seed is not None else defaults.rng,
    )
    matches = service.generate_fixtures(
        tournament_id,
        format=payload.get("format"),
        participants=payload.get("participants"),
        options=options,
    )
    return _to_json_dict(matches)


@app.post("/api/tournaments/{tournament_id}/status")
def set_status(tournament_id: str, payload: dict):
    return _to_json_dict(service.set_tournament_status(tournament_id, _required(payload, "status")))


@app.get("/api/tournaments/{tournament_id}/matches")
def list_matches(
    tournament_id: str,
    stage: str | None = None,
    label: str | None = None,
    depth: int | None = None,
    status: str | None = None,
    group: str | None = None,
):
    matches = service.list_matches(
        tournament_id,
        round=_round_from_query(tournament_id, stage, label, depth),
        status=status,
        group_label=group,
    )
    return _to_json_dict(matches)


@app.get("/api/tournaments/{tournament_id}/standings")
def get_standings(tournament_id: str, group: str | None = None):
    return _to_json_dict(service.get_standings(tournament_id, group_label=group))


@app.get("/api/tournaments/{tournament_id}/rounds/locked")
def is_round_locked(tournament_id: str, stage: str, label: str, depth: int | None = None):
    round_desc = _round_from_query(tournament_id, stage, label, depth)
    return {"round": _to_json_dict(round_desc), "locked": service.is_round_locked(tournament_id, round_desc)}


# --------------------------------------------------------------------------- #
# REST: matches                                                                #
# --------------------------------------------------------------------------- #

@app.post("/api/matches/{match_id}/start")
def start_match(match_id: str, payload: dict | None = None):
    payload = payload or {}
    return _to_json_dict(service.start_match(match_id, court_number=payload.get("court_number")))


@app.post("/api/matches/{match_id}/score")
def update_score(match_id: str, payload: dict):
    match = service.update_score(match_id, _required(payload, "score_a"), _required(payload, "score_b"))
    return _to_json_dict(match)


@app.post("/api/matches/{match_id}/result")
def record_result(match_id: str, payload: dict):
    record = service.record_match_result(
        match_id, _required(payload, "score_a"), _required(payload, "score_b")
    )
    return _to_json_dict(record)


@app.delete("/api/matches/{match_id}", status_code=204)
def delete_match(match_id: str) -> None:
    service.delete_match(match_id)


# --------------------------------------------------------------------------- #
# WebSocket tournament feed                                                    #
# --------------------------------------------------------------------------- #

@app.websocket("/ws/tournaments/{tournament_id}")
async def tournament_ws(ws: WebSocket, tournament_id: str) -> None:
    await ws.accept()
    replay, queue = _tournament_broadcaster.subscribe(tournament_id)

    async def _send_loop() -> None:
        for payload in replay:
            await ws.send_json(payload)
        while True:
            await ws.send_json(await queue.get())

    async def _receive_loop() -> None:
        # Clients never send anything meaningful; this only notices disconnects.
        try:
            while True:
                await ws.receive_text()
        except (WebSocketDisconnect, RuntimeError):
            pass

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
            if task.exception() and not isinstance(task.exception(), WebSocketDisconnect):
                logger.warning("Tournament feed for %s closed with an error", tournament_id,
                               exc_info=task.exception())
    finally:
        _tournament_broadcaster.unsubscribe(tournament_id, queue)
