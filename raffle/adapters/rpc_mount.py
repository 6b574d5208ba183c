"""
raffle.adapters.rpc_mount
-------------------------

HTTP endpoints for a running raffle (prefix `/raffle` by default):

    GET  /status            → round snapshot (amounts in wei + *_ether strings)
    GET  /players/{index}   → one player, 404 when out of range
    POST /enter             → {player, value}; value is wei (int) or ether (str)
    GET  /upkeep            → check_upkeep() result
    POST /upkeep            → perform_upkeep(); returns the request id
    GET  /events            → event log query (name, emitter, from_seq, limit)

Errors raised by the engine are returned as `{"detail": {"error": <to_dict>}}`
with a status derived from the error family:

    ValidationError → 400 (PlayerIndexOutOfRange → 404)
    PreconditionError, IntegrityError → 409
    PayoutError → 502
    other RaffleError → 500

This module is transport glue only; all logic lives in `raffle.engine`.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, NoReturn, Optional, Union

from fastapi import APIRouter, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from ..engine import Raffle
from ..errors import (
    IntegrityError,
    PayoutError,
    PlayerIndexOutOfRange,
    PreconditionError,
    RaffleError,
    ValidationError,
)
from ..utils.address import normalize_address
from ..utils.units import format_ether, parse_ether

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Pydantic request/response models
# --------------------------------------------------------------------------------------


class EnterReq(BaseModel):
    player: str = Field(..., description="0x-prefixed 20-byte address")
    value: Union[int, str] = Field(..., description="wei as an integer, or ether as a decimal string")


class EnterResp(BaseModel):
    player: str
    value: int
    num_players: int


class UpkeepResp(BaseModel):
    upkeep_needed: bool
    perform_data: str
    is_open: bool
    time_passed: bool
    has_players: bool
    has_balance: bool


class PerformResp(BaseModel):
    request_id: int
    state: int


# --------------------------------------------------------------------------------------
# Error mapping
# --------------------------------------------------------------------------------------


def status_for(exc: RaffleError) -> int:
    if isinstance(exc, PlayerIndexOutOfRange):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, (PreconditionError, IntegrityError)):
        return 409
    if isinstance(exc, PayoutError):
        return 502
    return 500


def _raise_http(exc: RaffleError) -> NoReturn:
    raise HTTPException(status_code=status_for(exc), detail={"error": exc.to_dict()}) from exc


def _bad_request(message: str) -> NoReturn:
    raise HTTPException(status_code=400, detail={"error": {"code": "BAD_REQUEST", "message": message, "details": {}}})


# --------------------------------------------------------------------------------------
# REST router
# --------------------------------------------------------------------------------------


def get_router(raffle: Raffle, *, prefix: str = "/raffle", tags: Optional[Iterable[str]] = None) -> APIRouter:
    r = APIRouter(prefix=prefix, tags=list(tags or ["raffle"]))

    @r.get("/status")
    def status() -> dict:
        snap = raffle.snapshot()
        out = snap.to_dict()
        out["address"] = raffle.address
        out["entrance_fee_ether"] = format_ether(snap.entrance_fee)
        out["balance_ether"] = format_ether(snap.balance)
        return out

    @r.get("/players/{index}")
    def player(index: int) -> dict:
        try:
            return {"index": index, "player": raffle.get_player(index)}
        except RaffleError as exc:
            _raise_http(exc)

    @r.post("/enter", response_model=EnterResp)
    def enter(req: EnterReq) -> EnterResp:
        try:
            value = parse_ether(req.value)
        except (TypeError, ValueError) as exc:
            _bad_request(str(exc))
        try:
            raffle.enter(req.player, value)
        except RaffleError as exc:
            _raise_http(exc)
        except ValueError as exc:
            _bad_request(str(exc))
        return EnterResp(player=normalize_address(req.player), value=value, num_players=raffle.num_players)

    @r.get("/upkeep", response_model=UpkeepResp)
    def check_upkeep() -> UpkeepResp:
        return UpkeepResp(**raffle.check_upkeep().to_dict())

    @r.post("/upkeep", response_model=PerformResp)
    def perform_upkeep() -> PerformResp:
        try:
            request_id = raffle.perform_upkeep()
        except RaffleError as exc:
            _raise_http(exc)
        return PerformResp(request_id=int(request_id), state=int(raffle.state))

    @r.get("/events")
    def events(
        name: Optional[str] = None,
        emitter: Optional[str] = None,
        from_seq: Optional[int] = Query(None, ge=0),
        limit: int = Query(100, ge=1, le=1000),
    ) -> List[dict]:
        recs = raffle.events.get_logs(
            name=name,
            emitter=emitter.lower() if emitter else None,
            from_seq=from_seq,
            limit=limit,
        )
        return [rec.to_dict() for rec in recs]

    return r


# --------------------------------------------------------------------------------------
# Mount helper
# --------------------------------------------------------------------------------------


def _mounted_prefixes(app: Any) -> set:
    key = "_raffle_rpc_mounted"
    mounted = getattr(app.state, key, None)
    if mounted is None:
        mounted = set()
        setattr(app.state, key, mounted)
    return mounted


def mount(app: FastAPI, raffle: Raffle, prefix: str = "/raffle", *, tags: Optional[Iterable[str]] = None) -> bool:
    """
    Include the raffle router into `app`. Idempotent per (app, prefix):
    returns False when the prefix is already mounted.
    """
    mounted = _mounted_prefixes(app)
    if prefix in mounted:
        logger.debug("raffle rpc already mounted at prefix %s; skipping", prefix)
        return False
    app.include_router(get_router(raffle, prefix=prefix, tags=tags))
    mounted.add(prefix)
    logger.info("raffle rpc mounted", extra={"prefix": prefix, "raffle": raffle.address})
    return True


__all__ = ["get_router", "mount", "status_for", "EnterReq", "EnterResp", "UpkeepResp", "PerformResp"]
