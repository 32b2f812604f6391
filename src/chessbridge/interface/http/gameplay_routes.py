from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from flask import Blueprint, current_app, g, jsonify, request

from chessbridge.domain.chess import MoveInput, MovePrediction, MoveSpec
from chessbridge.domain.errors import IllegalMoveError, InvalidPositionError
from chessbridge.domain.games import (
    EngineUnavailableError,
    GameSession,
    PlayedMove,
    PlayerColor,
    SessionCompletedError,
    SessionManager,
    SessionNotFoundError,
)
from chessbridge.interface.telemetry.logging import bind_trace, get_logger

gameplay_bp = Blueprint("gameplay", __name__)
logger = get_logger("chessbridge.api.sessions")


def _session_manager() -> SessionManager:
    return current_app.extensions["session_manager"]


def _trace_id() -> str:
    if "trace_id" not in g:
        g.trace_id = request.headers.get("X-Trace-Id") or uuid4().hex
    return g.trace_id


def _serialize_move(move: PlayedMove) -> dict[str, Any]:
    record = move.record
    return {
        "san": record.san,
        "uci": record.uci,
        "color": record.color,
        "from": record.from_square,
        "to": record.to_square,
        "piece": record.piece,
        "captured": record.captured,
        "check": record.is_check,
        "promotion": record.promotion,
        "fen": record.fen_after,
        "actor": move.actor.value,
        "substituted": move.substituted,
        "timestamp": move.timestamp.isoformat(),
    }


def _serialize_prediction(prediction: MovePrediction) -> dict[str, Any]:
    return {"uci": prediction.uci, "san": prediction.san, "evaluation": prediction.quality.value}


def _serialize_session(session: GameSession, trace_id: str | None = None) -> dict[str, Any]:
    return {
        "id": str(session.id),
        "status": session.status.value,
        "terminalStatus": session.terminal_status.value,
        "playerColor": session.player_color.value,
        "searchDepth": session.search_depth,
        "initialFen": session.initial_fen,
        "currentFen": session.current_fen,
        "turn": session.coordinator.turn,
        "moves": [_serialize_move(move) for move in session.moves],
        "startedAt": session.started_at.isoformat(),
        "updatedAt": session.updated_at.isoformat(),
        "endedAt": session.ended_at.isoformat() if session.ended_at else None,
        "traceId": trace_id,
    }


def _domain_error(code: str, message: str, status: int = 400, detail: Any | None = None):
    payload: dict[str, Any] = {"code": code, "message": message, "traceId": _trace_id()}
    if detail is not None:
        payload["detail"] = detail
    return jsonify(payload), status


def _parse_session_id(session_id: str) -> UUID | None:
    try:
        return UUID(session_id)
    except ValueError:
        return None


def _move_from_payload(payload: dict[str, Any]) -> MoveInput | None:
    uci = payload.get("uci")
    if isinstance(uci, str):
        return uci
    if isinstance(payload.get("from"), str) and isinstance(payload.get("to"), str):
        return MoveSpec.from_mapping(payload)
    return None


@gameplay_bp.post("")
def create_session():
    payload = request.get_json(silent=True) or {}
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id)
    if not isinstance(payload, dict):
        return _domain_error("invalid_color", "Request body must be a JSON object.")

    try:
        player_color = PlayerColor(payload.get("playerColor", "white"))
    except ValueError:
        return _domain_error("invalid_color", "playerColor must be 'white' or 'black'.")

    search_depth = payload.get("searchDepth")
    if search_depth is not None and (
        not isinstance(search_depth, int) or isinstance(search_depth, bool) or search_depth < 0
    ):
        return _domain_error("invalid_depth", "searchDepth must be a non-negative integer.")

    fen = payload.get("fen")
    if fen is not None and not isinstance(fen, str):
        return _domain_error("invalid_position", "fen must be a string.")

    try:
        session = _session_manager().create_session(
            player_color=player_color,
            search_depth=search_depth,
            initial_fen=fen,
        )
    except InvalidPositionError as exc:
        log.warning("invalid_position_rejected", fen=fen)
        return _domain_error(exc.code, str(exc), status=400)
    except EngineUnavailableError as exc:
        log.error("engine_unavailable", detail=str(exc))
        return _domain_error(exc.code, str(exc), status=503)

    log.info(
        "session_created",
        session_id=str(session.id),
        player_color=player_color.value,
        search_depth=session.search_depth,
    )
    return jsonify(_serialize_session(session, trace_id=trace_id)), 201


@gameplay_bp.get("/<session_id>")
def get_session(session_id: str):
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id, session_id=session_id)
    session_uuid = _parse_session_id(session_id)
    if session_uuid is None:
        return _domain_error("invalid_session_id", "sessionId must be a valid UUID.", status=400)

    try:
        session = _session_manager().get_session(session_uuid)
    except SessionNotFoundError:
        log.warning("session_not_found")
        return _domain_error("session_not_found", "Session not found.", status=404)

    return jsonify(_serialize_session(session, trace_id=trace_id)), 200


@gameplay_bp.post("/<session_id>/moves")
def submit_move(session_id: str):
    payload = request.get_json(silent=True) or {}
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id, session_id=session_id)
    session_uuid = _parse_session_id(session_id)
    if session_uuid is None:
        return _domain_error("invalid_session_id", "sessionId must be a valid UUID.", status=400)

    move = _move_from_payload(payload) if isinstance(payload, dict) else None
    if move is None:
        return _domain_error(
            "invalid_move", "Provide uci as a string, or from/to squares.", status=400
        )

    try:
        session = _session_manager().submit_move(session_uuid, move)
    except SessionNotFoundError:
        log.warning("session_not_found")
        return _domain_error("session_not_found", "Session not found.", status=404)
    except IllegalMoveError as exc:
        log.warning("illegal_move_rejected", move=str(move), detail=str(exc))
        return _domain_error(exc.code, str(exc), status=409)
    except SessionCompletedError as exc:
        log.warning("move_after_completion", reason=str(exc))
        return _domain_error(exc.code, "Session already completed.", status=409)
    except EngineUnavailableError as exc:
        log.error("engine_unavailable", detail=str(exc))
        return _domain_error(exc.code, str(exc), status=503)

    log.info("move_accepted", move=str(move), total_moves=len(session.moves))
    return jsonify(_serialize_session(session, trace_id=trace_id)), 200


@gameplay_bp.get("/<session_id>/legal-moves")
def legal_moves(session_id: str):
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id, session_id=session_id)
    session_uuid = _parse_session_id(session_id)
    if session_uuid is None:
        return _domain_error("invalid_session_id", "sessionId must be a valid UUID.", status=400)

    square = request.args.get("square")
    annotate = request.args.get("annotate", "").lower() in ("1", "true", "yes")
    manager = _session_manager()
    try:
        moves = manager.legal_moves(session_uuid, square)
        predictions = manager.predicted_moves(session_uuid) if annotate else None
    except SessionNotFoundError:
        log.warning("session_not_found")
        return _domain_error("session_not_found", "Session not found.", status=404)

    body: dict[str, Any] = {"square": square, "moves": moves, "traceId": trace_id}
    if predictions is not None:
        body["predictions"] = [_serialize_prediction(item) for item in predictions]
    return jsonify(body), 200


@gameplay_bp.post("/<session_id>/reset")
def reset_session(session_id: str):
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id, session_id=session_id)
    session_uuid = _parse_session_id(session_id)
    if session_uuid is None:
        return _domain_error("invalid_session_id", "sessionId must be a valid UUID.", status=400)

    try:
        session = _session_manager().reset(session_uuid)
    except SessionNotFoundError:
        log.warning("session_not_found")
        return _domain_error("session_not_found", "Session not found.", status=404)
    except SessionCompletedError as exc:
        return _domain_error(exc.code, str(exc), status=409)
    except EngineUnavailableError as exc:
        log.error("engine_unavailable", detail=str(exc))
        return _domain_error(exc.code, str(exc), status=503)

    log.info("session_reset")
    return jsonify(_serialize_session(session, trace_id=trace_id)), 200


@gameplay_bp.delete("/<session_id>")
def close_session(session_id: str):
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id, session_id=session_id)
    session_uuid = _parse_session_id(session_id)
    if session_uuid is None:
        return _domain_error("invalid_session_id", "sessionId must be a valid UUID.", status=400)

    try:
        session = _session_manager().close_session(session_uuid)
    except SessionNotFoundError:
        log.warning("session_not_found")
        return _domain_error("session_not_found", "Session not found.", status=404)

    log.info("session_closed", resulting_status=session.status.value)
    return jsonify(_serialize_session(session, trace_id=trace_id)), 200


__all__ = ["gameplay_bp"]
