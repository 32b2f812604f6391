from __future__ import annotations

import random
from typing import List

import pytest

from chessbridge.domain.chess import STARTING_FEN
from chessbridge.domain.engine import (
    DEFAULT_BOOK,
    FALLBACK_MOVES,
    OPENING_BOOK,
    BookTable,
    EngineMessage,
    EngineState,
    ProtocolBridge,
    thinking_time_ms,
)
from chessbridge.domain.engine.protocol_bridge import parse_depth

BLACK_TO_MOVE_FEN = "r1bqkbnr/pppp1ppp/2n5/1B2p3/4P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3"


def _best_moves(messages: List[str]) -> List[str]:
    return [line.split()[1] for line in messages if line.startswith("bestmove")]


def test_handshake_identifies_after_delay(bridge, scheduler, messages) -> None:
    bridge.post_message("uci")
    assert bridge.state is EngineState.awaiting_handshake

    scheduler.advance(99)
    assert messages == []

    scheduler.advance(1)
    assert messages == ["id name ChessBridge Local", "id author The ChessBridge Team", "uciok"]
    assert bridge.session.is_initialized
    assert not bridge.session.is_ready_for_search

    bridge.post_message("isready")
    scheduler.advance(100)
    assert messages[-1] == "readyok"
    assert bridge.state is EngineState.ready


def test_isready_without_handshake_answers_but_stays_uninitialized(bridge, scheduler, messages) -> None:
    bridge.post_message("isready")
    scheduler.run_all()
    assert messages == ["readyok"]
    assert bridge.state is EngineState.uninitialized
    assert not bridge.session.is_initialized


def test_isready_before_uciok_does_not_mark_ready(bridge, scheduler, messages) -> None:
    bridge.post_message("isready")
    bridge.post_message("uci")
    scheduler.run_all()
    assert "readyok" in messages
    assert bridge.state is EngineState.awaiting_handshake


def test_go_before_ready_is_ignored(bridge, scheduler, messages) -> None:
    bridge.post_message("go depth 3")
    scheduler.run_all()
    assert messages == []
    assert bridge.state is EngineState.uninitialized
    assert scheduler.pending == []


@pytest.mark.parametrize(
    ("command", "expected_ms"),
    [
        ("go depth 0", 300),
        ("go depth 5", 800),
        ("go", 1800),
        ("go depth 40", 3000),
        ("go wtime 1000 btime 1000", 1800),
    ],
)
def test_search_answers_after_thinking_time(ready_bridge, scheduler, messages, command, expected_ms) -> None:
    ready_bridge.post_message(command)
    assert ready_bridge.state is EngineState.searching

    scheduler.advance(expected_ms - 1)
    assert messages == []

    scheduler.advance(1)
    assert len(_best_moves(messages)) == 1
    assert ready_bridge.state is EngineState.ready


def test_thinking_time_is_capped() -> None:
    assert thinking_time_ms(0) == 300
    assert thinking_time_ms(15) == 1800
    assert thinking_time_ms(27) == 3000
    assert thinking_time_ms(100) == 3000


@pytest.mark.parametrize(
    ("arguments", "expected"),
    [("depth 7", 7), ("movetime 100 depth 2", 2), ("wtime 100", None), ("depth x", None), ("", None)],
)
def test_parse_depth(arguments: str, expected) -> None:
    assert parse_depth(arguments) == expected


def test_start_position_answer_comes_from_book(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("position startpos")
    ready_bridge.post_message("go depth 1")
    scheduler.run_all()
    assert _best_moves(messages)[0] in OPENING_BOOK[STARTING_FEN]


def test_book_answers_are_drawn_from_candidates(scheduler) -> None:
    seen = set()
    engine = ProtocolBridge(scheduler=scheduler, rng=random.Random(3))
    received: List[str] = []
    engine.on_message(lambda message: received.append(message.data))
    engine.post_message("uci")
    engine.post_message("isready")
    scheduler.run_all()
    for _ in range(40):
        engine.post_message(f"position fen {STARTING_FEN}")
        engine.post_message("go depth 0")
        scheduler.run_all()
    seen.update(_best_moves(received))
    assert seen <= set(OPENING_BOOK[STARTING_FEN])
    assert len(seen) > 1


def test_unknown_position_uses_fallback_for_side(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message(f"position fen {BLACK_TO_MOVE_FEN}")
    ready_bridge.post_message("go depth 0")
    scheduler.run_all()
    assert _best_moves(messages)[0] in FALLBACK_MOVES["b"]


def test_unparsable_side_defaults_to_white(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("position fen garbage x")
    assert ready_bridge.session.current_position == "garbage x"
    ready_bridge.post_message("go depth 0")
    scheduler.run_all()
    assert _best_moves(messages)[0] in FALLBACK_MOVES["w"]


@pytest.mark.parametrize(("side", "expected"), [("w", "e2e4"), ("b", "e7e5")])
def test_empty_tables_answer_default_move(scheduler, side: str, expected: str) -> None:
    engine = ProtocolBridge(scheduler=scheduler, book=BookTable(entries={}, fallback={}))
    received: List[str] = []
    engine.on_message(lambda message: received.append(message.data))
    engine.post_message("uci")
    engine.post_message("isready")
    scheduler.run_all()

    engine.post_message(f"position fen 8/8/8/8/8/8/8/K6k {side} - - 0 1")
    engine.post_message("go")
    scheduler.run_all()
    assert received[-1] == f"bestmove {expected}"


def test_position_is_stored_verbatim_without_validation(ready_bridge) -> None:
    ready_bridge.post_message("position fen this is not a position")
    assert ready_bridge.session.current_position == "this is not a position"


def test_position_before_ready_is_ignored(bridge) -> None:
    bridge.post_message(f"position fen {BLACK_TO_MOVE_FEN}")
    assert bridge.session.current_position == ""


def test_answer_uses_position_captured_when_search_started(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("position startpos")
    ready_bridge.post_message("go depth 1")
    ready_bridge.post_message(f"position fen {BLACK_TO_MOVE_FEN}")
    scheduler.run_all()
    assert ready_bridge.session.current_position == BLACK_TO_MOVE_FEN
    assert _best_moves(messages)[0] in OPENING_BOOK[STARTING_FEN]


def test_second_go_while_searching_is_ignored(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("go depth 1")
    ready_bridge.post_message("go depth 1")
    scheduler.run_all()
    assert len(_best_moves(messages)) == 1


def test_terminate_mid_search_delivers_nothing(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("go depth 10")
    ready_bridge.terminate()
    scheduler.run_all()
    assert messages == []
    assert ready_bridge.state is EngineState.terminated

    ready_bridge.post_message("uci")
    ready_bridge.post_message("isready")
    scheduler.run_all()
    assert messages == []
    assert ready_bridge.handshake() is False


def test_quit_terminates(ready_bridge) -> None:
    ready_bridge.post_message("quit")
    assert ready_bridge.state is EngineState.terminated


def test_stop_answers_immediately(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("go depth 20")
    ready_bridge.post_message("stop")
    assert len(_best_moves(messages)) == 1
    assert ready_bridge.state is EngineState.ready

    scheduler.run_all()
    assert len(_best_moves(messages)) == 1


def test_stop_without_search_is_a_no_op(ready_bridge, messages) -> None:
    assert ready_bridge.stop() is False
    assert messages == []


def test_new_game_resets_stored_position(ready_bridge) -> None:
    ready_bridge.post_message(f"position fen {BLACK_TO_MOVE_FEN}")
    ready_bridge.post_message("ucinewgame")
    assert ready_bridge.session.current_position == STARTING_FEN


def test_latest_handler_replaces_previous(ready_bridge, scheduler, messages) -> None:
    replacement: List[str] = []
    ready_bridge.on_message(lambda message: replacement.append(message.data))
    ready_bridge.post_message("go depth 0")
    scheduler.run_all()
    assert messages == []
    assert len(_best_moves(replacement)) == 1


def test_handler_receives_message_envelopes(scheduler) -> None:
    received: List[EngineMessage] = []
    engine = ProtocolBridge(scheduler=scheduler, book=DEFAULT_BOOK)
    engine.on_message(received.append)
    engine.post_message("uci")
    scheduler.run_all()
    assert all(isinstance(message, EngineMessage) for message in received)
    assert received[-1].data == "uciok"


def test_terminate_inside_handler_suppresses_remaining_replies(scheduler) -> None:
    engine = ProtocolBridge(scheduler=scheduler)
    received: List[str] = []

    def handler(message: EngineMessage) -> None:
        received.append(message.data)
        engine.terminate()

    engine.on_message(handler)
    engine.post_message("uci")
    scheduler.run_all()
    assert received == ["id name ChessBridge Local"]


def test_unknown_and_blank_commands_are_ignored(ready_bridge, scheduler, messages) -> None:
    ready_bridge.post_message("setoption name Hash value 16")
    ready_bridge.post_message("   ")
    ready_bridge.post_message("position")
    scheduler.run_all()
    assert messages == []
    assert ready_bridge.state is EngineState.ready


def test_session_snapshot_is_a_copy(ready_bridge) -> None:
    snapshot = ready_bridge.session
    snapshot.current_position = "tampered"
    assert ready_bridge.session.current_position == ""
