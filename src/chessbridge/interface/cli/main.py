from __future__ import annotations

import dataclasses
import sys
import threading
import time

import chess
import click

from chessbridge.domain.ai import AICoordinator
from chessbridge.domain.engine.protocol_bridge import MAX_THINK_MS
from chessbridge.infrastructure.config import AppConfig, load_config
from chessbridge.infrastructure.engine import build_bridge, build_coordinator
from chessbridge.interface.telemetry.logging import setup_logging


def _configure(seed: int | None, depth: int | None = None) -> AppConfig:
    config = load_config()
    overrides: dict = {}
    if seed is not None:
        overrides["engine_seed"] = seed
    if depth is not None:
        overrides["search_depth"] = depth
    return dataclasses.replace(config, **overrides) if overrides else config


def _await_engine_move(coordinator: AICoordinator, timeout: float) -> str | None:
    answered = threading.Event()
    answer: list[str | None] = []

    def _deliver(move: str | None) -> None:
        answer.append(move)
        answered.set()

    if not coordinator.request_best_move(_deliver):
        raise click.ClickException("Engine refused the search request.")
    if not answered.wait(timeout):
        raise click.ClickException("Engine did not answer in time.")
    return answer[0]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def cli() -> None:
    """Play chess against a simulated UCI engine."""


@cli.command("uci")
@click.option("--seed", type=int, default=None, help="Seed the engine's move choice.")
def uci(seed: int | None) -> None:
    """Speak the engine protocol over stdin/stdout."""
    config = _configure(seed)
    setup_logging(config.additional.get("STRUCTLOG_LEVEL", "WARNING"), stream=sys.stderr)

    bridge = build_bridge(config)
    bridge.on_message(lambda message: click.echo(message.data))

    stdin = click.get_text_stream("stdin")
    for raw_line in stdin:
        line = raw_line.strip()
        if not line:
            continue
        bridge.post_message(line)
        if line == "quit":
            return

    # stdin closed without "quit": deliver replies that are already due.
    deadline = time.monotonic() + MAX_THINK_MS / 1000.0
    while bridge.has_pending_replies and time.monotonic() < deadline:
        time.sleep(0.05)
    bridge.terminate()


@cli.command("play")
@click.option(
    "--color",
    type=click.Choice(["white", "black"]),
    default="white",
    show_default=True,
    help="Colour played by the human.",
)
@click.option("--depth", type=click.IntRange(min=0), default=None, help="Engine search depth.")
@click.option("--fen", type=str, default=None, help="Start from this position.")
@click.option("--seed", type=int, default=None, help="Seed the engine's move choice.")
def play(color: str, depth: int | None, fen: str | None, seed: int | None) -> None:
    """Play a game in the terminal; type 'moves' for hints, 'quit' to stop."""
    config = _configure(seed, depth)
    setup_logging("WARNING", stream=sys.stderr, json_output=False)

    coordinator = build_coordinator(config)
    ready = threading.Event()
    coordinator.on_ready(ready.set)
    coordinator.initialize()
    try:
        if not ready.wait(config.ready_timeout_seconds):
            raise click.ClickException("Engine did not complete the handshake.")
        if fen and not coordinator.set_position(fen):
            raise click.BadParameter(f"Invalid FEN: {fen}", param_hint="--fen")

        human = "w" if color == "white" else "b"
        while not coordinator.is_game_over:
            click.echo(str(chess.Board(coordinator.current_fen)))
            click.echo("")
            if coordinator.turn == human:
                text = click.prompt("Your move", default="", show_default=False).strip()
                if text in ("quit", "exit"):
                    click.echo("Game abandoned.")
                    return
                if text == "moves":
                    click.echo(" ".join(sorted(coordinator.legal_moves())))
                    continue
                record = coordinator.apply_move(text)
                if record is None:
                    click.secho(f"Illegal move: {text}", fg="red", err=True)
                    continue
                click.echo(f"You play {record.san}")
            else:
                move = _await_engine_move(coordinator, config.move_timeout_seconds)
                if move is None:
                    break
                record = coordinator.apply_move(move)
                if record is None:
                    raise click.ClickException(f"Engine answer {move} could not be applied.")
                click.echo(f"Engine plays {record.san} ({record.uci})")

        click.echo(str(chess.Board(coordinator.current_fen)))
        click.secho(f"Game over: {coordinator.terminal_status().value}", fg="green")
    finally:
        coordinator.terminate()


@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=3000, show_default=True)
def serve(host: str, port: int) -> None:
    """Run the JSON game-session API."""
    from chessbridge.interface.http.app import create_app

    app = create_app(load_config())
    app.run(host=host, port=port, threaded=True)


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["cli", "main"]
