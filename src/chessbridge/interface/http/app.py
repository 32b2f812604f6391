from __future__ import annotations

import time
from datetime import datetime, timezone

from flask import Flask, jsonify

from chessbridge.domain.games import SessionManager, SessionStatus
from chessbridge.domain.engine import Scheduler
from chessbridge.infrastructure.config import AppConfig, load_config
from chessbridge.infrastructure.engine import coordinator_factory
from chessbridge.infrastructure.persistence.game_session_repository import (
    InMemoryGameSessionRepository,
)
from chessbridge.interface.http.gameplay_routes import gameplay_bp
from chessbridge.interface.telemetry.logging import setup_logging, get_logger


def create_app(config: AppConfig | None = None, *, scheduler: Scheduler | None = None) -> Flask:
    """Instantiate Flask application with shared configuration."""
    cfg = config or load_config()

    setup_logging(cfg.additional.get("STRUCTLOG_LEVEL", "INFO"))
    logger = get_logger("chessbridge.app")

    app = Flask(__name__)
    app.config.update(
        ENV=cfg.flask_env,
        APP_CONFIG=cfg,
        STARTED_AT=time.monotonic(),
    )

    manager = SessionManager(
        InMemoryGameSessionRepository(),
        coordinator_factory(cfg, scheduler=scheduler),
        default_search_depth=cfg.search_depth,
        ready_timeout=cfg.ready_timeout_seconds,
        move_timeout=cfg.move_timeout_seconds,
    )
    app.extensions["session_manager"] = manager

    app.register_blueprint(gameplay_bp, url_prefix="/api/v1/sessions")

    @app.get("/healthz")
    @app.get("/api/health")
    def healthcheck():
        return jsonify(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.monotonic() - app.config["STARTED_AT"], 3),
            }
        ), 200

    @app.get("/api/stats")
    def stats():
        sessions = manager.list_sessions()
        active = sum(1 for session in sessions if session.status is SessionStatus.in_progress)
        return jsonify({"gamesPlayed": len(sessions), "activeGames": active}), 200

    logger.info(
        "flask_app_initialized",
        env=cfg.flask_env,
        search_depth=cfg.search_depth,
        engine_name=cfg.engine_name,
    )
    return app


__all__ = ["create_app"]
