from __future__ import annotations

from dataclasses import dataclass, field
import os


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Centralized runtime configuration for the engine bridge and its adapters."""

    flask_env: str = "production"
    search_depth: int = 15
    engine_name: str = "ChessBridge Local"
    engine_author: str = "The ChessBridge Team"
    engine_seed: int | None = None
    ready_timeout_seconds: float = 2.0
    move_timeout_seconds: float = 5.0
    additional: dict[str, str] = field(default_factory=dict)


def load_config(prefix: str = "") -> AppConfig:
    """Load application configuration from environment variables."""

    def _get_env(key: str, default: str = "") -> str:
        env_key = f"{prefix}{key}"
        return os.getenv(env_key, default)

    def _parse_int(raw: str, fallback: int | None) -> int | None:
        try:
            return int(raw)
        except (TypeError, ValueError):
            return fallback

    def _parse_float(raw: str, fallback: float) -> float:
        try:
            return float(raw)
        except (TypeError, ValueError):
            return fallback

    search_depth = _parse_int(_get_env("SEARCH_DEPTH", "15"), 15)
    if search_depth is None or search_depth < 0:
        search_depth = 15

    additional_keys = ("STRUCTLOG_LEVEL",)
    additional: dict[str, str] = {}
    for key in additional_keys:
        value = _get_env(key, "")
        if value:
            additional[key] = value

    return AppConfig(
        flask_env=_get_env("FLASK_ENV", "production"),
        search_depth=search_depth,
        engine_name=_get_env("ENGINE_NAME", "ChessBridge Local"),
        engine_author=_get_env("ENGINE_AUTHOR", "The ChessBridge Team"),
        engine_seed=_parse_int(_get_env("ENGINE_SEED", ""), None),
        ready_timeout_seconds=_parse_float(_get_env("READY_TIMEOUT_SECONDS", "2.0"), 2.0),
        move_timeout_seconds=_parse_float(_get_env("MOVE_TIMEOUT_SECONDS", "5.0"), 5.0),
        additional=additional,
    )


__all__ = ["AppConfig", "load_config"]
