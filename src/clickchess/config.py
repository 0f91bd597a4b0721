"""
Configuration and environment loading for clickchess.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (sides, pacing delays, evaluator selection).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")

EVALUATOR_KINDS = ("none", "engine", "llm")


def _repo_root() -> str:
    # this file: src/clickchess/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.warning("Ignoring unreadable settings file %s", path, exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}


def _optional_int(val: Any) -> int | None:
    if val in (None, ""):
        return None
    return int(val)


@dataclass(frozen=True)
class Settings:
    # Sides
    human_color: str
    opponent_name: str

    # Pacing (seconds)
    opponent_delay_s: float
    new_game_delay_s: float

    # Evaluation collaborator
    evaluator: str
    eval_timeout_s: float
    stockfish_path: str
    engine_depth: int
    engine_movetime_ms: int | None
    llm_api_key: str
    llm_base_url: str
    llm_model: str

    # Web sessions
    session_ttl_s: int


def load_settings(path: str | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings with precedence settings.yml -> environment -> defaults."""
    cfg = _load_yaml(path or os.path.join(_repo_root(), "settings.yml"))
    env = os.environ if environ is None else environ

    def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
        if name in cfg:
            val = cfg[name]
            return cast(val) if cast else val
        val = env.get(name)
        if val is not None:
            return cast(val) if cast else val
        return default

    human_color = str(_get("CLICKCHESS_HUMAN_COLOR", "white")).strip().lower()
    if human_color not in ("white", "black"):
        raise ValueError(f"CLICKCHESS_HUMAN_COLOR must be 'white' or 'black', got {human_color!r}")
    evaluator = str(_get("CLICKCHESS_EVALUATOR", "none")).strip().lower()
    if evaluator not in EVALUATOR_KINDS:
        raise ValueError(f"CLICKCHESS_EVALUATOR must be one of {EVALUATOR_KINDS}, got {evaluator!r}")

    return Settings(
        human_color=human_color,
        opponent_name=str(_get("CLICKCHESS_OPPONENT_NAME", "Mahmoud")),
        opponent_delay_s=_get("CLICKCHESS_OPPONENT_DELAY_S", 0.45, cast=float),
        new_game_delay_s=_get("CLICKCHESS_NEW_GAME_DELAY_S", 0.3, cast=float),
        evaluator=evaluator,
        eval_timeout_s=_get("CLICKCHESS_EVAL_TIMEOUT_S", 10.0, cast=float),
        stockfish_path=str(_get("STOCKFISH_PATH", "")),
        engine_depth=_get("CLICKCHESS_ENGINE_DEPTH", 12, cast=int),
        engine_movetime_ms=_get("CLICKCHESS_ENGINE_MOVETIME_MS", None, cast=_optional_int),
        llm_api_key=str(_get("CLICKCHESS_LLM_API_KEY", _get("AI_GATEWAY_API_KEY", ""))),
        llm_base_url=str(_get("CLICKCHESS_LLM_BASE_URL", _get("AI_GATEWAY_BASE_URL", "https://ai-gateway.vercel.sh/v1"))),
        llm_model=str(_get("CLICKCHESS_LLM_MODEL", "")),
        session_ttl_s=_get("CLICKCHESS_SESSION_TTL_S", 3600, cast=int),
    )


SETTINGS = load_settings()
