"""
Configuration and environment loading for chess commentary.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (API keys, tolerances, cache and timing knobs).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/chess_commentary/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _flag(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _locales(val: Any) -> tuple[str, ...]:
    if isinstance(val, (list, tuple)):
        return tuple(str(v).strip().lower() for v in val if str(v).strip())
    return tuple(p.strip().lower() for p in str(val).split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str
    model: str
    fallback_model: str

    # Transport knobs
    responses_timeout_s: float
    responses_retries: int
    use_repair_agent: bool

    # Alignment knobs
    verification_tolerance: int
    presentation_tolerance: int
    verification_fallback: bool
    presentation_fallback: bool
    settle_delay_s: float

    # Response cache
    cache_dir: str
    cache_ttl_s: float

    # Locales
    default_locale: str
    supported_locales: tuple[str, ...]


SETTINGS = Settings(
    llm_api_key=_get("CHESSCOMMENT_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
    api_base=_get("CHESSCOMMENT_LLM_BASE_URL", ""),
    model=_get("CHESSCOMMENT_MODEL", "gpt-4o"),
    fallback_model=_get("CHESSCOMMENT_FALLBACK_MODEL", "gpt-4o-mini"),
    responses_timeout_s=float(_get("CHESSCOMMENT_RESPONSES_TIMEOUT_S", 120.0, cast=float)),
    responses_retries=int(_get("CHESSCOMMENT_RESPONSES_RETRIES", 2, cast=int)),
    use_repair_agent=_get("CHESSCOMMENT_USE_REPAIR_AGENT", False, cast=_flag),
    verification_tolerance=int(_get("CHESSCOMMENT_VERIFICATION_TOLERANCE", 2, cast=int)),
    presentation_tolerance=int(_get("CHESSCOMMENT_PRESENTATION_TOLERANCE", 1, cast=int)),
    verification_fallback=_get("CHESSCOMMENT_VERIFICATION_FALLBACK", False, cast=_flag),
    presentation_fallback=_get("CHESSCOMMENT_PRESENTATION_FALLBACK", True, cast=_flag),
    settle_delay_s=float(_get("CHESSCOMMENT_SETTLE_DELAY_S", 0.5, cast=float)),
    cache_dir=_get("CHESSCOMMENT_CACHE_DIR", os.path.join(_repo_root(), "cache")),
    cache_ttl_s=float(_get("CHESSCOMMENT_CACHE_TTL_S", 30 * 24 * 60 * 60, cast=float)),
    default_locale=_get("CHESSCOMMENT_DEFAULT_LOCALE", "de"),
    supported_locales=_get("CHESSCOMMENT_SUPPORTED_LOCALES", ("de", "en"), cast=_locales),
)
