"""Runtime settings: Streamlit secrets first, then environment, then defaults."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:3000/api"
DEFAULT_TIMEOUT = 15.0
DEFAULT_PAGE_SIZE = 10
DEFAULT_FETCH_PAGE_SIZE = 100

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


@dataclass(frozen=True)
class Settings:
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = DEFAULT_TIMEOUT
    default_page_size: int = DEFAULT_PAGE_SIZE
    fetch_page_size: int = DEFAULT_FETCH_PAGE_SIZE
    log_level: str = "INFO"


def _streamlit_secrets() -> Mapping[str, Any]:
    """Top-level Streamlit secrets, or an empty mapping when none are configured."""
    try:
        import streamlit as st

        return {key: st.secrets[key] for key in st.secrets.keys()}
    except Exception:
        # No secrets.toml (local runs, tests)
        return {}


def _lookup(name: str, secrets: Mapping[str, Any], env: Mapping[str, str]) -> Optional[str]:
    if name in secrets and secrets[name] not in (None, ""):
        return str(secrets[name])
    value = env.get(name)
    return value if value not in (None, "") else None


def _as_number(name: str, raw: Optional[str], default, cast):
    if raw is None:
        return default
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %s", name, raw, default)
        return default
    return value


def load_settings(
    secrets: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings; a local .env is loaded into the environment when present."""
    if env is None:
        if ENV_FILE.exists():
            load_dotenv(ENV_FILE)
        env = os.environ
    if secrets is None:
        secrets = _streamlit_secrets()

    base_url = _lookup("API_BASE_URL", secrets, env) or DEFAULT_API_BASE_URL
    return Settings(
        api_base_url=base_url.rstrip("/"),
        request_timeout=_as_number(
            "API_TIMEOUT", _lookup("API_TIMEOUT", secrets, env), DEFAULT_TIMEOUT, float
        ),
        default_page_size=_as_number(
            "DEFAULT_PAGE_SIZE", _lookup("DEFAULT_PAGE_SIZE", secrets, env), DEFAULT_PAGE_SIZE, int
        ),
        fetch_page_size=_as_number(
            "FETCH_PAGE_SIZE", _lookup("FETCH_PAGE_SIZE", secrets, env), DEFAULT_FETCH_PAGE_SIZE, int
        ),
        log_level=(_lookup("LOG_LEVEL", secrets, env) or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
