"""Client configuration from environment variables (optionally via .env)."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from storefront.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_STATE_PATH = str(Path.home() / ".storefront" / "state.json")
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_MIRROR_ATTEMPTS = 3

STORAGE_BACKENDS = ("file", "redis", "memory")


@dataclass(frozen=True)
class Settings:
    """Resolved client settings."""
    api_url: str = DEFAULT_API_URL
    storage_backend: str = "file"
    state_path: str = DEFAULT_STATE_PATH
    redis_url: str = ""
    redis_token: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    mirror_attempts: int = DEFAULT_MIRROR_ATTEMPTS


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default
    return value if value > 0 else default


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default
    return value if value > 0 else default


def load_settings(env: Optional[Mapping[str, str]] = None, env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env: Mapping to read instead of os.environ (tests)
        env_file: Optional .env path; defaults to ./.env when present

    Returns:
        Frozen Settings instance
    """
    if env is None:
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug("Loaded .env from %s", env_path)
        env = os.environ

    backend = env.get("STOREFRONT_STORAGE", "file").lower()
    if backend not in STORAGE_BACKENDS:
        logger.warning("Unknown STOREFRONT_STORAGE=%r, falling back to file", backend)
        backend = "file"

    return Settings(
        api_url=env.get("STOREFRONT_API_URL", DEFAULT_API_URL).rstrip("/"),
        storage_backend=backend,
        state_path=env.get("STOREFRONT_STATE_PATH", DEFAULT_STATE_PATH),
        redis_url=env.get("UPSTASH_REDIS_REST_URL", ""),
        redis_token=env.get("UPSTASH_REDIS_REST_TOKEN", ""),
        http_timeout=_float_env(env, "STOREFRONT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        mirror_attempts=_int_env(env, "STOREFRONT_MIRROR_ATTEMPTS", DEFAULT_MIRROR_ATTEMPTS),
    )
