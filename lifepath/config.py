"""Runtime settings and logging setup.

All settings come from environment variables. They are read once into a
frozen Settings instance at startup and passed explicitly to whatever needs
them (store, backend, runner); nothing reads the environment afterwards.

    LIFEPATH_BACKEND           live | fixture (default: fixture)
    LIFEPATH_SESSION_STORE     memory | file | sql (default: file)
    LIFEPATH_SESSIONS_DIR      root directory for the file store
    LIFEPATH_DATABASE_URL      postgres://... or empty for SQLite
    LIFEPATH_SQLITE_PATH       SQLite file used when no postgres URL is set
    LIFEPATH_MEDIA_DIR         where decoded images are written
    LIFEPATH_BACKEND_TIMEOUT   seconds before a backend call is abandoned
    LIFEPATH_LOG_LEVEL         logging level name (default: INFO)
    LIFEPATH_LOCATION_PROVIDER whg | llm (default: whg)
    LIFEPATH_WHG_BASE_URL      World Historical Gazetteer API root
    LIFEPATH_WHG_RADIUS_KM     search radius around a point (default: 25)
    LIFEPATH_WHG_MAX_RESULTS   candidates fetched per lookup (default: 40)
    LIFEPATH_LOCATION_MODEL    text model for the llm provider
    ANTHROPIC_API_KEY          required for the live text backend
    GEMINI_API_KEY             required for the live image backend
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Game defaults applied to new sessions when the caller leaves a knob unset
GAME_DEFAULTS = {
    "number_of_persona_options": 4,
    "max_pivotal_moments": 5,
    "generate_images": False,
}

# Years a lifeline segment advances, by the character's current age bracket
YEARS_TO_ADVANCE = {
    "youth": (10, 15),   # under 20
    "adult": (7, 12),    # 20-39
    "elder": (5, 10),    # 40+
}

_DEFAULT_DATA_DIR = Path.cwd() / "data"


def _env_float(name: str) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Ignoring non-numeric {name}={raw!r}"
        )
        return None


@dataclass(frozen=True)
class Settings:
    """Engine settings resolved from the environment."""

    backend: str = "fixture"
    session_store: str = "file"
    sessions_dir: Path = _DEFAULT_DATA_DIR / "sessions"
    database_url: str = ""
    sqlite_path: Path = _DEFAULT_DATA_DIR / "sessions.db"
    media_dir: Path = _DEFAULT_DATA_DIR / "media"
    backend_timeout: Optional[float] = None
    log_level: str = "INFO"
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    location_provider: str = "whg"
    whg_base_url: str = "https://whgazetteer.org/api"
    whg_radius_km: float = 25.0
    whg_max_results: int = 40
    location_model: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = Path(os.environ.get("LIFEPATH_DATA_DIR", str(_DEFAULT_DATA_DIR)))
        return cls(
            backend=os.environ.get("LIFEPATH_BACKEND", "fixture").lower(),
            session_store=os.environ.get("LIFEPATH_SESSION_STORE", "file").lower(),
            sessions_dir=Path(
                os.environ.get("LIFEPATH_SESSIONS_DIR", str(data_dir / "sessions"))
            ),
            database_url=os.environ.get("LIFEPATH_DATABASE_URL", ""),
            sqlite_path=Path(
                os.environ.get("LIFEPATH_SQLITE_PATH", str(data_dir / "sessions.db"))
            ),
            media_dir=Path(
                os.environ.get("LIFEPATH_MEDIA_DIR", str(data_dir / "media"))
            ),
            backend_timeout=_env_float("LIFEPATH_BACKEND_TIMEOUT"),
            log_level=os.environ.get("LIFEPATH_LOG_LEVEL", "INFO").upper(),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            gemini_api_key=os.environ.get("GEMINI_API_KEY") or None,
            location_provider=os.environ.get("LIFEPATH_LOCATION_PROVIDER", "whg").lower(),
            whg_base_url=os.environ.get(
                "LIFEPATH_WHG_BASE_URL", "https://whgazetteer.org/api"
            ),
            whg_radius_km=_env_float("LIFEPATH_WHG_RADIUS_KM") or 25.0,
            whg_max_results=int(_env_float("LIFEPATH_WHG_MAX_RESULTS") or 40),
            location_model=os.environ.get("LIFEPATH_LOCATION_MODEL") or None,
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
