"""Pydantic settings loaded from .env, with conf.json overlay."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent

# ---------------------------------------------------------------------------
# conf.json: runtime config (separate from .env secrets)
# ---------------------------------------------------------------------------


def get_data_dir() -> Path:
    """Resolve the modelhub data directory. MODELHUB_DIR env var or ~/.config/modelhub."""
    d = os.environ.get("MODELHUB_DIR", "")
    return Path(d).expanduser() if d else Path.home() / ".config" / "modelhub"


class AppConfig(BaseModel):
    database_url: str = ""
    log_level: str = ""
    log_file: str = ""
    cors_allow_all_origins: bool | None = None  # None = use Settings default
    free_daily_limit: int | None = None
    vip_duration_days: int | None = None


_logger = logging.getLogger(__name__)


def load_conf() -> AppConfig:
    """Load conf.json from the data directory."""
    conf_path = get_data_dir() / "conf.json"
    if conf_path.exists():
        try:
            return AppConfig.model_validate_json(conf_path.read_text())
        except Exception:
            _logger.warning("Failed to parse %s, using defaults", conf_path, exc_info=True)
    return AppConfig()


def save_conf(config: AppConfig) -> None:
    """Save conf.json to the data directory."""
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "conf.json").write_text(config.model_dump_json(indent=2))


# ---------------------------------------------------------------------------
# Bootstrap: load .env, load conf.json
# ---------------------------------------------------------------------------

_env_file = BASE_DIR.parent / ".env"
load_dotenv(_env_file)
_conf = load_conf()

# ---------------------------------------------------------------------------
# Settings (pydantic-settings): .env / env vars override conf.json defaults
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    DEBUG: bool = False

    DATABASE_URL: str = _conf.database_url or f"sqlite:///{BASE_DIR / 'db.sqlite3'}"

    CORS_ALLOW_ALL_ORIGINS: bool = (
        _conf.cors_allow_all_origins if _conf.cors_allow_all_origins is not None else True
    )

    LOG_LEVEL: str = _conf.log_level or "INFO"
    LOG_FILE: str = _conf.log_file or ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    # Provider credentials; an empty value routes the model to the fallback generator
    DEEPSEEK_API_KEY: str = ""
    QWEN_API_KEY: str = ""
    GLM_API_KEY: str = ""
    HUGGINGFACE_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""

    PROVIDER_TIMEOUT_SECONDS: float = 30.0
    FALLBACK_DELAY_MIN_SECONDS: float = 1.0
    FALLBACK_DELAY_MAX_SECONDS: float = 3.0

    FREE_DAILY_LIMIT: int = (
        _conf.free_daily_limit if _conf.free_daily_limit is not None else 10
    )
    VIP_DURATION_DAYS: int = (
        _conf.vip_duration_days if _conf.vip_duration_days is not None else 30
    )
    PAYMENT_SETTLE_DELAY_SECONDS: float = 1.0

    model_config = ConfigDict(
        env_file=str(BASE_DIR.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def provider_credentials(self) -> dict[str, str]:
        """Map credential names to their configured secret (possibly empty)."""
        return {
            "DEEPSEEK_API_KEY": self.DEEPSEEK_API_KEY,
            "QWEN_API_KEY": self.QWEN_API_KEY,
            "GLM_API_KEY": self.GLM_API_KEY,
            "HUGGINGFACE_API_KEY": self.HUGGINGFACE_API_KEY,
            "OPENAI_API_KEY": self.OPENAI_API_KEY,
            "ANTHROPIC_API_KEY": self.ANTHROPIC_API_KEY,
        }


settings = Settings()
