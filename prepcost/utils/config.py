"""
Configuration for Prep Cost.

Settings come from the environment once, when the singleton is first built:

    PREPCOST_ENV              production (default) or development
    PREPCOST_DB_PATH          explicit database file
    PREPCOST_LOG_LEVEL        logging level name for the CLI (default INFO)
    PREPCOST_FETCH_WORKERS    threads used for concurrent store reads (default 3)
    PREPCOST_VALIDATION_MODE  yield mode used when none is stored (default block)

Invalid values fall back to the default with a warning.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import APP_NAME, DATABASE_FILENAME
from ..models.enums import PricingBasis, ValidationMode

ENV_ENVIRONMENT = "PREPCOST_ENV"
ENV_DATABASE_PATH = "PREPCOST_DB_PATH"
ENV_LOG_LEVEL = "PREPCOST_LOG_LEVEL"
ENV_FETCH_WORKERS = "PREPCOST_FETCH_WORKERS"
ENV_VALIDATION_MODE = "PREPCOST_VALIDATION_MODE"

DEFAULT_FETCH_WORKERS = 3
CHANGE_HISTORY_FILENAME = "change_history.json"

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment, warning on bad values."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        logger.warning(f"Invalid {name}='{raw}', using default {default}")
        return default
    return value


def _env_validation_mode() -> ValidationMode:
    raw = os.environ.get(ENV_VALIDATION_MODE)
    if raw is None:
        return ValidationMode.BLOCK
    try:
        return ValidationMode(raw.lower())
    except ValueError:
        logger.warning(f"Invalid {ENV_VALIDATION_MODE}='{raw}', using default block")
        return ValidationMode.BLOCK


class Config:
    """
    Resolved settings for one process.

    The database lives in the project's data/ directory in development and
    in the per-user data directory in production, unless a path is given.
    The change-history file sits next to the database.
    """

    def __init__(self, environment: str = "production", database_path: Optional[Path] = None):
        self.environment = environment

        if database_path is not None:
            self._database_path = Path(database_path)
        elif environment == "development":
            self._database_path = self._get_project_data_dir() / DATABASE_FILENAME
        else:
            self._database_path = self._get_user_data_dir() / DATABASE_FILENAME

        # The stored validation setting, when present, wins over this default
        self.default_validation_mode = _env_validation_mode()
        self.default_pricing_basis = PricingBasis.PER_KG
        self.fetch_workers = _env_int(ENV_FETCH_WORKERS, DEFAULT_FETCH_WORKERS)
        self.log_level = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()

    def _get_project_data_dir(self) -> Path:
        return Path(__file__).parent.parent.parent / "data"

    def _get_user_data_dir(self) -> Path:
        if os.name == "nt":  # Windows
            base = Path(os.environ.get("APPDATA", Path.home()))
        else:
            base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
        return base / APP_NAME.replace(" ", "")

    def ensure_directories(self) -> None:
        self._database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._database_path

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL of the database file."""
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def change_history_path(self) -> Path:
        """JSON file collecting item ids deprecated since the last cost refresh."""
        return self._database_path.parent / CHANGE_HISTORY_FILENAME

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def database_exists(self) -> bool:
        return self._database_path.exists()

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_path='{self._database_path}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the process-wide configuration.

    Args:
        environment: Environment for initial creation; PREPCOST_ENV or
            production when None. Ignored (with a warning if different)
            once the singleton exists, so the database never switches
            mid-process.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_ENVIRONMENT, "production")
        database_path = os.environ.get(ENV_DATABASE_PATH)
        _config_instance = Config(
            environment, database_path=Path(database_path) if database_path else None
        )
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but the config "
            f"singleton already uses '{_config_instance.environment}'; keeping it"
        )

    return _config_instance


def reset_config():
    """Forget the configuration singleton (tests)."""
    global _config_instance
    _config_instance = None
