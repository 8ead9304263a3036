# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to the CLI and the orchestrator.
#
# CLASSES:
# --------
# - MongoConfig (dataclass)
#     uri: str | None        (default None, overrides host/port/credentials)
#     host: str              (default "localhost")
#     port: int              (default 27017)
#     user: str | None       (default None)
#     password: str | None   (default None)
#     database: str          (default "docrepair")
#     use_transactions: bool (default True)
#
# - RunConfig (dataclass)
#     batch_size: int        (default 500)
#     preview_limit: int     (default 5)
#     thresholds: str        (default "primary")
#     dry_run: bool          (default False)
#     backup: bool           (default False)
#     verbose: bool          (default False)
#
# - AppConfig (dataclass)
#     mongo: MongoConfig
#     run: RunConfig
#
# FUNCTIONS:
# ----------
# - load_config(credential_path=None) -> AppConfig
#     Load .env, then the optional credential file (which wins),
#     and build a fresh AppConfig.
#
# - get_config() -> AppConfig
#     Same, but returns a singleton on repeated calls.
#
# USAGE:
# ------
#   from docrepair.config import get_config
#   config = get_config()
#   print(config.mongo.host)
#   print(config.run.batch_size)
#
# ==============================================

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .normalization.timestamps import THRESHOLD_TABLES

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Invalid or missing configuration."""


@dataclass
class MongoConfig:
    """MongoDB connection configuration."""
    uri: Optional[str] = None
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "docrepair"
    use_transactions: bool = True


@dataclass
class RunConfig:
    """Defaults for a normalization run; CLI flags override them."""
    batch_size: int = 500
    preview_limit: int = 5
    thresholds: str = "primary"
    dry_run: bool = False
    backup: bool = False
    verbose: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""
    mongo: MongoConfig
    run: RunConfig


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _env_thresholds(name: str, default: str) -> str:
    value = (os.getenv(name) or default).strip().lower()
    if value not in THRESHOLD_TABLES:
        raise ConfigError(f"{name} must be one of {sorted(THRESHOLD_TABLES)}, got {value!r}")
    return value


def load_config(credential_path: Optional[str] = None) -> AppConfig:
    """
    Build configuration from the environment.

    Args:
        credential_path: Optional dotenv-style file with MONGO_* settings.
            Its values override the environment.

    Returns:
        AppConfig: Application configuration

    Raises:
        ConfigError: if the credential file is missing or a value is invalid
    """
    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    if credential_path:
        path = Path(credential_path)
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {credential_path}")
        load_dotenv(dotenv_path=path, override=True)

    # Build MongoDB configuration
    mongo_config = MongoConfig(
        uri=os.getenv("MONGO_URI") or None,
        host=os.getenv("MONGO_HOST", "localhost"),
        port=_env_int("MONGO_PORT", 27017),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None,
        database=os.getenv("MONGO_DATABASE", "docrepair"),
        use_transactions=_env_bool("MONGO_TRANSACTIONS", True),
    )

    # Build run configuration
    run_config = RunConfig(
        batch_size=_env_int("BATCH_SIZE", 500),
        preview_limit=_env_int("PREVIEW_LIMIT", 5, minimum=0),
        thresholds=_env_thresholds("TIMESTAMP_THRESHOLDS", "primary"),
        dry_run=_env_bool("DRY_RUN", False),
        backup=_env_bool("BACKUP", False),
        verbose=_env_bool("VERBOSE", False),
    )

    return AppConfig(mongo=mongo_config, run=run_config)


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    global _config_instance
    _config_instance = None
