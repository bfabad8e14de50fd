"""Runtime settings.

Values come from (lowest to highest priority) the defaults below, an
optional YAML file, and ``ROUTE_EXPLORER_*`` environment variables.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from api_route_explorer.errors import ValidationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ROUTE_EXPLORER_", extra="ignore")

    # Testing and history
    enable_api_testing: bool = True
    default_timeout_seconds: int = 30
    enable_logging: bool = True
    log_retention_days: int = 30
    history_db: str = "route_explorer.db"
    verify_ssl: bool = True

    # Route listing
    show_private_routes: bool = True
    cache_duration_seconds: int = 0  # 0 disables the registry cache
    registry: str | None = None  # file path or URL of the route registry dump

    # Host site metadata
    base_url: str = "http://localhost/wp-json/"
    site_name: str = ""
    site_description: str = ""
    site_url: str = ""

    @field_validator("default_timeout_seconds")
    @classmethod
    def _check_timeout(cls, v: int) -> int:
        if not 1 <= v <= 300:
            raise ValueError("default_timeout_seconds must be between 1 and 300")
        return v

    @field_validator("log_retention_days", "cache_duration_seconds")
    @classmethod
    def _check_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v


def load_settings(path: Path | None = None, **overrides) -> Settings:
    """Load settings from an optional YAML file.

    Keys in the file act as defaults: environment variables still win, and
    ``overrides`` (typically CLI options) win over both.
    """
    file_values: dict = {}
    if path is not None:
        try:
            file_values = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValidationError(f"Cannot read settings file {path}: {e}") from e
        if not isinstance(file_values, dict):
            raise ValidationError(f"Settings file {path} must contain a mapping")

    try:
        from_env = Settings()
        values = {k: v for k, v in file_values.items() if k in Settings.model_fields}
        values.update({k: getattr(from_env, k) for k in from_env.model_fields_set})
        values.update({k: v for k, v in overrides.items() if v is not None})
        return Settings(**values)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid settings: {e.errors()[0]['loc'][0]}: {e.errors()[0]['msg']}") from None
