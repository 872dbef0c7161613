"""Server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.validators import CorsEnvSettingsSource, parse_cors_origins
from streaks.logic.settings import RuleSettings

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ServerSettings(BaseSettings):
    """
    Read from STREAKS_* variables.

    Rule constants are nested under ``rules``, e.g. STREAKS_RULES__BASE_AMOUNT=1.0
    or STREAKS_RULES__MONTHLY_QUOTAS='{"toep": 3}'.
    """

    model_config = SettingsConfigDict(env_prefix="STREAKS_", env_nested_delimiter="__")

    database_path: str = Field(default="backend/data/streaks.db", min_length=1)
    log_dir: str | None = "backend/logs"
    cors_origins: list[str] = ["http://localhost:3000"]
    rules: RuleSettings = Field(default_factory=RuleSettings)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_cors_origins(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, CorsEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
