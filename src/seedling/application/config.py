from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from seedling.domain.constants import DEFAULT_CONFLICT_RETRIES, DEFAULT_WORKERS


class AppConfig(BaseSettings):
    """
    Configuration model for seedling.
    Supports loading from:
    1. Environment variables (SEEDLING_*)
    2. Config file (~/.config/seedling/config.toml)
    3. Manual overrides (CLI / HTTP)
    """

    model_config = SettingsConfigDict(
        env_prefix="SEEDLING_",
        extra="ignore",
    )

    # Storage
    backend: Literal["memory", "sqlite", "pocketbase"] = "sqlite"
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".config/seedling/progress.db"
    )
    pocketbase_url: str = "http://127.0.0.1:8090"
    pocketbase_token: str | None = None
    pocketbase_collection: str = "user_chunks"

    # Batch processing
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    conflict_retries: int = Field(default=DEFAULT_CONFLICT_RETRIES, ge=0)

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Priority: overrides > env > toml file
        toml_file = Path.home() / ".config/seedling/config.toml"
        if toml_file.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("database_path", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/seedling/config.toml (if exists)
    3. Environment variables (SEEDLING_*)
    4. cli_overrides (None values are ignored)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
