"""Settings and configuration management using Pydantic."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Type

import yaml

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

CONFIG_FILE = "mediaseq.yaml"


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    A simple settings source class that loads variables from a YAML file
    in the current working directory.
    """

    def get_field_value(
        self, field: Field, field_name: str
    ) -> Tuple[Any, str, bool]:
        field_value = self._load().get(field_name)
        return field_value, field_name, False

    def prepare_field_value(
        self, field_name: str, field: Field, value: Any, value_is_complex: bool
    ) -> Any:
        return value

    def _load(self) -> Dict[str, Any]:
        path = Path(CONFIG_FILE)
        if not path.exists():
            return {}

        encoding = self.config.get("env_file_encoding")
        try:
            content = yaml.safe_load(path.read_text(encoding))
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Failed to load {CONFIG_FILE}: {e}")
            return {}

        if not isinstance(content, dict):
            return {}
        return content

    def __call__(self) -> Dict[str, Any]:
        return dict(self._load())


class Settings(BaseSettings):
    """Sequencer and playback configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="MEDIASEQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # Transitions
    transition_duration: float = Field(
        default=2.0,
        ge=0,
        description="Crossfade duration between two entries in seconds",
    )
    fade_step: float = Field(
        default=0.05,
        gt=0,
        description="Interval between two fade animation steps in seconds",
    )
    audio_gain: float = Field(
        default=1.0,
        ge=0,
        le=1,
        description="Volume ratio reached at the end of a fade-in",
    )

    # Cues
    cue_interval: float = Field(
        default=0.1,
        gt=0,
        description="Playback position polling interval in seconds",
    )
    ending_soon_offset: float = Field(
        default=10.0,
        ge=0,
        description="Seconds before the end of an entry when 'ending soon' fires",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Log file path",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    debug_duration: float = Field(
        default=-1,
        description="Force the duration of every entry in seconds (negative to disable)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Accept lower-case level names."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("log_file", mode="before")
    @classmethod
    def expand_path(cls, v: Optional[str | Path]) -> Optional[Path]:
        """Expand environment variables and user paths."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            v = os.path.expandvars(os.path.expanduser(v))
        return Path(v)

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
