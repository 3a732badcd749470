"""
Configuration management for Persona Chat.

This module implements hierarchical configuration loading with validation,
following the pattern: env vars > user config > defaults.
"""

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ..core.models import DEFAULT_RANDOMNESS, DEFAULT_RICHNESS
from ..prompts.personas import DEFAULT_PERSONA

logger = logging.getLogger(__name__)


class ProviderConfig(BaseModel):
    """Completion provider configuration."""

    name: str = Field(default="openai", description="Provider name")
    base_url: str = Field(
        default="https://api.openai.com/v1", description="Provider API base URL"
    )
    model: str = Field(default="gpt-3.5-turbo", description="Chat model identifier")
    timeout: float = Field(
        default=30.0, ge=1.0, le=300.0, description="Request timeout in seconds"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("Base URL must start with http:// or https://")
        return v

    @field_validator("model")
    @classmethod
    def validate_model(cls, v):
        if not v or len(v.strip()) == 0:
            raise ValueError("Model cannot be empty")
        return v.strip()


class ConversationConfig(BaseModel):
    """Conversation handling configuration."""

    default_persona: str = Field(
        default=DEFAULT_PERSONA, description="Persona for new conversations"
    )
    default_randomness: float = Field(
        default=DEFAULT_RANDOMNESS, ge=0.0, le=1.0, description="Default top-p"
    )
    default_richness: float = Field(
        default=DEFAULT_RICHNESS, ge=-2.0, le=2.0, description="Default frequency penalty"
    )
    lock_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds to wait for a conversation busy with another turn",
    )
    ttl_seconds: float | None = Field(
        default=None, gt=0.0, description="Idle expiry for conversations (None disables)"
    )
    max_conversations: int | None = Field(
        default=None, ge=1, description="LRU cap on live conversations (None disables)"
    )

    @field_validator("default_persona")
    @classmethod
    def validate_default_persona(cls, v):
        if not v or len(v.strip()) == 0:
            raise ValueError("Default persona cannot be empty")
        return v


class AppSettings(BaseSettings):
    """Main application settings using environment variables."""

    # Application info
    app_name: str = Field(default="Persona Chat", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(
        default="development",
        description="Environment (development/staging/production)",
    )

    # API Keys
    openai_api_key: str | None = Field(
        default=None, description="Completion provider API key", repr=False
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Configuration sections
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Init kwargs carry the YAML user config, which env vars override
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {"development", "staging", "production"}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_api_key(self):
        """Validate that the provider API key is configured."""
        if not self.openai_api_key and self.environment != "development":
            raise ValueError(
                "OpenAI API key must be configured in non-development environments"
            )

        return self

    def has_api_key(self) -> bool:
        """Check if the provider API key is configured."""
        return bool(self.openai_api_key)

    def public_dict(self) -> dict[str, Any]:
        """Settings as a plain dict without secrets."""
        return self.model_dump(exclude={"openai_api_key"})


class ConfigurationManager:
    """Manages hierarchical configuration loading and validation."""

    def __init__(self):
        self._settings: AppSettings | None = None
        self._user_config: dict[str, Any] = {}

    def load_configuration(
        self,
        config_path: Path | None = None,
    ) -> AppSettings:
        """
        Load configuration with hierarchy: env vars > user config > defaults.

        Args:
            config_path: Path to user configuration file

        Returns:
            Validated AppSettings instance
        """
        # Load user configuration from YAML file
        if config_path and config_path.exists():
            self._user_config = self._load_yaml_config(config_path)

        # YAML config as base, env vars override via pydantic-settings
        init_kwargs = {}
        if self._user_config:
            init_kwargs.update(self._user_config)

        self._settings = AppSettings(**init_kwargs)

        self._validate_api_key_format()

        return self._settings

    def _load_yaml_config(self, config_path: Path) -> dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
                return config or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML configuration: {e}") from e
        except FileNotFoundError:
            return {}
        except Exception as e:
            raise ValueError(f"Failed to load configuration: {e}") from e

    def _validate_api_key_format(self):
        """Warn about API keys that don't look like provider keys."""
        if not self._settings or not self._settings.openai_api_key:
            return

        if not re.match(r"^sk-.*", self._settings.openai_api_key):
            logger.warning("OpenAI API key should start with 'sk-'")

    @property
    def settings(self) -> AppSettings:
        """Get current settings (load default if not loaded)."""
        if self._settings is None:
            self._settings = self.load_configuration()
        return self._settings

    def reset(self):
        """Reset the configuration manager (useful for testing)."""
        self._settings = None
        self._user_config = {}

    def export_config_template(self, output_path: Path):
        """Export a configuration template file."""
        template = {
            "app_name": "Persona Chat",
            "environment": "development",
            "log_level": "INFO",
            "provider": {
                "name": "openai",
                "base_url": "https://api.openai.com/v1",
                "model": "gpt-3.5-turbo",
                "timeout": 30.0,
            },
            "conversation": {
                "default_randomness": DEFAULT_RANDOMNESS,
                "default_richness": DEFAULT_RICHNESS,
                "lock_timeout": 60.0,
                "ttl_seconds": None,
                "max_conversations": None,
            },
        }

        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(template, f, default_flow_style=False, indent=2)


# Global configuration manager instance
config_manager = ConfigurationManager()


def get_settings() -> AppSettings:
    """Get the current application settings."""
    return config_manager.settings


def load_config(config_path: Path | None = None) -> AppSettings:
    """Load configuration from file and environment."""
    return config_manager.load_configuration(config_path)
