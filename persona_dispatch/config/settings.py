# persona_dispatch/config/settings.py
"""Configuration settings for persona routing and lifecycle management."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class RouterSettings(BaseModel):
    """Scoring thresholds used by the intent classification stage."""

    model_config = ConfigDict(frozen=True)

    min_intent_confidence: float = Field(default=0.15, ge=0.0, le=1.0)
    dominance_ratio: float = Field(default=1.5, ge=1.0)
    min_token_length: int = Field(default=3, ge=1)


class PersonaSettings(BaseSettings):
    """Configuration settings for persona routing, seeding and logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PERSONA_",
        extra="ignore",
    )

    min_intent_confidence: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Minimum normalized keyword score required to accept an intent match.",
    )
    dominance_ratio: float = Field(
        default=1.5,
        ge=1.0,
        description="Winner must score at least this multiple of the runner-up.",
    )
    min_token_length: int = Field(
        default=3,
        ge=1,
        description="Tokens shorter than this are dropped before keyword scoring.",
    )

    default_icon: str = Field(
        default="briefcase", description="Icon used when a created persona has none."
    )
    default_color: str = Field(
        default="#a855f7", description="Color used when a created persona has none."
    )
    default_keyword_weight: float = Field(
        default=1.0,
        ge=0.0,
        description="Weight assigned to template keywords during seeding.",
    )

    templates_file: Optional[str] = Field(
        default=None,
        description="Optional YAML file replacing the packaged persona template catalog.",
    )
    log_level: str = Field(default="INFO", description="Root log level.")

    def router_settings(self) -> RouterSettings:
        return RouterSettings(
            min_intent_confidence=self.min_intent_confidence,
            dominance_ratio=self.dominance_ratio,
            min_token_length=self.min_token_length,
        )

    @classmethod
    def from_yaml(cls, file_path: str) -> "PersonaSettings":
        """Loads settings from a YAML file."""
        try:
            config_path = Path(file_path)
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
            return cls(**config_data)
        except (FileNotFoundError, TypeError, yaml.YAMLError) as e:
            logger.error(
                f"Failed to load settings from {file_path}: {e}. Returning default settings.",
                exc_info=True,
            )
            return cls()
