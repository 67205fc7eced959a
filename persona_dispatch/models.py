# persona_dispatch/models.py
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def _normalize_slug(value: str) -> str:
    # Slugs are addressed case-insensitively via @mentions.
    return value.strip().lower()


# --- Enumerations ---
class StartupStage(str, Enum):
    IDEA = "idea"
    PRE_SEED = "pre-seed"
    SEED = "seed"
    SERIES_A = "series-a"
    GROWTH = "growth"
    SCALE = "scale"


class FounderRole(str, Enum):
    TECHNICAL = "technical"
    BUSINESS = "business"
    PRODUCT = "product"
    GENERALIST = "generalist"


class RouteMethod(str, Enum):
    MENTION = "mention"
    INTENT = "intent"
    EXPLICIT = "explicit"
    DEFAULT = "default"


# --- Core entities ---
class Persona(BaseModel):
    """A named behavioral profile as persisted by the store."""

    id: str
    name: str
    slug: str
    icon: str = "briefcase"
    color: str = "#a855f7"
    role_title: str = ""
    description: str = ""
    identity: str = ""
    instructions: str = ""
    system_prompt_prefix: str = ""
    is_default: bool = False
    is_active: bool = True
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str) -> str:
        return _normalize_slug(v)


class RoutingKeyword(BaseModel):
    """A weighted trigger phrase bound to exactly one persona."""

    id: Optional[int] = None
    persona_id: str
    keyword: str
    weight: float = 1.0


class KeywordInput(BaseModel):
    keyword: str = Field(..., min_length=1)
    weight: float = Field(1.0, ge=0.0)


class PersonaTemplate(BaseModel):
    """Immutable seed definition for a persona and its routing keywords."""

    id: str
    name: str
    slug: str
    icon: str
    color: str
    role_title: str
    description: str
    identity: str
    instructions: str = ""
    system_prompt_prefix: str = ""
    is_default: bool = False
    sort_order: int = 0
    keywords: List[str] = Field(default_factory=list)

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str) -> str:
        return _normalize_slug(v)

    def to_persona(self) -> Persona:
        """Builds the (active) persona record this template seeds."""
        return Persona(
            **self.model_dump(exclude={"keywords"}),
            is_active=True,
        )


# --- CRUD inputs ---
class PersonaCreateInput(BaseModel):
    """Input for creating a persona; id is derived from the name when omitted."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    role_title: str = ""
    description: str = ""
    identity: str = ""
    instructions: str = ""
    system_prompt_prefix: str = ""
    is_default: bool = False
    is_active: bool = True
    sort_order: int = 0

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str) -> str:
        return _normalize_slug(v)


class PersonaUpdateInput(BaseModel):
    """Partial update; only explicitly set fields are forwarded to the store."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    role_title: Optional[str] = None
    description: Optional[str] = None
    identity: Optional[str] = None
    instructions: Optional[str] = None
    system_prompt_prefix: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_slug(v) if v is not None else v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# --- Onboarding ---
class OnboardingAnswers(BaseModel):
    """Answers collected once by the first-run setup wizard."""

    startup_stage: StartupStage
    founder_role: FounderRole
    gaps: List[str] = Field(
        default_factory=list,
        description="Capability gap identifiers, e.g. ['growth', 'finance'].",
    )


# --- Routing ---
class RouteResult(BaseModel):
    persona: Persona
    method: RouteMethod
    confidence: float = Field(..., ge=0.0, le=1.0)
    stripped_message: Optional[str] = Field(
        None, description="Message with the @mention removed; only set for mentions."
    )

    @model_validator(mode="after")
    def stripped_message_only_for_mentions(self):
        if self.stripped_message is not None and self.method != RouteMethod.MENTION:
            raise ValueError("stripped_message is only valid for the 'mention' method")
        return self
