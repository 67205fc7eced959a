# persona_dispatch/__init__.py
"""Deterministic persona routing and lifecycle management."""

from .exceptions import (
    MissingDefaultPersonaError,
    OnboardingValidationError,
    PersonaDispatchError,
    PersonaManagerNotInitializedError,
    PersonaStoreError,
    TemplateCatalogError,
)
from .models import (
    FounderRole,
    OnboardingAnswers,
    Persona,
    PersonaCreateInput,
    PersonaTemplate,
    PersonaUpdateInput,
    RouteMethod,
    RouteResult,
    RoutingKeyword,
    StartupStage,
)
from .persona_manager import PersonaManager, generate_id
from .persona.routing import PersonaRouter, RouterConfig

__all__ = [
    "FounderRole",
    "MissingDefaultPersonaError",
    "OnboardingAnswers",
    "OnboardingValidationError",
    "Persona",
    "PersonaCreateInput",
    "PersonaDispatchError",
    "PersonaManager",
    "PersonaManagerNotInitializedError",
    "PersonaRouter",
    "PersonaStoreError",
    "PersonaTemplate",
    "PersonaUpdateInput",
    "RouteMethod",
    "RouteResult",
    "RouterConfig",
    "RoutingKeyword",
    "StartupStage",
    "TemplateCatalogError",
    "generate_id",
]
