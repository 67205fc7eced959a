# persona_dispatch/personas/__init__.py
from .generator import generate_personas, get_suggested_gaps, parse_onboarding_answers
from .templates import get_default_templates, get_template_by_id

__all__ = [
    "generate_personas",
    "get_suggested_gaps",
    "parse_onboarding_answers",
    "get_default_templates",
    "get_template_by_id",
]
