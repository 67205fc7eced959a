# persona_dispatch/personas/templates.py
"""
Default founder persona templates.

The catalog lives in ``persona_templates.yaml`` next to this module and is
loaded once. Callers only ever receive deep copies, so the onboarding
generator (which appends context to identity text) can never corrupt the
canonical definitions.
"""

import logging
from functools import lru_cache
from importlib import resources
from typing import List, Optional, Tuple

import yaml
from pydantic import ValidationError

from persona_dispatch.exceptions import TemplateCatalogError
from persona_dispatch.models import PersonaTemplate

logger = logging.getLogger(__name__)

TEMPLATES_RESOURCE = "persona_templates.yaml"
DEFAULT_TEMPLATE_ID = "chief-of-staff"


def _read_catalog_text(file_path: Optional[str]) -> Tuple[str, str]:
    if file_path:
        with open(file_path, "r", encoding="utf-8") as f:
            return f.read(), file_path
    resource = resources.files("persona_dispatch.personas").joinpath(TEMPLATES_RESOURCE)
    return resource.read_text(encoding="utf-8"), f"package:{TEMPLATES_RESOURCE}"


@lru_cache(maxsize=8)
def load_template_catalog(file_path: Optional[str] = None) -> Tuple[PersonaTemplate, ...]:
    """Loads and validates the template catalog.

    Args:
        file_path: Optional YAML file replacing the packaged catalog.

    Returns:
        The canonical templates in sort order. Never hand these out directly.

    Raises:
        TemplateCatalogError: If the file is missing, malformed, or does not
            define exactly one default template.
    """
    try:
        text, source = _read_catalog_text(file_path)
        data = yaml.safe_load(text)
        if not data or not data.get("templates"):
            raise ValueError("Template catalog is empty.")
        templates = [PersonaTemplate(**t) for t in data["templates"]]
    except (OSError, yaml.YAMLError, ValidationError, ValueError, TypeError) as e:
        logger.error(f"Error loading persona templates from {file_path or 'package'}: {e}")
        raise TemplateCatalogError(
            f"Failed to load persona template catalog: {e}",
            details={"file_path": file_path},
            original_exception=e,
        ) from e

    defaults = [t.id for t in templates if t.is_default]
    if len(defaults) != 1:
        raise TemplateCatalogError(
            f"Template catalog must define exactly one default template, found {len(defaults)}.",
            details={"default_ids": defaults, "source": source},
        )
    ids = [t.id for t in templates]
    slugs = [t.slug for t in templates]
    if len(set(ids)) != len(ids) or len(set(slugs)) != len(slugs):
        raise TemplateCatalogError(
            "Template catalog contains duplicate ids or slugs.",
            details={"source": source},
        )

    logger.info(f"Loaded {len(templates)} persona templates from {source}.")
    return tuple(sorted(templates, key=lambda t: t.sort_order))


def get_default_templates(file_path: Optional[str] = None) -> List[PersonaTemplate]:
    """Returns a deep copy of all default persona templates, in sort order."""
    return [t.model_copy(deep=True) for t in load_template_catalog(file_path)]


def get_template_by_id(
    template_id: str, file_path: Optional[str] = None
) -> Optional[PersonaTemplate]:
    """Finds a template by its unique id. Returns a copy, or None."""
    for template in load_template_catalog(file_path):
        if template.id == template_id:
            return template.model_copy(deep=True)
    return None
