# persona_dispatch/personas/generator.py
"""
Onboarding-based persona generation.

Turns the answers from the first-run setup wizard (startup stage, founder
role, capability gaps) into a customized subset of the template catalog:

1. The Chief of Staff is always included, first.
2. One persona is added per recognized capability gap.
3. Every selected persona gets a "Startup Context" section for the stage.
4. The Chief of Staff additionally gets a "Founder Context" section.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from persona_dispatch.exceptions import OnboardingValidationError, TemplateCatalogError
from persona_dispatch.models import (
    FounderRole,
    OnboardingAnswers,
    PersonaTemplate,
    StartupStage,
)
from persona_dispatch.personas.templates import DEFAULT_TEMPLATE_ID, get_default_templates

logger = logging.getLogger(__name__)

GAP_TO_PERSONA: Dict[str, str] = {
    "strategy": "chief-of-staff",
    "growth": "growth-advisor",
    "finance": "finance-ops",
    "product": "product-manager",
    "sales": "sales-advisor",
    "legal": "legal-advisor",
    "creative": "creative-director",
    "tech": "cto-tech",
}

STAGE_CONTEXT: Dict[StartupStage, str] = {
    StartupStage.IDEA: (
        "The startup is at the idea stage. Focus on validation, lean experiments, "
        "finding problem-market fit, and early user discovery. Resources are extremely "
        "limited - prioritize ruthlessly."
    ),
    StartupStage.PRE_SEED: (
        "The startup is pre-seed. Focus on MVP development, early user feedback, and "
        "preparing for initial fundraising. Help the founder iterate fast and talk to "
        "customers."
    ),
    StartupStage.SEED: (
        "The startup is seed-stage with early traction. Focus on product-market fit "
        "signals, early metrics that matter, and building the founding team. Unit "
        "economics are starting to matter."
    ),
    StartupStage.SERIES_A: (
        "The startup is Series A - growth mode activated. Focus on scaling what works, "
        "hiring key functional leaders, and establishing repeatable processes. Metrics "
        "and efficiency matter now."
    ),
    StartupStage.GROWTH: (
        "The startup is in growth stage. Focus on scaling operations, expanding to new "
        "markets, building organizational structure, and maintaining culture. Execution "
        "speed is critical."
    ),
    StartupStage.SCALE: (
        "The startup is at scale. Focus on operational excellence, market leadership, "
        "and preparing for potential exit/IPO. Governance, compliance, and professional "
        "management are priorities."
    ),
}

ROLE_CONTEXT: Dict[FounderRole, str] = {
    FounderRole.TECHNICAL: (
        "The founder is technical - help them with the business/people/strategy side "
        "they may not naturally focus on. Translate business concepts into frameworks "
        "they understand."
    ),
    FounderRole.BUSINESS: (
        "The founder is business-focused - they handle relationships and strategy well. "
        "Help them make informed technical decisions and communicate effectively with "
        "engineering."
    ),
    FounderRole.PRODUCT: (
        "The founder is product-focused - they think deeply about users. Help them "
        "balance product vision with business pragmatism and operational needs."
    ),
    FounderRole.GENERALIST: (
        "The founder is a generalist - they wear many hats. Help them identify which "
        "hat to wear when, and when to delegate or hire specialists."
    ),
}

SUGGESTED_GAPS: Dict[StartupStage, List[str]] = {
    StartupStage.IDEA: ["product", "tech"],
    StartupStage.PRE_SEED: ["product", "tech", "growth"],
    StartupStage.SEED: ["growth", "finance", "product"],
    StartupStage.SERIES_A: ["growth", "finance", "sales", "product"],
    StartupStage.GROWTH: ["growth", "finance", "sales", "legal"],
    StartupStage.SCALE: ["finance", "legal", "sales", "growth"],
}


def _append_section(text: str, heading: str, context: Optional[str]) -> str:
    if not context:
        return text
    return f"{text}\n\n## {heading}\n{context}"


def customize_for_stage(text: str, stage: StartupStage) -> str:
    """Appends a "Startup Context" section with stage-specific guidance."""
    return _append_section(text, "Startup Context", STAGE_CONTEXT.get(stage))


def customize_for_founder_role(text: str, role: FounderRole) -> str:
    """Appends a "Founder Context" section with role-specific guidance."""
    return _append_section(text, "Founder Context", ROLE_CONTEXT.get(role))


def parse_onboarding_answers(payload: Union[OnboardingAnswers, Dict[str, Any]]) -> OnboardingAnswers:
    """Validates a loosely-typed answers payload (e.g. a tool call) at the boundary."""
    if isinstance(payload, OnboardingAnswers):
        return payload
    try:
        return OnboardingAnswers.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Rejected onboarding answers: {e.error_count()} validation error(s).")
        raise OnboardingValidationError(
            "Invalid onboarding answers",
            invalid_payload=payload,
            details={"errors": e.errors(include_url=False)},
            original_exception=e,
        ) from e


def generate_personas(
    answers: Union[OnboardingAnswers, Dict[str, Any]],
    templates_file: Optional[str] = None,
) -> List[PersonaTemplate]:
    """Generate a customized set of persona templates from onboarding answers.

    The returned templates are deep copies; the catalog is never mutated.

    Args:
        answers: Onboarding answers collected from the setup wizard.
        templates_file: Optional catalog override, see ``get_default_templates``.

    Returns:
        The Chief of Staff followed by one template per recognized gap.

    Raises:
        TemplateCatalogError: If the Chief of Staff template is missing.
        OnboardingValidationError: If ``answers`` is a malformed payload.
    """
    answers = parse_onboarding_answers(answers)
    all_templates = {t.id: t for t in get_default_templates(templates_file)}

    coordinator = all_templates.get(DEFAULT_TEMPLATE_ID)
    if coordinator is None:
        raise TemplateCatalogError(
            "Chief of Staff template not found",
            details={"template_id": DEFAULT_TEMPLATE_ID, "catalog": sorted(all_templates)},
        )

    result: List[PersonaTemplate] = [coordinator]
    selected_ids = {coordinator.id}
    for gap in answers.gaps:
        persona_id = GAP_TO_PERSONA.get(gap)
        if persona_id is None:
            logger.debug(f"Ignoring unknown capability gap '{gap}'.")
            continue
        template = all_templates.get(persona_id)
        if template is None or persona_id in selected_ids:
            continue
        result.append(template)
        selected_ids.add(persona_id)

    for template in result:
        template.identity = customize_for_stage(template.identity, answers.startup_stage)
        template.system_prompt_prefix = customize_for_stage(
            template.system_prompt_prefix, answers.startup_stage
        )

    coordinator.identity = customize_for_founder_role(
        coordinator.identity, answers.founder_role
    )

    logger.info(
        f"Generated {len(result)} personas for stage '{answers.startup_stage.value}' "
        f"and role '{answers.founder_role.value}'."
    )
    return result


def get_suggested_gaps(stage: Union[StartupStage, str]) -> List[str]:
    """Returns suggested capability gaps for a given startup stage.

    Only used to pre-select options in the onboarding UI.
    """
    try:
        stage = StartupStage(stage)
    except ValueError:
        return []
    return list(SUGGESTED_GAPS.get(stage, []))
