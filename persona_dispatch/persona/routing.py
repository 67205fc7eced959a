# persona_dispatch/persona/routing.py
"""
Deterministic persona routing that selects which persona answers a message
without any LLM call.

Three stages, first hit wins:

1. @mention detection, e.g. ``@growth launch plan``
2. intent classification by weighted keyword scoring
3. the configured default persona

The router never imports the PersonaManager. It works on data accessors
supplied through ``RouterConfig`` so tests can drive it with plain lambdas.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from persona_dispatch.config.settings import RouterSettings
from persona_dispatch.exceptions import MissingDefaultPersonaError
from persona_dispatch.models import Persona, RouteMethod, RouteResult, RoutingKeyword
from persona_dispatch.persona.tokenizer import (
    build_phrases,
    find_mention,
    strip_mention,
    tokenize,
)

logger = logging.getLogger(__name__)

MIN_THRESHOLD = 0.15
DOMINANCE_RATIO = 1.5
MIN_TOKEN_LENGTH = 3

KeywordMap = Dict[str, List[Tuple[str, float]]]


@dataclass
class RouterConfig:
    """Data accessors the router needs, decoupled from the PersonaManager."""

    get_personas: Callable[[], List[Persona]]
    get_by_slug: Callable[[str], Optional[Persona]]
    get_default: Callable[[], Optional[Persona]]
    get_all_keywords: Callable[[], List[RoutingKeyword]]


class PersonaRouter:
    """Routes a user message to the best-matching persona.

    The keyword map is cached and stays stale until ``invalidate_cache()`` is
    called; whoever mutates personas or keywords must call it.
    """

    def __init__(self, config: RouterConfig, settings: Optional[RouterSettings] = None):
        self.config = config
        self.settings = settings or RouterSettings(
            min_intent_confidence=MIN_THRESHOLD,
            dominance_ratio=DOMINANCE_RATIO,
            min_token_length=MIN_TOKEN_LENGTH,
        )
        self._keyword_cache: Optional[KeywordMap] = None

    def route(self, message: str) -> RouteResult:
        """Route a message to the best-matching persona.

        Raises:
            MissingDefaultPersonaError: If nothing matched and no default
                persona is configured.
        """
        result = self._detect_mention(message) or self._classify_intent(message)
        if result is None:
            result = self._default_result()
        logger.info(
            f"Routed message to persona '{result.persona.slug}' via {result.method.value} "
            f"(confidence {result.confidence:.2f}).",
            extra={"persona_id": result.persona.id},
        )
        return result

    def route_explicit(self, persona_id: str) -> RouteResult:
        """Resolve a persona the caller pinned itself (e.g. a UI selector).

        Unknown or inactive ids fall back to the default persona.
        """
        persona = next(
            (p for p in self.config.get_personas() if p.id == persona_id and p.is_active),
            None,
        )
        if persona is None:
            logger.warning(
                f"Explicit persona '{persona_id}' is unknown or inactive; using default."
            )
            return self._default_result()
        return RouteResult(persona=persona, method=RouteMethod.EXPLICIT, confidence=1.0)

    def invalidate_cache(self) -> None:
        self._keyword_cache = None

    # --- Stage 1: @mention ---
    def _detect_mention(self, message: str) -> Optional[RouteResult]:
        mention = find_mention(message)
        if mention is None:
            return None

        persona = self.config.get_by_slug(mention.slug)
        if persona is None or not persona.is_active:
            logger.debug(f"Mention '@{mention.slug}' did not resolve to an active persona.")
            return None

        return RouteResult(
            persona=persona,
            method=RouteMethod.MENTION,
            confidence=1.0,
            stripped_message=strip_mention(message, mention),
        )

    # --- Stage 2: keyword intent ---
    def _classify_intent(self, message: str) -> Optional[RouteResult]:
        keyword_map = self.get_keyword_map()
        if not keyword_map:
            return None

        tokens = tokenize(message, self.settings.min_token_length)
        if not tokens:
            return None

        active = {p.id: p for p in self.config.get_personas() if p.is_active}
        scores: Dict[str, float] = defaultdict(float)
        for phrase in build_phrases(tokens):
            for persona_id, weight in keyword_map.get(phrase, ()):
                if persona_id in active:
                    scores[persona_id] += weight

        if not scores:
            return None

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        top_id, top_score = ranked[0]
        second_score = ranked[1][1] if len(ranked) > 1 else 0.0

        # Normalize by token count so long messages are not favored.
        normalized = top_score / max(len(tokens), 1)

        if normalized < self.settings.min_intent_confidence:
            logger.debug(
                f"Intent for '{top_id}' below threshold ({normalized:.3f} < "
                f"{self.settings.min_intent_confidence})."
            )
            return None

        # A lone scorer always dominates. Ties and exact-ratio wins are ambiguous.
        if second_score > 0 and top_score <= second_score * self.settings.dominance_ratio:
            logger.debug(
                f"Intent for '{top_id}' not dominant ({top_score} vs runner-up {second_score})."
            )
            return None

        default_persona = self.config.get_default()
        if default_persona is not None and top_id == default_persona.id:
            return None

        return RouteResult(
            persona=active[top_id],
            method=RouteMethod.INTENT,
            confidence=min(normalized, 1.0),
        )

    # --- Stage 3: default ---
    def _default_result(self) -> RouteResult:
        default_persona = self.config.get_default()
        if default_persona is None:
            logger.error("No default persona configured; personas may not have been seeded.")
            raise MissingDefaultPersonaError()
        return RouteResult(persona=default_persona, method=RouteMethod.DEFAULT, confidence=1.0)

    def get_keyword_map(self) -> KeywordMap:
        """Builds (or returns the cached) lowercase keyword -> [(persona_id, weight)] map."""
        if self._keyword_cache is not None:
            return self._keyword_cache

        keyword_map: KeywordMap = defaultdict(list)
        for kw in self.config.get_all_keywords():
            keyword_map[kw.keyword.strip().lower()].append((kw.persona_id, kw.weight))

        self._keyword_cache = dict(keyword_map)
        logger.debug(f"Built keyword map with {len(self._keyword_cache)} entries.")
        return self._keyword_cache
