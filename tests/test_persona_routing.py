# tests/test_persona_routing.py
import pytest

from persona_dispatch.config.settings import RouterSettings
from persona_dispatch.exceptions import MissingDefaultPersonaError
from persona_dispatch.models import Persona, RouteMethod, RoutingKeyword
from persona_dispatch.persona.routing import PersonaRouter, RouterConfig


def make_persona(persona_id, slug, is_default=False, is_active=True):
    return Persona(
        id=persona_id,
        name=persona_id.replace("-", " ").title(),
        slug=slug,
        identity=f"You are {persona_id}.",
        is_default=is_default,
        is_active=is_active,
    )


class FakeRouterData:
    """Mutable in-memory data behind a RouterConfig."""

    def __init__(self, personas, keywords):
        self.personas = personas
        self.keywords = keywords
        self.keyword_calls = 0

    def get_personas(self):
        return [p for p in self.personas if p.is_active]

    def get_by_slug(self, slug):
        return next((p for p in self.personas if p.slug == slug), None)

    def get_default(self):
        return next((p for p in self.personas if p.is_default and p.is_active), None)

    def get_all_keywords(self):
        self.keyword_calls += 1
        return list(self.keywords)

    def config(self):
        return RouterConfig(
            get_personas=self.get_personas,
            get_by_slug=self.get_by_slug,
            get_default=self.get_default,
            get_all_keywords=self.get_all_keywords,
        )


@pytest.fixture
def router_data():
    personas = [
        make_persona("chief-of-staff", "cos", is_default=True),
        make_persona("growth-advisor", "growth"),
        make_persona("finance-ops", "finance"),
        make_persona("legal-advisor", "legal", is_active=False),
    ]
    keywords = [
        RoutingKeyword(persona_id="chief-of-staff", keyword="plan"),
        RoutingKeyword(persona_id="chief-of-staff", keyword="meeting"),
        RoutingKeyword(persona_id="growth-advisor", keyword="marketing"),
        RoutingKeyword(persona_id="growth-advisor", keyword="churn"),
        RoutingKeyword(persona_id="finance-ops", keyword="burn rate"),
        RoutingKeyword(persona_id="finance-ops", keyword="Budget"),
        RoutingKeyword(persona_id="legal-advisor", keyword="contract"),
    ]
    return FakeRouterData(personas, keywords)


@pytest.fixture
def router(router_data):
    return PersonaRouter(router_data.config())


class TestMentionStage:
    def test_mention_at_start_routes_with_full_confidence(self, router):
        result = router.route("@growth what channels should we try")
        assert result.persona.id == "growth-advisor"
        assert result.method == RouteMethod.MENTION
        assert result.confidence == 1.0
        assert result.stripped_message == "what channels should we try"

    def test_mention_after_whitespace_is_detected(self, router):
        result = router.route("quick question @finance how long is our runway?")
        assert result.persona.id == "finance-ops"
        assert result.stripped_message == "quick question how long is our runway?"

    def test_mention_slug_is_case_insensitive(self, router):
        result = router.route("@GROWTH ideas please")
        assert result.persona.slug == "growth"
        assert result.method == RouteMethod.MENTION

    def test_bare_mention_keeps_original_message(self, router):
        result = router.route("@growth")
        assert result.method == RouteMethod.MENTION
        assert result.stripped_message == "@growth"

    def test_bare_mention_with_whitespace_keeps_original_message(self, router):
        result = router.route("   @growth   ")
        assert result.stripped_message == "   @growth   "

    def test_email_address_is_not_a_mention(self, router):
        result = router.route("mail me at founder@growth.io")
        assert result.method == RouteMethod.DEFAULT

    def test_unknown_mention_falls_through_to_default(self, router):
        result = router.route("@nobody hello there")
        assert result.method == RouteMethod.DEFAULT
        assert result.persona.id == "chief-of-staff"
        assert result.stripped_message is None

    def test_inactive_mention_falls_through_to_intent(self, router):
        result = router.route("@legal our churn keeps rising")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "growth-advisor"

    def test_only_first_mention_counts(self, router):
        result = router.route("@finance and @growth, thoughts?")
        assert result.persona.id == "finance-ops"
        assert result.stripped_message == "and @growth, thoughts?"


class TestIntentStage:
    def test_bigram_keyword_scores_intent(self, router):
        # what, our, burn, rate, now -> 5 tokens, "burn rate" scores 1.0
        result = router.route("what is our burn rate now")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "finance-ops"
        assert result.confidence == pytest.approx(0.2)

    def test_contraction_is_split_and_short_fragment_dropped(self, router):
        # what's -> "what" + "s"; six tokens survive
        result = router.route("what's our burn rate this month")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "finance-ops"
        assert result.confidence == pytest.approx(1 / 6)

    def test_keywords_are_matched_lowercase(self, router):
        result = router.route("BUDGET")
        assert result.persona.id == "finance-ops"
        assert result.confidence == 1.0

    def test_below_threshold_falls_back_to_default(self, router):
        message = "could you tell me something about marketing in general for our team today"
        result = router.route(message)
        assert result.method == RouteMethod.DEFAULT

    def test_default_persona_never_wins_by_intent(self, router):
        result = router.route("plan meeting")
        assert result.method == RouteMethod.DEFAULT
        assert result.persona.id == "chief-of-staff"

    def test_tie_is_ambiguous(self, router):
        result = router.route("marketing budget")
        assert result.method == RouteMethod.DEFAULT

    def test_no_tokens_resolves_to_default(self, router):
        for message in ["", "   ", "hi", "?!"]:
            assert router.route(message).method == RouteMethod.DEFAULT

    def test_inactive_persona_keywords_do_not_route(self, router):
        result = router.route("contract")
        assert result.method == RouteMethod.DEFAULT

    def test_inactive_persona_does_not_block_dominance(self, router):
        # legal is inactive; otherwise "contract" would tie with "churn"
        result = router.route("contract churn")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "growth-advisor"
        assert result.confidence == pytest.approx(0.5)

    def test_inactive_top_scorer_yields_to_active_persona(self, router_data):
        router_data.keywords.append(
            RoutingKeyword(persona_id="legal-advisor", keyword="churn", weight=5.0)
        )
        result = PersonaRouter(router_data.config()).route("churn")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "growth-advisor"

    def test_confidence_is_capped_at_one(self, router_data):
        router_data.keywords.append(
            RoutingKeyword(persona_id="growth-advisor", keyword="seo", weight=5.0)
        )
        result = PersonaRouter(router_data.config()).route("seo")
        assert result.method == RouteMethod.INTENT
        assert result.confidence == 1.0


class TestDominance:
    def build(self, top_weight):
        personas = [
            make_persona("coordinator", "coord", is_default=True),
            make_persona("alpha", "alpha"),
            make_persona("beta", "beta"),
        ]
        keywords = [
            RoutingKeyword(persona_id="alpha", keyword="alpha", weight=top_weight),
            RoutingKeyword(persona_id="beta", keyword="beta", weight=1.0),
        ]
        return PersonaRouter(FakeRouterData(personas, keywords).config())

    def test_exact_ratio_is_rejected(self):
        result = self.build(1.5).route("alpha beta")
        assert result.method == RouteMethod.DEFAULT
        assert result.persona.id == "coordinator"

    def test_ratio_above_boundary_is_accepted(self):
        result = self.build(1.51).route("alpha beta")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "alpha"
        assert result.confidence == pytest.approx(1.51 / 2)

    def test_lone_scorer_passes_dominance(self):
        result = self.build(1.0).route("alpha gamma")
        assert result.method == RouteMethod.INTENT
        assert result.persona.id == "alpha"

    def test_custom_settings_are_respected(self):
        personas = [
            make_persona("coordinator", "coord", is_default=True),
            make_persona("alpha", "alpha"),
        ]
        keywords = [RoutingKeyword(persona_id="alpha", keyword="alpha")]
        router = PersonaRouter(
            FakeRouterData(personas, keywords).config(),
            RouterSettings(min_intent_confidence=0.6),
        )
        assert router.route("alpha gamma").method == RouteMethod.DEFAULT
        assert router.route("alpha").method == RouteMethod.INTENT


class TestDefaultStage:
    def test_default_when_nothing_matches(self, router):
        result = router.route("hello")
        assert result.method == RouteMethod.DEFAULT
        assert result.persona.id == "chief-of-staff"
        assert result.confidence == 1.0

    def test_missing_default_raises(self):
        data = FakeRouterData([make_persona("alpha", "alpha")], [])
        router = PersonaRouter(data.config())
        with pytest.raises(MissingDefaultPersonaError) as excinfo:
            router.route("hello")
        assert excinfo.value.error_code == "MISSING_DEFAULT_PERSONA"

    def test_mention_still_works_without_default(self):
        data = FakeRouterData([make_persona("alpha", "alpha")], [])
        result = PersonaRouter(data.config()).route("@alpha hi")
        assert result.persona.id == "alpha"


class TestExplicitRouting:
    def test_explicit_persona(self, router):
        result = router.route_explicit("finance-ops")
        assert result.method == RouteMethod.EXPLICIT
        assert result.persona.id == "finance-ops"

    def test_inactive_explicit_persona_uses_default(self, router):
        result = router.route_explicit("legal-advisor")
        assert result.method == RouteMethod.DEFAULT


class TestKeywordCache:
    def test_keyword_map_is_built_once(self, router, router_data):
        router.route("budget")
        router.route("churn")
        assert router_data.keyword_calls == 1

    def test_map_is_stale_until_invalidated(self, router, router_data):
        assert router.route("budget").persona.id == "finance-ops"

        router_data.keywords = [
            RoutingKeyword(persona_id="growth-advisor", keyword="budget"),
        ]
        assert router.route("budget").persona.id == "finance-ops"

        router.invalidate_cache()
        assert router.route("budget").persona.id == "growth-advisor"

    def test_shared_keyword_accumulates_per_persona(self, router_data):
        router_data.keywords = [
            RoutingKeyword(persona_id="growth-advisor", keyword="revenue"),
            RoutingKeyword(persona_id="finance-ops", keyword="revenue"),
            RoutingKeyword(persona_id="finance-ops", keyword="forecast"),
        ]
        router = PersonaRouter(router_data.config())
        assert router.get_keyword_map()["revenue"] == [
            ("growth-advisor", 1.0),
            ("finance-ops", 1.0),
        ]
        # finance 2.0 vs growth 1.0 -> dominant
        result = router.route("revenue forecast")
        assert result.persona.id == "finance-ops"
        assert result.confidence == 1.0
