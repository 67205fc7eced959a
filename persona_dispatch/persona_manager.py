# persona_dispatch/persona_manager.py
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from persona_dispatch.config.settings import PersonaSettings
from persona_dispatch.database.persona_store import PersonaStore
from persona_dispatch.exceptions import PersonaManagerNotInitializedError, PersonaStoreError
from persona_dispatch.models import (
    KeywordInput,
    OnboardingAnswers,
    Persona,
    PersonaCreateInput,
    PersonaUpdateInput,
    RouteResult,
    RoutingKeyword,
)
from persona_dispatch.persona.routing import PersonaRouter, RouterConfig
from persona_dispatch.personas.generator import generate_personas
from persona_dispatch.personas.templates import get_default_templates

logger = logging.getLogger(__name__)

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def generate_id(name: str) -> str:
    """Derives a URL-safe id from a human-readable name.

    "Chief of Staff" -> "chief-of-staff", "R&D!! Lead" -> "r-d-lead".
    """
    return _NON_ALNUM_RUN.sub("-", name.lower()).strip("-")


class PersonaManager:
    """Lifecycle owner and read-through cache for personas.

    Construct one per store and pass it to whoever needs it. All reads go
    through a persona list cache that every successful write drops, together
    with the router's keyword map, before returning.

    Not thread-safe: callers running several threads of control against one
    instance must serialize writes themselves.
    """

    def __init__(self, settings: Optional[PersonaSettings] = None):
        self.settings = settings or PersonaSettings()
        self.store: Optional[PersonaStore] = None
        self._cache: Optional[List[Persona]] = None

        self.router = PersonaRouter(
            RouterConfig(
                get_personas=lambda: self.get_all(active_only=True),
                get_by_slug=self.get_by_slug,
                get_default=self.get_default,
                get_all_keywords=self.get_all_keywords,
            ),
            self.settings.router_settings(),
        )

    # --- Lifecycle ---
    def initialize(self, store: PersonaStore) -> None:
        """Binds the store. Must be called once before any other method."""
        self.store = store
        self.invalidate_cache()
        logger.info(f"PersonaManager initialized with {type(store).__name__}.")

    def is_initialized(self) -> bool:
        return self.store is not None

    def invalidate_cache(self) -> None:
        """Drops the persona cache and the router's keyword map."""
        self._cache = None
        self.router.invalidate_cache()

    def _ensure_initialized(self, operation: str) -> PersonaStore:
        if self.store is None:
            raise PersonaManagerNotInitializedError(operation)
        return self.store

    # --- Reads ---
    def get_all(self, active_only: bool = True) -> List[Persona]:
        """Returns all personas, by default only the active ones."""
        store = self._ensure_initialized("get_all")
        if self._cache is None:
            self._cache = store.get_personas(include_inactive=True)
        if active_only:
            return [p for p in self._cache if p.is_active]
        return list(self._cache)

    def get_by_id(self, persona_id: str) -> Optional[Persona]:
        store = self._ensure_initialized("get_by_id")
        if self._cache is not None:
            for persona in self._cache:
                if persona.id == persona_id:
                    return persona
        return store.get_persona_by_id(persona_id)

    def get_by_slug(self, slug: str) -> Optional[Persona]:
        """Looks up a persona by slug (case-insensitive), cache first."""
        store = self._ensure_initialized("get_by_slug")
        slug = slug.lower()
        if self._cache is not None:
            for persona in self._cache:
                if persona.slug == slug:
                    return persona
        return store.get_persona_by_slug(slug)

    def get_default(self) -> Optional[Persona]:
        store = self._ensure_initialized("get_default")
        if self._cache is not None:
            for persona in self._cache:
                if persona.is_default and persona.is_active:
                    return persona
        return store.get_default_persona()

    def has_personas(self) -> bool:
        return len(self.get_all(active_only=False)) > 0

    def get_all_keywords(self) -> List[RoutingKeyword]:
        store = self._ensure_initialized("get_all_keywords")
        return store.get_routing_keywords()

    def get_keywords(self, persona_id: str) -> List[RoutingKeyword]:
        store = self._ensure_initialized("get_keywords")
        return store.get_routing_keywords(persona_id)

    # --- Writes ---
    def create(self, data: Union[PersonaCreateInput, Dict[str, Any]]) -> Persona:
        """Creates a persona and returns the row as persisted (timestamps included).

        Raises:
            pydantic.ValidationError: If ``data`` is not a valid create input.
            ValueError: If no id is given and none can be derived from the name.
            PersonaStoreError: If a persona with the id already exists.
        """
        store = self._ensure_initialized("create")
        if not isinstance(data, PersonaCreateInput):
            data = PersonaCreateInput.model_validate(data)

        persona_id = data.id or generate_id(data.name)
        if not persona_id:
            raise ValueError(f"Cannot derive a persona id from name '{data.name}'.")
        if store.get_persona_by_id(persona_id) is not None:
            raise PersonaStoreError(
                f"Persona '{persona_id}' already exists",
                operation="create",
                details={"persona_id": persona_id},
            )

        persona = Persona(
            **data.model_dump(exclude={"id", "icon", "color"}),
            id=persona_id,
            icon=data.icon or self.settings.default_icon,
            color=data.color or self.settings.default_color,
        )
        store.save_persona(persona)
        if persona.is_default:
            store.set_default_persona(persona_id)
        self.invalidate_cache()
        logger.info(f"Created persona '{persona_id}'.", extra={"persona_id": persona_id})

        return store.get_persona_by_id(persona_id)

    def update(
        self, persona_id: str, changes: Union[PersonaUpdateInput, Dict[str, Any]]
    ) -> bool:
        """Partially updates a persona. Returns True when the row changed.

        Setting ``is_default=True`` clears the flag on every other persona.
        """
        store = self._ensure_initialized("update")
        if not isinstance(changes, PersonaUpdateInput):
            changes = PersonaUpdateInput.model_validate(changes)
        fields = changes.changes()

        make_default = fields.get("is_default") is True
        if make_default:
            del fields["is_default"]
        elif fields.get("is_default") is False:
            logger.warning(
                f"Clearing the default flag on '{persona_id}' may leave no default persona.",
                extra={"persona_id": persona_id},
            )

        updated = store.update_persona(persona_id, fields) if fields else False
        if make_default:
            updated = store.set_default_persona(persona_id) or updated

        if updated:
            self.invalidate_cache()
            logger.info(f"Updated persona '{persona_id}'.", extra={"persona_id": persona_id})
        else:
            logger.debug(f"Update of persona '{persona_id}' changed nothing.")
        return updated

    def delete(self, persona_id: str) -> bool:
        """Deletes a persona; its routing keywords go with it."""
        store = self._ensure_initialized("delete")
        deleted = store.delete_persona(persona_id)
        if deleted:
            self.invalidate_cache()
            logger.info(f"Deleted persona '{persona_id}'.", extra={"persona_id": persona_id})
        return deleted

    def set_default(self, persona_id: str) -> bool:
        """Makes ``persona_id`` the only default persona. Unknown ids are a no-op."""
        store = self._ensure_initialized("set_default")
        changed = store.set_default_persona(persona_id)
        if changed:
            self.invalidate_cache()
            logger.info(f"Default persona set to '{persona_id}'.", extra={"persona_id": persona_id})
        else:
            logger.warning(f"Cannot set unknown persona '{persona_id}' as default.")
        return changed

    def set_keywords(
        self,
        persona_id: str,
        keywords: Sequence[Union[KeywordInput, str, Dict[str, Any]]],
    ) -> None:
        """Replaces the routing keyword set of a persona."""
        store = self._ensure_initialized("set_keywords")
        store.set_routing_keywords(persona_id, self._normalize_keywords(keywords))
        self.invalidate_cache()

    def _normalize_keywords(
        self, keywords: Sequence[Union[KeywordInput, str, Dict[str, Any]]]
    ) -> List[KeywordInput]:
        normalized = []
        for kw in keywords:
            if isinstance(kw, KeywordInput):
                normalized.append(kw)
            elif isinstance(kw, str):
                normalized.append(
                    KeywordInput(keyword=kw, weight=self.settings.default_keyword_weight)
                )
            else:
                normalized.append(KeywordInput.model_validate(kw))
        return normalized

    # --- Seeding ---
    def seed_defaults(
        self, answers: Optional[Union[OnboardingAnswers, Dict[str, Any]]] = None
    ) -> int:
        """Populates the store from templates on first run.

        With onboarding ``answers`` the templates are generated for the
        founder's stage, role and gaps; otherwise the full catalog is used.
        A no-op when any persona exists, so it is safe on every launch.

        Returns:
            The number of personas seeded (0 when skipped).
        """
        store = self._ensure_initialized("seed_defaults")
        if self.has_personas():
            logger.info("Personas already exist, skipping seed.")
            return 0

        if answers is not None:
            templates = generate_personas(answers, self.settings.templates_file)
        else:
            templates = get_default_templates(self.settings.templates_file)

        logger.info(f"Seeding {len(templates)} default personas.")
        for template in templates:
            store.save_persona(template.to_persona())
            if template.keywords:
                store.set_routing_keywords(
                    template.id,
                    [
                        KeywordInput(keyword=k, weight=self.settings.default_keyword_weight)
                        for k in template.keywords
                    ],
                )

        self.invalidate_cache()
        logger.info("Seed complete.")
        return len(templates)

    # --- Routing ---
    def route(self, message: str) -> RouteResult:
        self._ensure_initialized("route")
        return self.router.route(message)
