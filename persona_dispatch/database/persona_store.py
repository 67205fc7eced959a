# persona_dispatch/database/persona_store.py
"""
Persona store contract and reference adapters.

The PersonaManager never persists anything itself; it talks to whatever object
satisfies ``PersonaStore``. Two adapters are provided: a dict-backed store for
tests and throwaway sessions, and a SQLite store using the same two-table
layout (personas + routing keywords with ON DELETE CASCADE).
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from persona_dispatch.exceptions import PersonaStoreError
from persona_dispatch.models import KeywordInput, Persona, RoutingKeyword

logger = logging.getLogger(__name__)

# Columns a partial update may touch. id and timestamps are store-owned.
MUTABLE_PERSONA_FIELDS = (
    "name",
    "slug",
    "icon",
    "color",
    "role_title",
    "description",
    "identity",
    "instructions",
    "system_prompt_prefix",
    "is_default",
    "is_active",
    "sort_order",
)


@runtime_checkable
class PersonaStore(Protocol):
    """CRUD surface over persona records and routing keywords."""

    def get_personas(self, include_inactive: bool = False) -> List[Persona]: ...

    def get_persona_by_id(self, persona_id: str) -> Optional[Persona]: ...

    def get_persona_by_slug(self, slug: str) -> Optional[Persona]: ...

    def get_default_persona(self) -> Optional[Persona]: ...

    def save_persona(self, persona: Persona) -> None: ...

    def update_persona(self, persona_id: str, changes: Dict[str, Any]) -> bool: ...

    def delete_persona(self, persona_id: str) -> bool: ...

    def set_default_persona(self, persona_id: str) -> bool: ...

    def set_routing_keywords(
        self, persona_id: str, keywords: Sequence[KeywordInput]
    ) -> None: ...

    def get_routing_keywords(
        self, persona_id: Optional[str] = None
    ) -> List[RoutingKeyword]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(persona: Persona):
    return (persona.sort_order, persona.name)


def _filter_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - set(MUTABLE_PERSONA_FIELDS)
    if unknown:
        logger.warning(f"Ignoring non-updatable persona fields: {sorted(unknown)}")
    return {k: v for k, v in changes.items() if k in MUTABLE_PERSONA_FIELDS}


class InMemoryPersonaStore:
    """Dict-backed store. Returns copies so callers cannot mutate stored rows."""

    def __init__(self):
        self._personas: Dict[str, Persona] = {}
        self._keywords: List[RoutingKeyword] = []
        self._next_keyword_id = 1

    def get_personas(self, include_inactive: bool = False) -> List[Persona]:
        personas = [
            p.model_copy()
            for p in self._personas.values()
            if include_inactive or p.is_active
        ]
        return sorted(personas, key=_sort_key)

    def get_persona_by_id(self, persona_id: str) -> Optional[Persona]:
        persona = self._personas.get(persona_id)
        return persona.model_copy() if persona else None

    def get_persona_by_slug(self, slug: str) -> Optional[Persona]:
        slug = slug.lower()
        for persona in self._personas.values():
            if persona.slug == slug:
                return persona.model_copy()
        return None

    def get_default_persona(self) -> Optional[Persona]:
        for persona in sorted(self._personas.values(), key=_sort_key):
            if persona.is_default and persona.is_active:
                return persona.model_copy()
        return None

    def save_persona(self, persona: Persona) -> None:
        for existing in self._personas.values():
            if existing.slug == persona.slug and existing.id != persona.id:
                raise PersonaStoreError(
                    f"Slug '{persona.slug}' is already used by persona '{existing.id}'",
                    operation="save_persona",
                    details={"persona_id": persona.id, "slug": persona.slug},
                )
        now = _now()
        previous = self._personas.get(persona.id)
        created_at = previous.created_at if previous else (persona.created_at or now)
        self._personas[persona.id] = persona.model_copy(
            update={"created_at": created_at, "updated_at": now}
        )

    def update_persona(self, persona_id: str, changes: Dict[str, Any]) -> bool:
        persona = self._personas.get(persona_id)
        changes = _filter_changes(changes)
        if persona is None or not changes:
            return False
        updated = persona.model_copy(update={**changes, "updated_at": _now()})
        # Re-validate so slug normalization and types hold for patched rows.
        updated = Persona.model_validate(updated.model_dump())
        for other in self._personas.values():
            if other.id != persona_id and other.slug == updated.slug:
                raise PersonaStoreError(
                    f"Slug '{updated.slug}' is already used by persona '{other.id}'",
                    operation="update_persona",
                    details={"persona_id": persona_id, "slug": updated.slug},
                )
        self._personas[persona_id] = updated
        return True

    def delete_persona(self, persona_id: str) -> bool:
        if self._personas.pop(persona_id, None) is None:
            return False
        self._keywords = [k for k in self._keywords if k.persona_id != persona_id]
        return True

    def set_default_persona(self, persona_id: str) -> bool:
        if persona_id not in self._personas:
            return False
        now = _now()
        for pid, persona in self._personas.items():
            should_be_default = pid == persona_id
            if persona.is_default != should_be_default:
                self._personas[pid] = persona.model_copy(
                    update={"is_default": should_be_default, "updated_at": now}
                )
        return True

    def set_routing_keywords(
        self, persona_id: str, keywords: Sequence[KeywordInput]
    ) -> None:
        if persona_id not in self._personas:
            raise PersonaStoreError(
                f"Cannot set keywords for unknown persona '{persona_id}'",
                operation="set_routing_keywords",
                details={"persona_id": persona_id},
            )
        self._keywords = [k for k in self._keywords if k.persona_id != persona_id]
        for kw in keywords:
            self._keywords.append(
                RoutingKeyword(
                    id=self._next_keyword_id,
                    persona_id=persona_id,
                    keyword=kw.keyword,
                    weight=kw.weight,
                )
            )
            self._next_keyword_id += 1

    def get_routing_keywords(
        self, persona_id: Optional[str] = None
    ) -> List[RoutingKeyword]:
        return [
            k.model_copy()
            for k in self._keywords
            if persona_id is None or k.persona_id == persona_id
        ]


class SqlitePersonaStore:
    """SQLite-backed store using parameterized queries throughout."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row  # Return rows as dict-like objects
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.create_tables()

    def create_tables(self):
        """Creates the personas and routing keyword tables if they don't exist."""
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS personas (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                slug TEXT NOT NULL UNIQUE,
                icon TEXT NOT NULL DEFAULT 'briefcase',
                color TEXT NOT NULL DEFAULT '#a855f7',
                role_title TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                identity TEXT NOT NULL DEFAULT '',
                instructions TEXT NOT NULL DEFAULT '',
                system_prompt_prefix TEXT NOT NULL DEFAULT '',
                is_default INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                sort_order INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS persona_routing_keywords (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                persona_id TEXT NOT NULL REFERENCES personas(id) ON DELETE CASCADE,
                keyword TEXT NOT NULL,
                weight REAL NOT NULL DEFAULT 1.0
            );
            CREATE INDEX IF NOT EXISTS idx_routing_keywords_persona
                ON persona_routing_keywords(persona_id);
            """
        )
        self.conn.commit()

    def close(self):
        self.conn.close()

    def _execute(self, operation: str, query: str, params: Sequence[Any] = ()):
        try:
            cursor = self.conn.execute(query, params)
            self.conn.commit()
            return cursor
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersonaStoreError(
                f"SQLite error during {operation}: {e}",
                operation=operation,
                original_exception=e,
            ) from e

    @staticmethod
    def _row_to_persona(row: sqlite3.Row) -> Persona:
        data = dict(row)
        data["is_default"] = bool(data["is_default"])
        data["is_active"] = bool(data["is_active"])
        return Persona(**data)

    def get_personas(self, include_inactive: bool = False) -> List[Persona]:
        query = "SELECT * FROM personas"
        if not include_inactive:
            query += " WHERE is_active = 1"
        query += " ORDER BY sort_order, name"
        rows = self.conn.execute(query).fetchall()
        return [self._row_to_persona(row) for row in rows]

    def get_persona_by_id(self, persona_id: str) -> Optional[Persona]:
        row = self.conn.execute(
            "SELECT * FROM personas WHERE id = ?", (persona_id,)
        ).fetchone()
        return self._row_to_persona(row) if row else None

    def get_persona_by_slug(self, slug: str) -> Optional[Persona]:
        row = self.conn.execute(
            "SELECT * FROM personas WHERE slug = ?", (slug.lower(),)
        ).fetchone()
        return self._row_to_persona(row) if row else None

    def get_default_persona(self) -> Optional[Persona]:
        row = self.conn.execute(
            "SELECT * FROM personas WHERE is_default = 1 AND is_active = 1 "
            "ORDER BY sort_order, name LIMIT 1"
        ).fetchone()
        return self._row_to_persona(row) if row else None

    def save_persona(self, persona: Persona) -> None:
        now = _now().isoformat()
        created_at = persona.created_at.isoformat() if persona.created_at else now
        self._execute(
            "save_persona",
            """
            INSERT INTO personas (
                id, name, slug, icon, color, role_title, description, identity,
                instructions, system_prompt_prefix, is_default, is_active,
                sort_order, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                slug = excluded.slug,
                icon = excluded.icon,
                color = excluded.color,
                role_title = excluded.role_title,
                description = excluded.description,
                identity = excluded.identity,
                instructions = excluded.instructions,
                system_prompt_prefix = excluded.system_prompt_prefix,
                is_default = excluded.is_default,
                is_active = excluded.is_active,
                sort_order = excluded.sort_order,
                updated_at = excluded.updated_at
            """,
            (
                persona.id,
                persona.name,
                persona.slug,
                persona.icon,
                persona.color,
                persona.role_title,
                persona.description,
                persona.identity,
                persona.instructions,
                persona.system_prompt_prefix,
                int(persona.is_default),
                int(persona.is_active),
                persona.sort_order,
                created_at,
                now,
            ),
        )

    def update_persona(self, persona_id: str, changes: Dict[str, Any]) -> bool:
        changes = _filter_changes(changes)
        if not changes:
            return False
        if "slug" in changes and changes["slug"] is not None:
            changes["slug"] = changes["slug"].lower()
        # Construct parameterized query safely; column names come from the whitelist.
        placeholders = ", ".join([f"{key} = ?" for key in changes])
        query = f"UPDATE personas SET {placeholders}, updated_at = ? WHERE id = ?"
        params = [
            int(v) if isinstance(v, bool) else v for v in changes.values()
        ] + [_now().isoformat(), persona_id]
        cursor = self._execute("update_persona", query, params)
        return cursor.rowcount > 0

    def delete_persona(self, persona_id: str) -> bool:
        cursor = self._execute(
            "delete_persona", "DELETE FROM personas WHERE id = ?", (persona_id,)
        )
        return cursor.rowcount > 0

    def set_default_persona(self, persona_id: str) -> bool:
        if self.get_persona_by_id(persona_id) is None:
            return False
        now = _now().isoformat()
        try:
            with self.conn:
                self.conn.execute(
                    "UPDATE personas SET is_default = 0, updated_at = ? "
                    "WHERE is_default = 1 AND id != ?",
                    (now, persona_id),
                )
                self.conn.execute(
                    "UPDATE personas SET is_default = 1, updated_at = ? WHERE id = ?",
                    (now, persona_id),
                )
        except sqlite3.Error as e:
            raise PersonaStoreError(
                f"SQLite error during set_default_persona: {e}",
                operation="set_default_persona",
                original_exception=e,
            ) from e
        return True

    def set_routing_keywords(
        self, persona_id: str, keywords: Sequence[KeywordInput]
    ) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "DELETE FROM persona_routing_keywords WHERE persona_id = ?",
                    (persona_id,),
                )
                self.conn.executemany(
                    "INSERT INTO persona_routing_keywords (persona_id, keyword, weight) "
                    "VALUES (?, ?, ?)",
                    [(persona_id, kw.keyword, kw.weight) for kw in keywords],
                )
        except sqlite3.Error as e:
            raise PersonaStoreError(
                f"SQLite error during set_routing_keywords: {e}",
                operation="set_routing_keywords",
                details={"persona_id": persona_id},
                original_exception=e,
            ) from e

    def get_routing_keywords(
        self, persona_id: Optional[str] = None
    ) -> List[RoutingKeyword]:
        if persona_id is None:
            rows = self.conn.execute(
                "SELECT * FROM persona_routing_keywords ORDER BY id"
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM persona_routing_keywords WHERE persona_id = ? ORDER BY id",
                (persona_id,),
            ).fetchall()
        return [RoutingKeyword(**dict(row)) for row in rows]
