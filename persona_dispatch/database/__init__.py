# persona_dispatch/database/__init__.py
from .persona_store import InMemoryPersonaStore, PersonaStore, SqlitePersonaStore

__all__ = ["PersonaStore", "InMemoryPersonaStore", "SqlitePersonaStore"]
