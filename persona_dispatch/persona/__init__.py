# persona_dispatch/persona/__init__.py
