# persona_dispatch/config/__init__.py
