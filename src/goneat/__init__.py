"""
goneat — schema intelligence engine.

File: src/goneat/__init__.py

Purpose
- Package root. Offline JSON Schema validation, schema mapping, and signature detection.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
