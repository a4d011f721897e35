# client/apunto/__init__.py
from __future__ import annotations

"""
Marks `apunto` as a Python package.

Schemas live in apunto.schemas, the analysis/history services in
apunto.services, and the default wiring in apunto.main.
"""
