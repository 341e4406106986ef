"""
FastAPI dependencies that hand the admin engine to route handlers.

Tests override `get_registry` / `get_manager` through
`app.dependency_overrides`.
"""

from __future__ import annotations

from fastapi import Depends

from .registry import ResourceRegistry, default_registry
from .repository import ResourceManager


def get_registry() -> ResourceRegistry:
    return default_registry()


def get_manager(registry: ResourceRegistry = Depends(get_registry)) -> ResourceManager:
    return ResourceManager(registry)
