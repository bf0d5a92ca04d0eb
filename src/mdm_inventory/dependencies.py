"""Startup check for the third-party libraries the inventory run needs.

Only the standard library is imported here so the check can run before any
other part of the package is loaded.
"""
from __future__ import annotations

import importlib.util
from typing import Iterable, List

from .errors import ModuleUnavailable

REQUIRED_MODULES = ("httpx", "msal", "azure.identity", "pydantic", "yaml")


def missing_modules(modules: Iterable[str] = REQUIRED_MODULES) -> List[str]:
    missing: List[str] = []
    for name in modules:
        try:
            spec = importlib.util.find_spec(name)
        except ModuleNotFoundError:
            # Raised when the parent package of a dotted name is absent.
            spec = None
        if spec is None:
            missing.append(name)
    return missing


def ensure_dependencies(modules: Iterable[str] = REQUIRED_MODULES) -> None:
    missing = missing_modules(modules)
    if missing:
        raise ModuleUnavailable(missing)
