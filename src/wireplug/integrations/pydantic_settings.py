"""Resolve application settings models declared with ``pydantic-settings``.

An unbound, unqualified settings class is built by calling it with no
arguments, so its fields come from the environment and ``.env`` files, and
the result is kept as the injector's singleton for that class. Pydantic is an
optional dependency; without it no class is treated as settings.
"""

from __future__ import annotations

import functools
import importlib
import warnings
from typing import Any

from wireplug._internal.type_checks import is_runtime_class

_SETTINGS_MODULES = ("pydantic_settings", "pydantic.v1")
_PYDANTIC_V1_WARNING_PATTERN = (
    r"Core Pydantic V1 functionality isn't compatible with Python 3\.14 or greater\."
)


def _load_base_settings(module_name: str) -> type[Any] | None:
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    base_settings = getattr(module, "BaseSettings", None)
    return base_settings if isinstance(base_settings, type) else None


@functools.cache
def settings_bases() -> tuple[type[Any], ...]:
    """Return the importable ``BaseSettings`` classes, loaded on first use."""
    bases: list[type[Any]] = []
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message=_PYDANTIC_V1_WARNING_PATTERN, category=UserWarning)
        for module_name in _SETTINGS_MODULES:
            base = _load_base_settings(module_name)
            if base is not None and base not in bases:
                bases.append(base)
    return tuple(bases)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether ``candidate`` is a settings model the injector may build.

    The ``BaseSettings`` classes themselves are not settings models.
    """
    bases = settings_bases()
    if not is_runtime_class(candidate) or candidate in bases:
        return False
    try:
        return issubclass(candidate, bases)
    except TypeError:
        return False


def load_settings(settings_class: type[Any]) -> Any:
    return settings_class()


__all__ = [
    "is_pydantic_settings_subclass",
    "load_settings",
    "settings_bases",
]
