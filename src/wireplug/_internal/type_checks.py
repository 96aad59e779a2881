from __future__ import annotations

import types
from typing import Any, TypeGuard


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_protocol_class(candidate: object) -> bool:
    """Return true when candidate is a ``typing.Protocol`` definition."""
    return is_runtime_class(candidate) and bool(getattr(candidate, "_is_protocol", False))


def qualified_name(candidate: type[Any]) -> str:
    """Return the ``module.QualName`` identity used by plugin manifests."""
    return f"{candidate.__module__}.{candidate.__qualname__}"


__all__ = ["is_protocol_class", "is_runtime_class", "qualified_name"]
