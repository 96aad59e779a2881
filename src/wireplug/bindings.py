from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeAlias

from wireplug._internal.type_checks import is_protocol_class, is_runtime_class
from wireplug.exceptions import InvalidBindingError
from wireplug.service_key import ServiceKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToImplementation:
    """Provision a key by constructing ``implementation``."""

    implementation: type[Any]


@dataclass(frozen=True, slots=True)
class ToInstance:
    """Provision a key with an already built ``instance``."""

    instance: Any


Binding: TypeAlias = ToImplementation | ToInstance


@dataclass(frozen=True, slots=True)
class FrozenBindings:
    """Read-only binding tables owned by a built injector."""

    explicit: Mapping[ServiceKey, Binding]
    defaults: Mapping[ServiceKey, ToImplementation]


@dataclass(slots=True)
class BindingTable:
    """Collect explicit and default bindings while an injector is being built.

    Rebinding a key replaces the previous rule. ``freeze`` snapshots both
    tables, so later mutations never reach an injector that was already built.
    """

    _explicit: dict[ServiceKey, Binding] = field(default_factory=dict)
    _defaults: dict[ServiceKey, ToImplementation] = field(default_factory=dict)

    def bind(self, key: ServiceKey, binding: Binding) -> None:
        if isinstance(binding, ToImplementation):
            validate_implementation(key, binding.implementation)
        previous = self._explicit.get(key)
        if previous is not None:
            logger.debug("Rebinding %s: %r replaces %r", key, binding, previous)
        self._explicit[key] = binding

    def bind_default(self, key: ServiceKey, implementation: Any) -> None:
        validate_implementation(key, implementation)
        self._defaults[key] = ToImplementation(implementation)

    def freeze(self) -> FrozenBindings:
        return FrozenBindings(
            explicit=MappingProxyType(dict(self._explicit)),
            defaults=MappingProxyType(dict(self._defaults)),
        )


def validate_implementation(key: ServiceKey, implementation: Any) -> None:
    """Reject implementations that are not classes or do not fit the capability."""
    if not is_runtime_class(implementation):
        msg = f"Implementation bound to {key} must be a class, got {implementation!r}"
        raise InvalidBindingError(msg)
    capability = key.value
    if not is_runtime_class(capability) or is_protocol_class(capability):
        return
    if not issubclass(implementation, capability):
        msg = f"{implementation.__qualname__} does not implement {capability.__qualname__}"
        raise InvalidBindingError(msg)
