from __future__ import annotations

import datetime
import decimal
import enum
import inspect
import pathlib
import uuid
from dataclasses import dataclass
from typing import Any, TypeGuard

from wireplug._internal.type_checks import is_protocol_class, is_runtime_class
from wireplug.integrations.pydantic_settings import is_pydantic_settings_subclass
from wireplug.service_key import ServiceKey

# Value types are data, never services, even though they are concrete classes.
VALUE_TYPES: tuple[type[Any], ...] = (
    pathlib.PurePath,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    decimal.Decimal,
)


class ImplicitSource(enum.Enum):
    """How an unbound key is built from its own type."""

    SETTINGS = "settings"
    CONCRETE = "concrete"


@dataclass(frozen=True, slots=True)
class ImplicitProviderPolicy:
    """Decide whether a key with no binding, plugin or default can still be built.

    Only unqualified keys qualify. Pydantic settings models are always built
    from the environment; other concrete classes are constructed as
    themselves only when ``construct_concrete_types`` is set.
    """

    construct_concrete_types: bool = True

    def source_for(self, key: ServiceKey) -> ImplicitSource | None:
        if key.component is not None:
            return None
        if is_pydantic_settings_subclass(key.value):
            return ImplicitSource.SETTINGS
        if self.construct_concrete_types and is_constructible(key.value):
            return ImplicitSource.CONCRETE
        return None


def is_constructible(candidate: object) -> TypeGuard[type[Any]]:
    """Return whether ``candidate`` is a service class the injector can instantiate.

    Builtins, metaclasses, value types, abstract classes and protocols are
    rejected.
    """
    if not is_runtime_class(candidate) or candidate.__module__ == "builtins":
        return False
    if issubclass(candidate, type) or issubclass(candidate, VALUE_TYPES):
        return False
    return not (inspect.isabstract(candidate) or is_protocol_class(candidate))
