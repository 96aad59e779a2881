from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, NamedTuple, get_args, get_origin

from wireplug.exceptions import InvalidBindingError


class Component(NamedTuple):
    """Qualify a capability so several bindings of the same type can coexist.

    Attach ``Component`` metadata through ``typing.Annotated``; the injector
    treats each qualified key as distinct from the plain type.

    Examples:
        .. code-block:: python

            from typing import Annotated, TypeAlias

            Greeting: TypeAlias = Annotated[str, Component("greeting")]
            Farewell: TypeAlias = Annotated[str, Component("farewell")]

    """

    value: Any


@dataclass(frozen=True, slots=True)
class ServiceKey:
    """Identity of a requested capability: a type plus an optional qualifier."""

    value: Any
    component: Component | None = None

    @classmethod
    def from_value(cls, value: Any) -> ServiceKey:
        """Build a key from a type, an ``Annotated`` token or an existing key."""
        if isinstance(value, ServiceKey):
            return value
        if get_origin(value) is Annotated:
            base, *metadata = get_args(value)
            components = [item for item in metadata if isinstance(item, Component)]
            if len(components) > 1:
                msg = f"Key {value!r} carries more than one Component qualifier"
                raise InvalidBindingError(msg)
            return cls(value=base, component=components[0] if components else None)
        return cls(value=value)

    @property
    def qualifier(self) -> Any:
        return None if self.component is None else self.component.value

    def __str__(self) -> str:
        if isinstance(self.value, type) and get_origin(self.value) is None:
            name = self.value.__qualname__
        else:
            name = repr(self.value)
        if self.component is None:
            return name
        return f"{name}[component={self.component.value!r}]"
