from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from wireplug._internal.type_checks import is_runtime_class
from wireplug.exceptions import InvalidFactoryError

C = TypeVar("C", bound=type[Any])
ConstructorT = TypeVar("ConstructorT", bound=Callable[..., Any] | classmethod)

INJECT_MARKER_ATTR = "__wireplug_inject__"
CONSTRUCTOR_MARKER_ATTR = "__wireplug_constructor__"
AUTO_FACTORY_METHOD_ATTR = "__wireplug_auto_factory_method__"


def inject(target: ConstructorT) -> ConstructorT:
    """Mark the constructor the injector should prefer.

    Apply to ``__init__`` or to a classmethod constructor. Marking is only
    needed when a class declares more than one constructor.

    Examples:
        .. code-block:: python

            class Client:
                def __init__(self, session: Session) -> None: ...

                @inject
                @classmethod
                def from_settings(cls, settings: Settings) -> Client: ...

    """
    _mark(target, INJECT_MARKER_ATTR)
    return target


def constructor(target: ConstructorT) -> ConstructorT:
    """Declare a classmethod as an alternate constructor without preferring it."""
    if not isinstance(target, classmethod):
        msg = "@constructor must decorate a classmethod"
        raise TypeError(msg)
    _mark(target, CONSTRUCTOR_MARKER_ATTR)
    return target


def auto_factory(interface: C) -> C:
    """Turn a single-method interface into an injector-generated assisted factory.

    Requesting the interface from the injector returns a generated
    implementation. Its method builds a new instance of the method's return
    type on every call, substituting the call arguments for the constructor
    parameters they match by type and qualifier and resolving every other
    parameter from the injector.

    Examples:
        .. code-block:: python

            @auto_factory
            class ReportFactory(Protocol):
                def create(self, title: str) -> Report: ...

    Raises:
        InvalidFactoryError: If ``interface`` is not a class or does not
            declare exactly one public method.

    """
    if not is_runtime_class(interface):
        msg = f"@auto_factory must decorate a class, got {interface!r}"
        raise InvalidFactoryError(msg)
    methods = [
        name
        for name, attribute in vars(interface).items()
        if not name.startswith("_") and inspect.isfunction(attribute)
    ]
    if len(methods) != 1:
        msg = (
            f"Assisted factory {interface.__qualname__} must declare exactly one public "
            f"method, found {len(methods)}: {sorted(methods)}"
        )
        raise InvalidFactoryError(msg)
    setattr(interface, AUTO_FACTORY_METHOD_ATTR, methods[0])
    return interface


def is_inject_marked(target: Any) -> bool:
    return getattr(_function_of(target), INJECT_MARKER_ATTR, False)


def is_constructor_marked(target: Any) -> bool:
    return getattr(_function_of(target), CONSTRUCTOR_MARKER_ATTR, False) or is_inject_marked(
        target,
    )


def auto_factory_method(interface: Any) -> str | None:
    """Return the factory method name when ``interface`` itself is ``@auto_factory``."""
    if not is_runtime_class(interface):
        return None
    return vars(interface).get(AUTO_FACTORY_METHOD_ATTR)


def _mark(target: Any, attribute: str) -> None:
    setattr(_function_of(target), attribute, True)


def _function_of(target: Any) -> Any:
    if isinstance(target, (classmethod, staticmethod)):
        return target.__func__
    return target
