from __future__ import annotations

import inspect
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, get_type_hints

from wireplug._internal.type_checks import is_protocol_class
from wireplug.exceptions import ConstructorSelectionError, InvalidBindingError
from wireplug.markers import is_provider_annotation, strip_provider_annotation
from wireplug.registration_decorators import is_constructor_marked, is_inject_marked
from wireplug.service_key import ServiceKey

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


@dataclass(frozen=True, slots=True)
class InjectionPoint:
    """A constructor parameter the injector has to supply."""

    name: str
    key: ServiceKey
    positional_only: bool
    has_default: bool
    default: Any = inspect.Parameter.empty
    lazy: bool = False
    """``Provider[T]`` parameter: inject a callable instead of the instance."""


@dataclass(frozen=True, slots=True)
class ConstructorSpec:
    """The selected constructor of an implementation and its injection points."""

    implementation: type[Any]
    call: Callable[..., Any]
    parameters: tuple[InjectionPoint, ...]

    def invoke(self, arguments: dict[str, Any]) -> Any:
        """Call the constructor with ``arguments``, keyed by parameter name.

        Arguments go by keyword, except positional-only ones. A positional-only
        parameter left out of ``arguments`` receives its declared default so
        the ones after it keep their positions.
        """
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for point in self.parameters:
            if point.positional_only:
                args.append(arguments.get(point.name, point.default))
            elif point.name in arguments:
                kwargs[point.name] = arguments[point.name]
        return self.call(*args, **kwargs)


class ConstructorSelector:
    """Pick the constructor used to build an implementation.

    Eligible constructors are ``__init__`` plus classmethods marked with
    ``@constructor`` or ``@inject``. A single eligible constructor is always
    used; among several, exactly one must be marked with ``@inject``.
    Selections are cached per class.
    """

    def __init__(self) -> None:
        self._specs: dict[type[Any], ConstructorSpec] = {}
        self._lock = threading.Lock()

    def select(
        self,
        implementation: type[Any],
        key: ServiceKey,
        path: tuple[ServiceKey, ...] = (),
    ) -> ConstructorSpec:
        cached = self._specs.get(implementation)
        if cached is not None:
            return cached

        if inspect.isabstract(implementation) or is_protocol_class(implementation):
            raise ConstructorSelectionError(
                implementation,
                "abstract classes and protocols have no eligible constructor",
                key,
                path,
            )

        candidates = self._eligible_constructors(implementation)
        if len(candidates) == 1:
            name, function = candidates[0]
        else:
            marked = [(name, function) for name, function in candidates if is_inject_marked(function)]
            if len(marked) != 1:
                names = ", ".join(name for name, _ in candidates)
                reason = (
                    f"{len(candidates)} eligible constructors ({names}) and "
                    f"{len(marked)} marked with @inject"
                )
                raise ConstructorSelectionError(implementation, reason, key, path)
            name, function = marked[0]

        call = implementation if name == "__init__" else getattr(implementation, name)
        spec = ConstructorSpec(
            implementation=implementation,
            call=call,
            parameters=self._injection_points(implementation, function, key, path),
        )
        with self._lock:
            return self._specs.setdefault(implementation, spec)

    def _eligible_constructors(self, implementation: type[Any]) -> list[tuple[str, Any]]:
        constructors: list[tuple[str, Any]] = [("__init__", implementation.__init__)]
        seen: set[str] = {"__init__"}
        for klass in implementation.__mro__:
            for name, attribute in vars(klass).items():
                if name in seen:
                    continue
                seen.add(name)
                if isinstance(attribute, classmethod) and is_constructor_marked(attribute):
                    constructors.append((name, attribute.__func__))
        return constructors

    def _injection_points(
        self,
        implementation: type[Any],
        function: Any,
        key: ServiceKey,
        path: tuple[ServiceKey, ...],
    ) -> tuple[InjectionPoint, ...]:
        if function is object.__init__:
            return ()
        try:
            type_hints = get_type_hints(function, include_extras=True)
            signature = inspect.signature(function)
        except (TypeError, NameError, ValueError) as e:
            raise ConstructorSelectionError(
                implementation,
                f"cannot read the constructor signature: {e}",
                key,
                path,
            ) from e

        points: list[InjectionPoint] = []
        # Name of an unannotated positional-only parameter left to its default.
        positional_gap: str | None = None
        for index, (name, parameter) in enumerate(signature.parameters.items()):
            if index == 0 and name in {"self", "cls"}:
                continue
            if parameter.kind in _SKIPPED_KINDS:
                continue
            positional_only = parameter.kind is inspect.Parameter.POSITIONAL_ONLY
            has_default = parameter.default is not inspect.Parameter.empty
            annotation = type_hints.get(name, inspect.Parameter.empty)
            if annotation is inspect.Parameter.empty:
                if has_default:
                    if positional_only:
                        positional_gap = name
                    continue
                raise ConstructorSelectionError(
                    implementation,
                    f"parameter {name!r} has neither a type annotation nor a default",
                    key,
                    path,
                )
            if positional_only and positional_gap is not None:
                raise ConstructorSelectionError(
                    implementation,
                    f"positional-only parameter {name!r} follows unannotated "
                    f"positional-only parameter {positional_gap!r}",
                    key,
                    path,
                )
            lazy = is_provider_annotation(annotation)
            try:
                dependency_key = ServiceKey.from_value(strip_provider_annotation(annotation))
            except InvalidBindingError as e:
                raise ConstructorSelectionError(implementation, str(e), key, path) from e
            points.append(
                InjectionPoint(
                    name=name,
                    key=dependency_key,
                    positional_only=positional_only,
                    has_default=has_default,
                    default=parameter.default,
                    lazy=lazy,
                ),
            )
        return tuple(points)
