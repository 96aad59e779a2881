from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wireplug.service_key import ServiceKey


class WireplugError(Exception):
    """Represent a base class for all wireplug-specific failures.

    Catch this type when you want to handle any wireplug error path without
    matching each concrete exception class individually.
    """


class InvalidBindingError(WireplugError):
    """Signal invalid input to the injector builder.

    Raised by ``InjectorBuilder.bind`` and ``InjectorBuilder.bind_default`` when
    the implementation is not a class or does not implement the bound
    capability, and by ``ServiceKey.from_value`` for malformed keys.
    """


class InvalidFactoryError(WireplugError):
    """Signal that ``@auto_factory`` was applied to an unusable interface.

    An assisted factory interface must declare exactly one public method.
    """


class DiscoveryError(WireplugError):
    """Signal that a declared plugin implementation could not be loaded."""

    def __init__(self, capability: Any, implementation: Any, error: BaseException) -> None:
        self.capability = capability
        self.implementation = implementation
        self.error = error
        super().__init__(
            f"Failed to load implementation {implementation!r} declared for "
            f"{getattr(capability, '__qualname__', capability)!r}: {error}",
        )


class ResolutionFailure(WireplugError):
    """Signal that ``Injector.get_instance`` could not produce an instance.

    This is the single resolution error kind; subclasses only add context.
    A failure is local to the request that raised it: the injector stays
    usable and nothing is cached for the failed key.

    Attributes:
        key: The key whose resolution failed.
        path: Keys being resolved when the failure happened, outermost first.

    """

    def __init__(self, message: str, key: ServiceKey, path: tuple[ServiceKey, ...] = ()) -> None:
        self.key = key
        self.path = path
        super().__init__(message)

    @property
    def path_description(self) -> str:
        return " -> ".join(str(key) for key in self.path) or str(self.key)


class NotBoundError(ResolutionFailure):
    """Signal that a key has no binding, no discovered candidate and no default.

    Typical fixes include binding the key on the builder, declaring a plugin
    for the capability, or registering a default implementation.
    """

    def __init__(self, key: ServiceKey, path: tuple[ServiceKey, ...] = ()) -> None:
        super().__init__(
            f"No binding, discovered implementation or default found for {key}",
            key,
            path,
        )


class ConstructorSelectionError(ResolutionFailure):
    """Signal that no single constructor of an implementation can be used.

    Raised for abstract classes and protocols, for classes with several
    eligible constructors and none (or more than one) marked with ``@inject``,
    and for required parameters whose type cannot be inferred.
    """

    def __init__(
        self,
        implementation: type[Any],
        reason: str,
        key: ServiceKey,
        path: tuple[ServiceKey, ...] = (),
    ) -> None:
        self.implementation = implementation
        super().__init__(
            f"Cannot select a constructor of {implementation.__qualname__}: {reason}",
            key,
            path,
        )


class DependencyResolutionError(ResolutionFailure):
    """Signal that a constructor parameter of an implementation failed to resolve.

    The inner failure is chained as ``__cause__``; walking the chain gives
    the full dependency path.
    """

    def __init__(
        self,
        implementation: type[Any],
        parameter: str,
        key: ServiceKey,
        path: tuple[ServiceKey, ...] = (),
    ) -> None:
        self.implementation = implementation
        self.parameter = parameter
        super().__init__(
            f"Failed to resolve parameter {parameter!r} of {implementation.__qualname__} "
            f"(path: {' -> '.join(str(item) for item in path)})",
            key,
            path,
        )


class InstantiationError(ResolutionFailure):
    """Signal that the selected constructor raised; the original error is the cause."""

    def __init__(
        self,
        implementation: type[Any],
        error: BaseException,
        key: ServiceKey,
        path: tuple[ServiceKey, ...] = (),
    ) -> None:
        self.implementation = implementation
        self.error = error
        super().__init__(
            f"Constructing {implementation.__qualname__} for {key} raised "
            f"{type(error).__name__}: {error}",
            key,
            path,
        )


class CircularDependencyError(ResolutionFailure):
    """Signal that a key depends on itself through its constructor parameters."""

    def __init__(self, key: ServiceKey, path: tuple[ServiceKey, ...]) -> None:
        cycle = " -> ".join(str(item) for item in (*path, key))
        super().__init__(f"Circular dependency detected: {cycle}", key, path)


class FactoryError(ResolutionFailure):
    """Signal that an assisted factory cannot be generated for its product."""


class PluginLoadError(ResolutionFailure):
    """Signal that discovery for a requested capability failed.

    Raised by ``Injector.get_instance`` when a plugin declared for the key's
    capability cannot be loaded. The ``DiscoveryError`` reported by the
    discovery source is chained as ``__cause__``.
    """

    def __init__(
        self,
        error: DiscoveryError,
        key: ServiceKey,
        path: tuple[ServiceKey, ...] = (),
    ) -> None:
        self.error = error
        super().__init__(f"Cannot discover implementations for {key}: {error}", key, path)
