from __future__ import annotations

import functools
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar, overload

if TYPE_CHECKING:
    from typing_extensions import Self

from wireplug._internal.constructors import ConstructorSelector, ConstructorSpec
from wireplug._internal.factories import FactoryGenerator
from wireplug._internal.implicit_providers import (
    ImplicitProviderPolicy,
    ImplicitSource,
    is_constructible,
)
from wireplug._internal.once_cache import OnceCache
from wireplug._internal.type_checks import is_runtime_class
from wireplug.bindings import BindingTable, FrozenBindings, ToImplementation, ToInstance
from wireplug.discovery import (
    DiscoveredCandidate,
    DiscoverySource,
    EntryPointDiscovery,
    sort_candidates,
)
from wireplug.exceptions import (
    CircularDependencyError,
    ConstructorSelectionError,
    DependencyResolutionError,
    DiscoveryError,
    FactoryError,
    InstantiationError,
    NotBoundError,
    PluginLoadError,
    ResolutionFailure,
)
from wireplug.integrations.pydantic_settings import load_settings
from wireplug.lock_mode import LockMode
from wireplug.markers import collection_element
from wireplug.registration_decorators import auto_factory_method
from wireplug.service_key import ServiceKey

T = TypeVar("T")

logger = logging.getLogger(__name__)


class InjectorBuilder:
    """Collect bindings and options, then build an immutable ``Injector``.

    Bindings are only recorded here; nothing is resolved until
    ``Injector.get_instance`` is called. Rebinding a key replaces the previous
    rule. A builder may keep being used after ``build``; injectors that were
    already built do not observe later changes.
    """

    def __init__(
        self,
        *,
        discovery: DiscoverySource | None = None,
        lock_mode: LockMode = LockMode.THREAD,
        autoregister_concrete_types: bool = True,
    ) -> None:
        """Configure the injector being built.

        Args:
            discovery: Plugin source consulted for capabilities without an
                explicit binding. Defaults to ``EntryPointDiscovery()``.
            lock_mode: Locking of the singleton and discovery caches. Use
                ``LockMode.NONE`` only for single-threaded injectors.
            autoregister_concrete_types: Construct unbound, unqualified concrete
                classes as themselves when no other source provides them.

        """
        self._table = BindingTable()
        self._discovery = discovery
        self._lock_mode = lock_mode
        self._autoregister_concrete_types = autoregister_concrete_types

    def bind(self, key: Any, target: Any) -> Self:
        """Bind ``key`` to an implementation class or to a ready instance.

        A class ``target`` is constructed (once) on first request; any other
        object is returned as is. Use ``bind_instance`` to bind a class object
        itself as the value.

        Raises:
            InvalidBindingError: If a class ``target`` does not implement a
                class capability.

        """
        service_key = ServiceKey.from_value(key)
        if is_runtime_class(target):
            self._table.bind(service_key, ToImplementation(target))
        else:
            self._table.bind(service_key, ToInstance(target))
        return self

    def bind_instance(self, key: Any, instance: Any) -> Self:
        self._table.bind(ServiceKey.from_value(key), ToInstance(instance))
        return self

    def bind_default(self, key: Any, implementation: type[Any]) -> Self:
        """Register a fallback implementation for ``key``.

        The default is used only when ``key`` has no explicit binding and
        discovery finds no implementation of its capability type.
        """
        self._table.bind_default(ServiceKey.from_value(key), implementation)
        return self

    def build(self) -> Injector:
        return Injector(
            self._table.freeze(),
            discovery=self._discovery if self._discovery is not None else EntryPointDiscovery(),
            lock_mode=self._lock_mode,
            autoregister_concrete_types=self._autoregister_concrete_types,
        )


class Injector:
    """Resolve capability keys to instances.

    Keys are types, ``Annotated[T, Component(...)]`` tokens or ``ServiceKey``
    objects. A key is provisioned from, in order:

    1. its explicit binding;
    2. a generated factory, when its type is an ``@auto_factory`` interface;
    3. the highest-priority implementation discovered for its type;
    4. its default binding;
    5. for unqualified keys, the type itself when it is a pydantic settings
       class or (unless disabled) an eligible concrete class.

    Every result is a singleton of this injector, cached under the requested
    key. Requests for ``list[T]``, ``tuple[T, ...]``, ``Sequence[T]`` or
    ``All[T]`` return a tuple of all discovered implementations of ``T``.
    The injector is safe to share between threads.
    """

    def __init__(
        self,
        bindings: FrozenBindings,
        *,
        discovery: DiscoverySource,
        lock_mode: LockMode = LockMode.THREAD,
        autoregister_concrete_types: bool = True,
    ) -> None:
        self._bindings = bindings.explicit
        self._defaults = bindings.defaults
        self._discovery = discovery
        self._implicit = ImplicitProviderPolicy(construct_concrete_types=autoregister_concrete_types)
        self._selector = ConstructorSelector()
        self._factories = FactoryGenerator(self)
        self._singletons: OnceCache[ServiceKey, Any] = OnceCache(lock_mode)
        self._candidates: OnceCache[type[Any], tuple[DiscoveredCandidate, ...]] = OnceCache(
            lock_mode,
        )
        logger.info(
            "Built injector with %d binding(s), %d default(s), discovery=%s",
            len(self._bindings),
            len(self._defaults),
            type(discovery).__name__,
        )

    @classmethod
    def builder(cls, **options: Any) -> InjectorBuilder:
        return InjectorBuilder(**options)

    @overload
    def get_instance(self, key: type[T]) -> T: ...

    @overload
    def get_instance(self, key: Any) -> Any: ...

    def get_instance(self, key: Any) -> Any:
        """Return the instance provisioned for ``key``.

        Raises:
            ResolutionFailure: If no source provides the key, or building it or
                one of its dependencies fails. Nothing is cached for a failed
                key, so a later call retries.

        """
        return self._resolve(ServiceKey.from_value(key), ())

    def has_provider(self, key: Any) -> bool:
        """Return whether ``get_instance(key)`` has a source to build from.

        No instance is constructed; discovery may be queried and cached.

        Raises:
            PluginLoadError: If a plugin declared for the key's type cannot
                be loaded.

        """
        service_key = ServiceKey.from_value(key)
        return (
            self._has_declared_provider(service_key, ())
            or self._implicit.source_for(service_key) is not None
        )

    def _has_declared_provider(self, key: ServiceKey, path: tuple[ServiceKey, ...]) -> bool:
        if key in self._singletons or key in self._bindings:
            return True
        if collection_element(key.value) is not None:
            return True
        if key.component is None and auto_factory_method(key.value) is not None:
            return True
        return bool(self._discovered(key, path)) or key in self._defaults

    def _resolve(self, key: ServiceKey, path: tuple[ServiceKey, ...]) -> Any:
        if key in path:
            raise CircularDependencyError(key, path)
        path = (*path, key)
        if key not in self._bindings:
            element = collection_element(key.value)
            if element is not None:
                return self._resolve_all(element, key, path)
        return self._singletons.get_or_create(key, functools.partial(self._provide, key, path))

    def _resolve_all(
        self,
        element: Any,
        key: ServiceKey,
        path: tuple[ServiceKey, ...],
    ) -> tuple[Any, ...]:
        instances: list[Any] = []
        for candidate in self._discovered(ServiceKey(element), path, requested=key):
            member_key = ServiceKey(candidate.implementation)
            if member_key in path:
                raise CircularDependencyError(member_key, path)
            create = functools.partial(
                self._construct,
                candidate.implementation,
                member_key,
                (*path, member_key),
            )
            instances.append(self._singletons.get_or_create(member_key, create))
        return tuple(instances)

    def _provide(self, key: ServiceKey, path: tuple[ServiceKey, ...]) -> Any:
        binding = self._bindings.get(key)
        if isinstance(binding, ToInstance):
            logger.debug("Resolved %s from instance binding", key)
            return binding.instance
        if isinstance(binding, ToImplementation):
            logger.debug("Resolved %s from binding to %s", key, binding.implementation.__qualname__)
            return self._construct(binding.implementation, key, path)

        if key.component is None and auto_factory_method(key.value) is not None:
            return self._factories.generate(key.value, key, path)

        candidates = self._discovered(key, path)
        if candidates:
            implementation = candidates[0].implementation
            logger.debug("Resolved %s from discovered %s", key, implementation.__qualname__)
            return self._construct(implementation, key, path)

        default = self._defaults.get(key)
        if default is not None:
            logger.debug("Resolved %s from default %s", key, default.implementation.__qualname__)
            return self._construct(default.implementation, key, path)

        source = self._implicit.source_for(key)
        if source is ImplicitSource.SETTINGS:
            logger.debug("Resolved %s from settings environment", key)
            try:
                return load_settings(key.value)
            except Exception as e:
                raise InstantiationError(key.value, e, key, path) from e
        if source is ImplicitSource.CONCRETE:
            logger.debug("Resolved %s by constructing it as a concrete type", key)
            return self._construct(key.value, key, path)
        raise NotBoundError(key, path)

    def _implementation_for(self, key: ServiceKey, path: tuple[ServiceKey, ...]) -> type[Any]:
        binding = self._bindings.get(key)
        if isinstance(binding, ToInstance):
            msg = f"{key} is bound to an instance and cannot be built by a factory"
            raise FactoryError(msg, key, path)
        if isinstance(binding, ToImplementation):
            return binding.implementation
        candidates = self._discovered(key, path)
        if candidates:
            return candidates[0].implementation
        default = self._defaults.get(key)
        if default is not None:
            return default.implementation
        if is_constructible(key.value):
            return key.value
        raise NotBoundError(key, path)

    def _discovered(
        self,
        key: ServiceKey,
        path: tuple[ServiceKey, ...],
        *,
        requested: ServiceKey | None = None,
    ) -> tuple[DiscoveredCandidate, ...]:
        capability = key.value
        if not is_runtime_class(capability):
            return ()
        try:
            return self._candidates.get_or_create(
                capability,
                functools.partial(self._query_discovery, capability),
            )
        except DiscoveryError as e:
            raise PluginLoadError(e, requested or key, path) from e

    def _query_discovery(self, capability: type[Any]) -> tuple[DiscoveredCandidate, ...]:
        candidates = sort_candidates(self._discovery.find(capability))
        logger.debug(
            "Discovered %d implementation(s) of %s: %s",
            len(candidates),
            capability.__qualname__,
            [candidate.implementation.__qualname__ for candidate in candidates],
        )
        return candidates

    def _construct(
        self,
        implementation: type[Any],
        key: ServiceKey,
        path: tuple[ServiceKey, ...],
    ) -> Any:
        spec = self._selector.select(implementation, key, path)
        return self._construct_spec(spec, key, path)

    def _construct_spec(
        self,
        spec: ConstructorSpec,
        key: ServiceKey,
        path: tuple[ServiceKey, ...],
        supplied: Mapping[str, Any] | None = None,
    ) -> Any:
        arguments: dict[str, Any] = {}
        for point in spec.parameters:
            if supplied is not None and point.name in supplied:
                arguments[point.name] = supplied[point.name]
                continue
            if point.lazy:
                arguments[point.name] = functools.partial(self.get_instance, point.key)
                continue
            try:
                if point.has_default and not self.has_provider(point.key):
                    continue
                arguments[point.name] = self._resolve(point.key, path)
            except ResolutionFailure as e:
                if point.has_default and self._cannot_build_implicitly(point.key, e):
                    logger.debug(
                        "Using the default of parameter %r of %s: %s",
                        point.name,
                        spec.implementation.__qualname__,
                        e,
                    )
                    continue
                raise DependencyResolutionError(
                    spec.implementation,
                    point.name,
                    point.key,
                    (*path, point.key),
                ) from e

        try:
            return spec.invoke(arguments)
        except ResolutionFailure:
            raise
        except Exception as e:
            raise InstantiationError(spec.implementation, e, key, path) from e

    def _cannot_build_implicitly(self, key: ServiceKey, error: ResolutionFailure) -> bool:
        """Return whether ``error`` only means the implicit type of ``key`` is unbuildable.

        True when ``key`` has no binding, plugin or default, and either its own
        constructor cannot be selected or one of its constructor parameters has
        no source. Failures deeper in the graph, and cycles, are not excused.
        """
        if isinstance(error, (CircularDependencyError, PluginLoadError)):
            return False
        if self._has_declared_provider(key, ()):
            return False
        if isinstance(error, ConstructorSelectionError):
            return error.key == key
        if isinstance(error, DependencyResolutionError) and error.path[-2:-1] == (key,):
            return isinstance(error.__cause__, (NotBoundError, ConstructorSelectionError))
        return False
