"""Plugin discovery sources.

A discovery source answers one question: which implementations are declared
for a capability type? The injector asks each capability at most once and
orders the answer with ``sort_candidates``.

Two manifests are provided. ``ServiceRegistry`` is an in-process,
append-only registry filled with the ``@registry.service(...)`` decorator.
``EntryPointDiscovery`` reads the entry points of installed distributions,
one group per capability, named after the capability's ``module.QualName``::

    [project.entry-points."myapp.storage.Storage"]
    s3 = "myapp_s3.storage:S3Storage"

"""

from __future__ import annotations

import logging
import pkgutil
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from importlib import metadata
from typing import Any, Protocol, TypeVar

from wireplug._internal.type_checks import is_runtime_class, qualified_name
from wireplug.exceptions import DiscoveryError

C = TypeVar("C", bound=type[Any])

PRIORITY_ATTR = "__wireplug_priority__"
DEFAULT_PRIORITY = 0

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DiscoveredCandidate:
    """An implementation declared for a capability by a discovery source."""

    implementation: type[Any]
    priority: int = DEFAULT_PRIORITY
    discovery_order: int = 0


class DiscoverySource(Protocol):
    """Supply the implementations declared for a capability type."""

    def find(self, capability: type[Any]) -> Sequence[DiscoveredCandidate]: ...


def priority(value: int) -> Callable[[C], C]:
    """Declare the priority of a plugin implementation.

    Higher priorities win; undecorated implementations have priority ``0``.

    Examples:
        .. code-block:: python

            @priority(-5)
            class FallbackStorage(Storage): ...

    """

    def decorator(implementation: C) -> C:
        setattr(implementation, PRIORITY_ATTR, int(value))
        return implementation

    return decorator


def get_priority(implementation: type[Any]) -> int:
    return vars(implementation).get(PRIORITY_ATTR, DEFAULT_PRIORITY)


def sort_candidates(candidates: Iterable[DiscoveredCandidate]) -> tuple[DiscoveredCandidate, ...]:
    """Order candidates by descending priority, keeping source order among equals."""
    return tuple(sorted(candidates, key=lambda candidate: -candidate.priority))


@dataclass(frozen=True, slots=True)
class _Declaration:
    implementation: type[Any] | str
    priority: int | None


class ServiceRegistry:
    """In-process, append-only manifest of plugin declarations.

    Declarations are keyed by the capability's ``module.QualName`` and kept
    in registration order, which is the discovery order reported to the
    injector. An implementation may be given as a class or as a
    ``"module:QualName"`` string that is imported on first lookup.
    """

    def __init__(self) -> None:
        self._declarations: dict[str, list[_Declaration]] = {}

    def register(
        self,
        capability: type[Any] | str,
        implementation: type[Any] | str,
        *,
        priority: int | None = None,
    ) -> None:
        name = capability if isinstance(capability, str) else qualified_name(capability)
        self._declarations.setdefault(name, []).append(
            _Declaration(implementation=implementation, priority=priority),
        )

    def service(self, capability: type[Any] | str, *, priority: int | None = None) -> Callable[[C], C]:
        """Declare the decorated class as an implementation of ``capability``."""

        def decorator(implementation: C) -> C:
            self.register(capability, implementation, priority=priority)
            return implementation

        return decorator

    def find(self, capability: type[Any]) -> tuple[DiscoveredCandidate, ...]:
        declarations = self._declarations.get(qualified_name(capability), ())
        candidates: list[DiscoveredCandidate] = []
        for order, declaration in enumerate(declarations):
            implementation = _load_implementation(capability, declaration.implementation)
            candidates.append(
                DiscoveredCandidate(
                    implementation=implementation,
                    priority=(
                        get_priority(implementation)
                        if declaration.priority is None
                        else declaration.priority
                    ),
                    discovery_order=order,
                ),
            )
        return tuple(candidates)


class EntryPointDiscovery:
    """Discover plugins declared as entry points of installed distributions.

    The group of a capability is ``group_prefix`` followed by its
    ``module.QualName``. Entry points are reported sorted by name and value,
    so the discovery order does not depend on ``sys.path`` ordering.
    """

    def __init__(self, group_prefix: str = "") -> None:
        self._group_prefix = group_prefix

    def find(self, capability: type[Any]) -> tuple[DiscoveredCandidate, ...]:
        group = f"{self._group_prefix}{qualified_name(capability)}"
        entry_points = sorted(
            metadata.entry_points(group=group),
            key=lambda entry_point: (entry_point.name, entry_point.value),
        )
        candidates: list[DiscoveredCandidate] = []
        for order, entry_point in enumerate(entry_points):
            try:
                implementation = entry_point.load()
            except Exception as e:
                raise DiscoveryError(capability, entry_point.value, e) from e
            _check_class(capability, entry_point.value, implementation)
            candidates.append(
                DiscoveredCandidate(
                    implementation=implementation,
                    priority=get_priority(implementation),
                    discovery_order=order,
                ),
            )
        logger.debug("Entry point group %r declares %d plugin(s)", group, len(candidates))
        return tuple(candidates)


class ChainedDiscovery:
    """Concatenate the candidates of several sources, in source order."""

    def __init__(self, *sources: DiscoverySource) -> None:
        self._sources = sources

    def find(self, capability: type[Any]) -> tuple[DiscoveredCandidate, ...]:
        candidates: list[DiscoveredCandidate] = []
        for source in self._sources:
            for candidate in source.find(capability):
                candidates.append(replace(candidate, discovery_order=len(candidates)))
        return tuple(candidates)


def _load_implementation(capability: type[Any], implementation: type[Any] | str) -> type[Any]:
    if not isinstance(implementation, str):
        return implementation
    try:
        loaded = pkgutil.resolve_name(implementation)
    except (ImportError, AttributeError, ValueError) as e:
        raise DiscoveryError(capability, implementation, e) from e
    _check_class(capability, implementation, loaded)
    return loaded


def _check_class(capability: type[Any], declared: str, loaded: Any) -> None:
    if not is_runtime_class(loaded):
        error = TypeError(f"{declared!r} resolved to {loaded!r}, which is not a class")
        raise DiscoveryError(capability, declared, error)
