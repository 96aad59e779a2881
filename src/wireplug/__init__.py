"""Dependency resolution and plugin discovery container.

Exports:
- ``Injector`` / ``InjectorBuilder``: bind keys, then resolve them to singletons.
- ``ServiceKey`` / ``Component``: capability keys, optionally qualified.
- ``ServiceRegistry`` / ``EntryPointDiscovery`` / ``ChainedDiscovery``: plugin sources.
- ``inject``, ``constructor``, ``auto_factory``, ``priority``: class decorators.
- ``All``, ``Provider``, ``Injected``: annotation markers.
"""

from wireplug.bindings import ToImplementation, ToInstance
from wireplug.discovery import (
    ChainedDiscovery,
    DiscoveredCandidate,
    DiscoverySource,
    EntryPointDiscovery,
    ServiceRegistry,
    priority,
)
from wireplug.exceptions import (
    CircularDependencyError,
    ConstructorSelectionError,
    DependencyResolutionError,
    DiscoveryError,
    FactoryError,
    InstantiationError,
    InvalidBindingError,
    InvalidFactoryError,
    NotBoundError,
    PluginLoadError,
    ResolutionFailure,
    WireplugError,
)
from wireplug.injector import Injector, InjectorBuilder
from wireplug.lock_mode import LockMode
from wireplug.markers import All, Injected, Provider
from wireplug.registration_decorators import auto_factory, constructor, inject
from wireplug.service_key import Component, ServiceKey

__all__ = [
    "All",
    "ChainedDiscovery",
    "CircularDependencyError",
    "Component",
    "ConstructorSelectionError",
    "DependencyResolutionError",
    "DiscoveredCandidate",
    "DiscoveryError",
    "DiscoverySource",
    "EntryPointDiscovery",
    "FactoryError",
    "Injected",
    "Injector",
    "InjectorBuilder",
    "InstantiationError",
    "InvalidBindingError",
    "InvalidFactoryError",
    "LockMode",
    "NotBoundError",
    "PluginLoadError",
    "Provider",
    "ResolutionFailure",
    "ServiceKey",
    "ServiceRegistry",
    "ToImplementation",
    "ToInstance",
    "WireplugError",
    "auto_factory",
    "constructor",
    "inject",
    "priority",
]
