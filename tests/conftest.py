"""Shared pytest fixtures for wireplug tests."""

import pytest

from wireplug import Injector, InjectorBuilder, ServiceRegistry


@pytest.fixture()
def registry() -> ServiceRegistry:
    """Empty in-process plugin manifest."""
    return ServiceRegistry()


@pytest.fixture()
def builder(registry: ServiceRegistry) -> InjectorBuilder:
    """Builder discovering plugins from the ``registry`` fixture."""
    return Injector.builder(discovery=registry)


@pytest.fixture()
def strict_builder(registry: ServiceRegistry) -> InjectorBuilder:
    """Builder that never constructs unbound concrete classes."""
    return Injector.builder(discovery=registry, autoregister_concrete_types=False)
