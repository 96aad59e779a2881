"""Tests for resolution precedence and singleton caching."""

from abc import ABC, abstractmethod
from typing import Annotated, Protocol

import pytest

from wireplug import (
    Component,
    Injector,
    InjectorBuilder,
    NotBoundError,
    ResolutionFailure,
    ServiceKey,
    ServiceRegistry,
)


class Thing(ABC):
    @abstractmethod
    def name(self) -> str: ...


class MyThing(Thing):
    def name(self) -> str:
        return "mine"


class ThingFromServiceConfig(Thing):
    def name(self) -> str:
        return "from service config"


class Umm(Protocol):
    pass


class MyUmm:
    def __init__(self, thing: Thing) -> None:
        self.thing = thing


class OtherUmm:
    pass


@pytest.fixture()
def registry_with_thing(registry: ServiceRegistry) -> ServiceRegistry:
    registry.register(Thing, ThingFromServiceConfig)
    return registry


class TestExplicitBinding:
    def test_provides_bound_implementation(self, builder: InjectorBuilder) -> None:
        injector = builder.bind(Thing, MyThing).build()

        assert isinstance(injector.get_instance(Thing), MyThing)

    def test_uses_same_instance(self, builder: InjectorBuilder) -> None:
        injector = builder.bind(Thing, MyThing).build()

        thing = injector.get_instance(Thing)

        assert injector.get_instance(Thing) is thing

    def test_wins_over_discovery_and_default(
        self,
        registry_with_thing: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.bind(Thing, MyThing).bind_default(Thing, ThingFromServiceConfig).build()

        assert type(injector.get_instance(Thing)) is MyThing

    def test_injects_constructor_dependencies(self, builder: InjectorBuilder) -> None:
        injector = builder.bind(Thing, MyThing).bind(Umm, MyUmm).build()

        umm = injector.get_instance(Umm)

        assert isinstance(umm, MyUmm)
        assert isinstance(umm.thing, MyThing)
        assert umm.thing is injector.get_instance(Thing)

    def test_instance_binding_returns_instance_itself(self, builder: InjectorBuilder) -> None:
        thing = MyThing()
        injector = builder.bind(Thing, thing).build()

        assert injector.get_instance(Thing) is thing

    def test_bind_instance_binds_class_objects_as_values(self, builder: InjectorBuilder) -> None:
        injector = builder.bind_instance(type, MyThing).build()

        assert injector.get_instance(type) is MyThing

    def test_rebinding_replaces_previous_rule(self, builder: InjectorBuilder) -> None:
        builder.bind(Thing, ThingFromServiceConfig)
        builder.bind(Thing, MyThing)

        assert isinstance(builder.build().get_instance(Thing), MyThing)

    def test_built_injector_ignores_later_bindings(self, builder: InjectorBuilder) -> None:
        injector = builder.bind(Thing, MyThing).build()
        builder.bind(Thing, ThingFromServiceConfig)

        assert isinstance(injector.get_instance(Thing), MyThing)
        assert isinstance(builder.build().get_instance(Thing), ThingFromServiceConfig)


class TestDiscovery:
    def test_provides_discovered_implementation(
        self,
        registry_with_thing: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.build()

        assert isinstance(injector.get_instance(Thing), ThingFromServiceConfig)

    def test_uses_same_instance(
        self,
        registry_with_thing: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.build()

        thing = injector.get_instance(Thing)

        assert injector.get_instance(Thing) is thing

    def test_discovered_candidate_shadows_default(
        self,
        registry_with_thing: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.bind_default(Thing, MyThing).bind_default(Umm, OtherUmm).build()

        assert isinstance(injector.get_instance(Thing), ThingFromServiceConfig)

    def test_highest_priority_candidate_wins(
        self,
        registry: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        registry.register(Thing, MyThing, priority=-1)
        registry.register(Thing, ThingFromServiceConfig, priority=3)

        assert isinstance(builder.build().get_instance(Thing), ThingFromServiceConfig)

    def test_discovery_is_qualifier_agnostic(
        self,
        registry_with_thing: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.build()

        qualified = injector.get_instance(Annotated[Thing, Component("primary")])

        assert isinstance(qualified, ThingFromServiceConfig)
        assert qualified is not injector.get_instance(Thing)

    def test_discovery_is_queried_once_per_capability(self) -> None:
        calls: list[type] = []

        class CountingSource:
            def find(self, capability: type) -> tuple:
                calls.append(capability)
                return ()

        injector = Injector.builder(discovery=CountingSource()).bind_default(Thing, MyThing).build()

        injector.get_instance(Thing)
        injector.get_instance(Annotated[Thing, Component("other")])
        injector.has_provider(Thing)

        assert calls == [Thing]


class TestDefaultBinding:
    def test_provides_default_implementation(self, builder: InjectorBuilder) -> None:
        injector = builder.bind_default(Umm, OtherUmm).build()

        assert isinstance(injector.get_instance(Umm), OtherUmm)

    def test_uses_same_instance(self, builder: InjectorBuilder) -> None:
        injector = builder.bind_default(Umm, OtherUmm).build()

        assert injector.get_instance(Umm) is injector.get_instance(Umm)

    def test_default_for_other_key_is_not_used(self, builder: InjectorBuilder) -> None:
        injector = builder.bind_default(Umm, OtherUmm).build()

        with pytest.raises(NotBoundError):
            injector.get_instance(Thing)


class TestMissingProvider:
    def test_raises_when_nothing_provides_interface(self, builder: InjectorBuilder) -> None:
        injector = builder.build()

        with pytest.raises(ResolutionFailure) as exc_info:
            injector.get_instance(Umm)

        assert exc_info.value.key == ServiceKey(Umm)
        assert "No binding" in str(exc_info.value)

    def test_failure_does_not_break_other_resolutions(self, builder: InjectorBuilder) -> None:
        injector = builder.bind(Thing, MyThing).build()

        with pytest.raises(NotBoundError):
            injector.get_instance(Umm)

        assert isinstance(injector.get_instance(Thing), MyThing)

    def test_strict_mode_rejects_unbound_concrete_class(
        self,
        strict_builder: InjectorBuilder,
    ) -> None:
        with pytest.raises(NotBoundError):
            strict_builder.build().get_instance(MyThing)

    def test_concrete_class_is_constructed_as_itself(self, builder: InjectorBuilder) -> None:
        injector = builder.build()

        assert isinstance(injector.get_instance(MyThing), MyThing)
        assert injector.get_instance(MyThing) is injector.get_instance(MyThing)

    def test_qualified_concrete_key_is_not_autoregistered(self, builder: InjectorBuilder) -> None:
        with pytest.raises(NotBoundError):
            builder.build().get_instance(Annotated[MyThing, Component("x")])

    def test_builtin_types_are_not_autoregistered(self, builder: InjectorBuilder) -> None:
        with pytest.raises(NotBoundError):
            builder.build().get_instance(str)


class TestQualifiers:
    def test_qualified_bindings_are_independent(self, builder: InjectorBuilder) -> None:
        injector = (
            builder.bind(Annotated[str, Component("greeting")], "hello")
            .bind(Annotated[str, Component("farewell")], "bye")
            .build()
        )

        assert injector.get_instance(Annotated[str, Component("greeting")]) == "hello"
        assert injector.get_instance(Annotated[str, Component("farewell")]) == "bye"
        with pytest.raises(NotBoundError):
            injector.get_instance(str)

    def test_unqualified_binding_does_not_satisfy_qualified_key(
        self,
        strict_builder: InjectorBuilder,
    ) -> None:
        injector = strict_builder.bind(Thing, MyThing).build()

        with pytest.raises(NotBoundError):
            injector.get_instance(Annotated[Thing, Component("named")])

    def test_service_key_and_annotated_token_are_interchangeable(
        self,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.bind(ServiceKey(str, Component("name")), "value").build()

        assert injector.get_instance(Annotated[str, Component("name")]) == "value"


class TestHasProvider:
    def test_reports_sources_without_constructing(self, builder: InjectorBuilder) -> None:
        class Counted:
            created = 0

            def __init__(self) -> None:
                Counted.created += 1

        injector = builder.bind(Thing, MyThing).build()

        assert injector.has_provider(Thing)
        assert injector.has_provider(Counted)
        assert not injector.has_provider(Umm)
        assert Counted.created == 0

    def test_collections_always_have_a_provider(self, builder: InjectorBuilder) -> None:
        assert builder.build().has_provider(list[Umm])
