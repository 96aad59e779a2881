"""Tests for generated assisted factories."""

from abc import ABC, abstractmethod
from typing import Annotated, Protocol

import pytest

from wireplug import (
    Component,
    FactoryError,
    InjectorBuilder,
    InvalidFactoryError,
    ServiceRegistry,
    auto_factory,
)

Title = Annotated[str, Component("title")]


class Clock:
    pass


class Report:
    def __init__(self, clock: Clock, title: str, pages: int) -> None:
        self.clock = clock
        self.title = title
        self.pages = pages


@auto_factory
class ReportFactory(Protocol):
    def create(self, title: str, pages: int = 1) -> Report: ...


class Document(ABC):
    title: str


class Memo(Document):
    def __init__(self, title: Title, clock: Clock) -> None:
        self.title = title
        self.clock = clock


@auto_factory
class DocumentFactory(ABC):
    @abstractmethod
    def build(self, title: Title) -> Document: ...


class Pair:
    def __init__(self, first: str, second: str) -> None:
        self.first = first
        self.second = second


@auto_factory
class PairFactory(Protocol):
    def make(self, first: str, second: str) -> Pair: ...


@auto_factory
class MismatchedFactory(Protocol):
    def create(self, size: float) -> Report: ...


@auto_factory
class InstanceBackedFactory(Protocol):
    def create(self, title: str) -> Clock: ...


class TestGeneratedFactory:
    def test_each_call_builds_a_new_instance(self, builder: InjectorBuilder) -> None:
        factory = builder.build().get_instance(ReportFactory)

        first = factory.create("q3", 4)
        second = factory.create("q3", 4)

        assert first is not second
        assert (first.title, first.pages) == ("q3", 4)
        assert (second.title, second.pages) == ("q3", 4)

    def test_other_dependencies_come_from_the_injector(self, builder: InjectorBuilder) -> None:
        injector = builder.build()
        factory = injector.get_instance(ReportFactory)

        report = factory.create("q3")

        assert report.clock is injector.get_instance(Clock)
        assert report.pages == 1

    def test_keyword_arguments_are_supported(self, builder: InjectorBuilder) -> None:
        factory = builder.build().get_instance(ReportFactory)

        report = factory.create(pages=9, title="annual")

        assert (report.title, report.pages) == ("annual", 9)

    def test_factory_object_is_a_singleton(self, builder: InjectorBuilder) -> None:
        injector = builder.build()

        factory = injector.get_instance(ReportFactory)

        assert injector.get_instance(ReportFactory) is factory
        assert ReportFactory in type(factory).__mro__

    def test_abc_factory_builds_bound_implementation_with_qualifier(
        self,
        builder: InjectorBuilder,
    ) -> None:
        injector = builder.bind(Document, Memo).build()

        memo = injector.get_instance(DocumentFactory).build("minutes")

        assert isinstance(memo, Memo)
        assert memo.title == "minutes"
        assert memo.clock is injector.get_instance(Clock)

    def test_product_implementation_may_be_discovered(
        self,
        registry: ServiceRegistry,
        builder: InjectorBuilder,
    ) -> None:
        registry.register(Document, Memo)

        assert isinstance(builder.build().get_instance(DocumentFactory).build("t"), Memo)

    def test_arguments_of_same_type_are_substituted_in_order(
        self,
        builder: InjectorBuilder,
    ) -> None:
        pair = builder.build().get_instance(PairFactory).make("left", "right")

        assert (pair.first, pair.second) == ("left", "right")

    def test_explicit_binding_replaces_generated_factory(self, builder: InjectorBuilder) -> None:
        class HandWritten:
            def create(self, title: str, pages: int = 1) -> Report:
                return Report(Clock(), title, pages)

        handwritten = HandWritten()
        injector = builder.bind(ReportFactory, handwritten).build()

        assert injector.get_instance(ReportFactory) is handwritten


class TestFactoryErrors:
    def test_unmatched_factory_argument_fails(self, builder: InjectorBuilder) -> None:
        with pytest.raises(FactoryError, match="'size'"):
            builder.build().get_instance(MismatchedFactory)

    def test_instance_bound_product_cannot_be_built(self, builder: InjectorBuilder) -> None:
        injector = builder.bind(Clock, Clock()).build()

        with pytest.raises(FactoryError, match="bound to an instance"):
            injector.get_instance(InstanceBackedFactory)

    def test_interface_needs_exactly_one_method(self) -> None:
        with pytest.raises(InvalidFactoryError, match="exactly one public method"):

            @auto_factory
            class TwoMethods(Protocol):
                def create(self) -> Report: ...

                def other(self) -> Report: ...

    def test_interface_must_be_a_class(self) -> None:
        with pytest.raises(InvalidFactoryError):
            auto_factory(lambda: None)  # type: ignore[arg-type]

    def test_return_annotation_is_required(self, builder: InjectorBuilder) -> None:
        @auto_factory
        class Unannotated(Protocol):
            def create(self, title: str): ...  # type: ignore[no-untyped-def]  # noqa: ANN201

        with pytest.raises(FactoryError, match="return type"):
            builder.build().get_instance(Unannotated)
