from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterator
from typing import Any, cast, get_type_hints

import pytest

from wireplug.injector import Injector, InjectorBuilder
from wireplug.markers import is_injected_annotation, strip_injected_annotation

_WIREPLUG_INJECTOR_ATTR = "_wireplug_injector"
_WIREPLUG_INJECTED_PARAMETERS_ATTR = "__wireplug_pytest_injected_parameters__"


@pytest.fixture()
def wireplug_builder() -> InjectorBuilder:
    """Create the builder the per-test injector is built from.

    Override this fixture to add bindings or to pass a discovery source.

    Returns:
        A new ``InjectorBuilder`` with default options.

    """
    return Injector.builder()


@pytest.fixture()
def wireplug_injector(wireplug_builder: InjectorBuilder) -> Injector:
    """Build a per-test injector; ``Injected[...]`` test parameters resolve from it."""
    return wireplug_builder.build()


@pytest.fixture(autouse=True)
def _wireplug_state(request: pytest.FixtureRequest) -> None:
    """Attach the injector to test items that declare ``Injected[...]`` parameters."""
    function = getattr(request.node, "obj", None)
    if function is None or not getattr(function, _WIREPLUG_INJECTED_PARAMETERS_ATTR, None):
        return
    node = cast("Any", request.node)
    setattr(node, _WIREPLUG_INJECTOR_ATTR, request.getfixturevalue("wireplug_injector"))


def injected_parameters(function: Callable[..., Any]) -> dict[str, Any]:
    """Map parameter names annotated ``Injected[T]`` to their dependency keys."""
    try:
        type_hints = get_type_hints(function, include_extras=True)
    except (TypeError, NameError):
        return {}
    return {
        name: strip_injected_annotation(hint)
        for name, hint in type_hints.items()
        if name != "return" and is_injected_annotation(hint)
    }


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide ``Injected[...]`` parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names, so the signature
    of a test using injection is narrowed to its remaining parameters.

    Returns:
        ``None`` to continue default collection flow.

    """
    if not callable(obj) or not collector.istestfunction(obj, name):
        return None

    function = cast("Callable[..., Any]", obj)
    injected = injected_parameters(function)
    if not injected:
        return None

    signature = inspect.signature(function)
    obj_as_any = cast("Any", obj)
    obj_as_any.__dict__[_WIREPLUG_INJECTED_PARAMETERS_ATTR] = injected
    obj_as_any.__signature__ = signature.replace(
        parameters=[
            parameter
            for parameter in signature.parameters.values()
            if parameter.name not in injected
        ],
    )
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Supply ``Injected[...]`` parameters from the test's injector while it runs."""
    original_callable = cast("Callable[..., Any]", pyfuncitem.obj)
    injected = cast(
        "dict[str, Any] | None",
        getattr(original_callable, _WIREPLUG_INJECTED_PARAMETERS_ATTR, None),
    )
    injector = cast("Injector | None", getattr(pyfuncitem, _WIREPLUG_INJECTOR_ATTR, None))
    if not injected or injector is None:
        yield
        return

    resolved = {name: injector.get_instance(key) for name, key in injected.items()}
    pyfuncitem.obj = functools.partial(original_callable, **resolved)
    try:
        yield
    finally:
        pyfuncitem.obj = original_callable
