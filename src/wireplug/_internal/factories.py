from __future__ import annotations

import functools
import inspect
import logging
import types
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, get_type_hints

from wireplug.exceptions import FactoryError, InvalidBindingError
from wireplug.registration_decorators import auto_factory_method
from wireplug.service_key import ServiceKey

if TYPE_CHECKING:
    from wireplug._internal.constructors import ConstructorSpec
    from wireplug.injector import Injector

logger = logging.getLogger(__name__)

_SELF_PARAMETER_NAME = "self"


@dataclass(frozen=True, slots=True)
class FactoryPlan:
    """How a generated factory method turns call arguments into a product."""

    product_key: ServiceKey
    constructor: ConstructorSpec
    signature: inspect.Signature
    substitutions: dict[str, str]
    """Constructor parameter name -> factory method parameter name."""


class FactoryGenerator:
    """Synthesize implementations of ``@auto_factory`` interfaces.

    The generated method never caches: each call builds a new product.
    """

    def __init__(self, injector: Injector) -> None:
        self._injector = injector

    def generate(self, interface: type[Any], key: ServiceKey, path: tuple[ServiceKey, ...]) -> Any:
        method_name = auto_factory_method(interface)
        if method_name is None:
            msg = f"{interface.__qualname__} is not decorated with @auto_factory"
            raise FactoryError(msg, key, path)
        method = vars(interface)[method_name]
        plan = self._plan(interface, method, key, path)
        injector = self._injector

        @functools.wraps(method)
        def create(self: Any, *args: Any, **kwargs: Any) -> Any:
            bound = plan.signature.bind(self, *args, **kwargs)
            bound.apply_defaults()
            supplied = {
                parameter: bound.arguments[argument]
                for parameter, argument in plan.substitutions.items()
            }
            return injector._construct_spec(plan.constructor, plan.product_key, (), supplied)

        # wraps() copies the abstract flag of an ABC method along with its metadata.
        create.__isabstractmethod__ = False  # type: ignore[attr-defined]

        namespace: dict[str, Callable[..., Any]] = {method_name: create}
        generated = types.new_class(
            f"Generated{interface.__name__}",
            (interface,),
            exec_body=lambda body: body.update(namespace),
        )
        generated.__module__ = interface.__module__
        logger.debug(
            "Generated assisted factory %s producing %s via %s",
            interface.__qualname__,
            plan.product_key,
            plan.constructor.implementation.__qualname__,
        )
        return generated()

    def _plan(
        self,
        interface: type[Any],
        method: Callable[..., Any],
        key: ServiceKey,
        path: tuple[ServiceKey, ...],
    ) -> FactoryPlan:
        try:
            type_hints = get_type_hints(method, include_extras=True)
            signature = inspect.signature(method)
        except (TypeError, NameError, ValueError) as e:
            msg = f"Cannot read the signature of {interface.__qualname__}.{method.__name__}: {e}"
            raise FactoryError(msg, key, path) from e

        product = type_hints.get("return")
        if product is None:
            msg = f"{interface.__qualname__}.{method.__name__} must annotate its return type"
            raise FactoryError(msg, key, path)

        arguments: list[tuple[str, ServiceKey]] = []
        for name, parameter in signature.parameters.items():
            if name == _SELF_PARAMETER_NAME:
                continue
            if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                msg = f"{interface.__qualname__}.{method.__name__} cannot take *args or **kwargs"
                raise FactoryError(msg, key, path)
            if name not in type_hints:
                msg = f"Factory parameter {name!r} of {interface.__qualname__} needs a type annotation"
                raise FactoryError(msg, key, path)
            try:
                arguments.append((name, ServiceKey.from_value(type_hints[name])))
            except InvalidBindingError as e:
                raise FactoryError(str(e), key, path) from e

        product_key = ServiceKey.from_value(product)
        product_path = (*path, product_key)
        implementation = self._injector._implementation_for(product_key, product_path)
        constructor = self._injector._selector.select(implementation, product_key, product_path)

        substitutions: dict[str, str] = {}
        unused = list(arguments)
        for point in constructor.parameters:
            match = next((item for item in unused if item[1] == point.key), None)
            if match is not None:
                substitutions[point.name] = match[0]
                unused.remove(match)
        if unused:
            names = ", ".join(repr(name) for name, _ in unused)
            msg = (
                f"Factory parameter(s) {names} of {interface.__qualname__} match no "
                f"constructor parameter of {implementation.__qualname__}"
            )
            raise FactoryError(msg, key, path)

        return FactoryPlan(
            product_key=product_key,
            constructor=constructor,
            signature=signature,
            substitutions=substitutions,
        )
