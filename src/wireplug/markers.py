from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Annotated, Any, NamedTuple, TypeVar, Union, get_args, get_origin

T = TypeVar("T")
_ANNOTATED_MARKER_MIN_ARGS = 2
_COLLECTION_ORIGINS: tuple[Any, ...] = (list, tuple, Sequence)


class InjectedMarker:
    """A marker used to indicate a parameter should be injected from the injector.

    Used by the pytest plugin to find the test parameters it has to resolve
    and hide from fixture lookup.
    """


class ProviderMarker(NamedTuple):
    """Marker for lazy injector-bound provider callables."""

    dependency_key: Any


if TYPE_CHECKING:
    Injected = Union[T, T]  # noqa: UP007,PYI016
    """Mark a test parameter for injector-driven resolution.

    At runtime ``Injected[T]`` becomes ``Annotated[T, InjectedMarker()]``.
    """

    Provider = Callable[[], T]
    """Mark a constructor parameter as a lazy provider callable.

    At runtime ``Provider[T]`` becomes ``Annotated[T, ProviderMarker(...)]`` and is
    injected as ``Callable[[], T]`` calling ``get_instance(T)`` on demand.
    """

    All = tuple[T, ...]
    """Request every discovered implementation of a capability.

    ``All[T]`` is ``tuple[T, ...]`` and resolves to a tuple ordered by
    descending plugin priority. It is empty when nothing is discovered.
    """

else:

    class Injected:
        """Mark a test parameter for injector-driven resolution.

        At runtime ``Injected[T]`` resolves to ``Annotated[T, InjectedMarker()]``.

        Examples:
            .. code-block:: python

                def test_plugins(greeter: Injected[Greeter]) -> None:
                    assert greeter.greet("x")

        """

        def __class_getitem__(cls, item: T) -> Annotated[T, InjectedMarker]:
            if get_origin(item) is Annotated:
                inner, *metadata = get_args(item)
                return build_annotated_key((inner, *metadata, InjectedMarker()))
            return build_annotated_key((item, InjectedMarker()))

    class Provider:
        """Mark a constructor parameter for lazy injector-bound provider injection."""

        def __class_getitem__(cls, item: T) -> Annotated[T, ProviderMarker]:
            marker = ProviderMarker(dependency_key=item)
            if get_origin(item) is Annotated:
                inner, *metadata = get_args(item)
                return build_annotated_key((inner, *metadata, marker))
            return build_annotated_key((item, marker))

    class All:
        """Request every discovered implementation of a capability.

        At runtime ``All[T]`` is ``tuple[T, ...]``; qualifiers on ``T`` are
        dropped because discovery is qualifier-agnostic.
        """

        def __class_getitem__(cls, item: Any) -> Any:
            if get_origin(item) is Annotated:
                item = get_args(item)[0]
            return tuple[item, ...]


def is_injected_annotation(annotation: Any) -> bool:
    """Return True when annotation is Annotated[..., InjectedMarker()]."""
    if get_origin(annotation) is not Annotated:
        return False
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return False
    return any(isinstance(item, InjectedMarker) for item in annotation_args[1:])


def strip_injected_annotation(annotation: Any) -> Any:
    """Strip the Injected marker while preserving other Annotated metadata."""
    if not is_injected_annotation(annotation):
        return annotation
    parameter_type, *metadata = get_args(annotation)
    filtered_metadata = tuple(item for item in metadata if not isinstance(item, InjectedMarker))
    if not filtered_metadata:
        return parameter_type
    return build_annotated_key((parameter_type, *filtered_metadata))


def is_provider_annotation(annotation: Any) -> bool:
    """Return True when annotation is Annotated[..., ProviderMarker(...)]."""
    return _extract_provider_marker(annotation) is not None


def strip_provider_annotation(annotation: Any) -> Any:
    """Return inner dependency key for Provider annotations."""
    marker = _extract_provider_marker(annotation)
    if marker is None:
        return annotation
    return marker.dependency_key


def collection_element(annotation: Any) -> Any | None:
    """Return ``T`` for ``list[T]``, ``tuple[T, ...]`` and ``Sequence[T]`` requests."""
    origin = get_origin(annotation)
    if origin not in _COLLECTION_ORIGINS:
        return None
    args = get_args(annotation)
    if origin is tuple:
        if len(args) != _ANNOTATED_MARKER_MIN_ARGS or args[1] is not Ellipsis:
            return None
    elif len(args) != 1:
        return None
    element = args[0]
    if get_origin(element) is Annotated:
        element = get_args(element)[0]
    return element


def _extract_provider_marker(annotation: Any) -> ProviderMarker | None:
    if get_origin(annotation) is not Annotated:
        return None
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None
    return next(
        (item for item in annotation_args[1:] if isinstance(item, ProviderMarker)),
        None,
    )


def build_annotated_key(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]
