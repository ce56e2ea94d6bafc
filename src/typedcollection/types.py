"""Type declarations and type-checking helpers used by collections.

These are not usually needed by end users, who configure a collection with a
plain class (or a dotted import path) and let the collection build its own
:class:`TypeConstraint`. They are public so that other collection
implementations can share the same element-checking rules.
"""

import builtins
import importlib
import logging
from typing import Any, Callable, Mapping, Optional, Union

import attrs
import numpy as np
import pandas as pd
from typing_extensions import Final, TypeGuard

from . import errors
from . import options

logger = logging.getLogger(__name__)

Key = Union[int, str]
"""The type of a collection key. Integers are the "default slot" keys."""

TypeIdentifier = Union[type, str]
"""Either a class (or ABC / runtime-checkable protocol) or its import path."""

Comparator = Callable[[Any, Any], int]
"""A three-way comparison function, negative/zero/positive like ``cmp``."""

_PRIMITIVE_TYPES: Final = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    list,
    tuple,
    dict,
    set,
    frozenset,
    np.generic,
)
"""Values of these types are "not objects" for the purpose of validation."""

_PANDAS_TYPES: Final = (pd.Series, pd.DataFrame, pd.Index)


def is_stringy(it: object) -> TypeGuard[Union[str, bytes]]:
    """Returns true for str and bytes.

    Both are iterable, one character at a time, which is never what a caller
    means when passing one where entries or a list of keys are expected.
    """
    return isinstance(it, (str, bytes))


def as_key(key: object) -> Key:
    """Checks that ``key`` may index a collection, converting numpy integers.

    ``bool`` is technically an ``int`` but is never a sensible key.

    :raises TypeError: For anything that is not a string or an integer.
    """
    if isinstance(key, (bool, np.bool_)):
        raise TypeError(f"Collection keys may not be booleans, got {key!r}")
    if isinstance(key, str):
        return key
    if isinstance(key, (int, np.integer)):
        return int(key)
    raise TypeError(f"Collection keys must be int or str, not {typename(key)}")


def is_primitive(value: object) -> bool:
    """Returns true for scalars and builtin containers.

    These are the values that skip element-type checks under the ``"bypass"``
    primitive policy. numpy scalars count as primitives; numpy arrays and
    pandas objects do not.
    """
    return isinstance(value, _PRIMITIVE_TYPES)


def values_equal(left: Any, right: Any) -> bool:
    """Compares two collection values by value rather than identity.

    Array-likes that do not return a single bool from ``==`` are compared
    with the appropriate library function instead, including when they are
    held inside lists, tuples or mappings.
    """
    if isinstance(left, (list, tuple)) and type(left) is type(right):
        return len(left) == len(right) and all(
            values_equal(l_item, r_item) for l_item, r_item in zip(left, right)
        )
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return len(left) == len(right) and all(
            key in right and values_equal(left[key], right[key]) for key in left
        )
    if isinstance(left, np.ndarray) or isinstance(right, np.ndarray):
        return (
            isinstance(left, np.ndarray)
            and isinstance(right, np.ndarray)
            and bool(np.array_equal(left, right))
        )
    if isinstance(left, _PANDAS_TYPES) or isinstance(right, _PANDAS_TYPES):
        return type(left) is type(right) and bool(left.equals(right))
    return bool(left == right)


def typename(x: object) -> str:
    return type(x).__qualname__


def resolve_type(identifier: TypeIdentifier) -> type:
    """Turns a type identifier into a class that ``isinstance`` accepts.

    :param identifier: A class, or a dotted path like ``"pkg.module.Class"``.
        A bare name like ``"int"`` is looked up in ``builtins``.
    :raises errors.ConfigurationError: If the identifier cannot be imported,
        does not name a class, or names a protocol that is not
        runtime-checkable.
    """
    if isinstance(identifier, str):
        found = _import_path(identifier)
    else:
        found = identifier
    if not isinstance(found, type):
        raise errors.ConfigurationError(
            identifier, f"{identifier!r} does not name a class"
        )
    try:
        # Protocols without @runtime_checkable refuse isinstance checks.
        isinstance(None, found)
    except TypeError as te:
        raise errors.ConfigurationError(
            identifier, f"{found.__qualname__} cannot be used in isinstance checks"
        ) from te
    return found


def _import_path(path: str) -> object:
    parts = path.split(".")
    if not all(parts):
        raise errors.ConfigurationError(path, f"{path!r} is not a valid import path")
    if len(parts) == 1:
        try:
            return getattr(builtins, path)
        except AttributeError as ae:
            raise errors.ConfigurationError(
                path, f"Class {path} could not be found"
            ) from ae
    # Try the longest importable module prefix, then walk the attributes.
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            found: object = importlib.import_module(module_name)
        except ImportError:
            continue
        try:
            for attr in parts[split:]:
                found = getattr(found, attr)
        except AttributeError as ae:
            raise errors.ConfigurationError(
                path, f"Class {path} could not be found"
            ) from ae
        return found
    raise errors.ConfigurationError(path, f"Class {path} could not be found")


@attrs.define(frozen=True)
class TypeConstraint:
    """The resolved element-type rule of a collection.

    Resolution happens once, when the constraint is built, so that each
    insertion is only an ``isinstance`` check.
    """

    element_type: Optional[type] = None
    """The class every checked value must be an instance of. ``None`` means
    that every value is accepted."""

    primitives: options.PrimitivePolicy = attrs.field(
        default="bypass",
        validator=attrs.validators.in_(options.PRIMITIVE_POLICIES),
    )
    """Whether primitive values skip the check (``"bypass"``) or not."""

    @classmethod
    def resolve(
        cls,
        identifier: Optional[TypeIdentifier],
        primitives: options.PrimitivePolicy = "bypass",
    ) -> "TypeConstraint":
        if identifier is None:
            return cls(None, primitives)
        element_type = resolve_type(identifier)
        logger.debug(
            "resolved element type %r to %s.%s",
            identifier,
            element_type.__module__,
            element_type.__qualname__,
        )
        return cls(element_type, primitives)

    @property
    def name(self) -> Optional[str]:
        """The display name of the element type, if there is one."""
        if self.element_type is None:
            return None
        return self.element_type.__qualname__

    def accepts(self, value: object) -> bool:
        if self.element_type is None:
            return True
        if self.primitives == "bypass" and is_primitive(value):
            return True
        return isinstance(value, self.element_type)

    def check(self, value: object) -> None:
        """Raises if ``value`` may not be stored under this constraint."""
        if self.accepts(value):
            return
        assert self.name is not None
        actual = typename(value)
        logger.debug("rejected %s value; expected %s", actual, self.name)
        raise errors.InvalidElementError(self.name, actual)

    def with_primitives(self, primitives: options.PrimitivePolicy) -> "TypeConstraint":
        return attrs.evolve(self, primitives=primitives)
