import abc
import functools
import json
import logging
import pickle
from types import SimpleNamespace
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

import pandas as pd
from typing_extensions import Final, Self

from . import options
from . import types

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
"""Element type for a collection."""

CollectionInput = Union[Mapping[Any, Any], Iterable[Any]]
"""Anything a collection can be filled from.

Mappings (and other objects with an ``items()`` method, like
``pandas.Series``) provide their own keys. Other iterables are numbered
from zero.
"""


class BaseCollection(MutableMapping[types.Key, _T], metaclass=abc.ABCMeta):
    """An ordered collection keyed by integers and strings.

    The generic type specifies what type the collection may contain. Concrete
    collections may also enforce it at runtime (see :class:`Collection`).

    Mutating methods return ``self`` so that calls may be chained::

        coll.push(a).push(b).remove("old").sort(by_name)

    Everything other than storage, the default-slot bookkeeping and sorting
    is implemented here in terms of the ``MutableMapping`` methods.
    """

    __slots__ = ()

    # Storage

    @abc.abstractmethod
    def set(self, key: Optional[types.Key], value: _T) -> Self:
        """Sets an entry of this collection.

        Setting an existing key replaces the value in place; a new key goes
        at the end. A ``None`` key is the same as :meth:`push`.

        :return: ``self``, to enable method chaining.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def push(self, value: _T) -> Self:
        """Adds a value at the next default (integer) slot.

        :return: ``self``, to enable method chaining.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def prepend(self, value: _T) -> Self:
        """Adds a value at the front of the collection.

        Integer keys are renumbered from zero, with the new value at ``0``.
        String keys are left alone.

        :return: ``self``, to enable method chaining.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def sort(
        self,
        comparator: Optional[types.Comparator] = None,
        *,
        key: Optional[Callable[[_T], Any]] = None,
        reverse: bool = False,
        preserve_keys: bool = False,
    ) -> Self:
        """Sorts the values in place.

        :param comparator: A three-way comparison function. Mutually exclusive
            with ``key``. With neither, values are compared directly.
        :param key: A Python sort-key function.
        :param reverse: Sort in descending order.
        :param preserve_keys: If False (the default), the existing keys are
            discarded and the sorted values are renumbered from zero.
            If True, each key stays with its value.
        :return: ``self``, to enable method chaining.
        """
        raise NotImplementedError()

    def add(self, value: _T) -> Self:
        """Same as :meth:`push`."""
        return self.push(value)

    def append(self, value: _T) -> Self:
        """Same as :meth:`push`."""
        return self.push(value)

    def set_batch(self, entries: CollectionInput) -> Self:
        """Calls :meth:`set` for every entry, in iteration order."""
        for key, value in _entries_of(entries):
            self.set(key, value)
        return self

    def remove(self, key: types.Key) -> Self:
        """Removes the entry at ``key``. Missing keys are ignored."""
        if self.has(key):
            del self[key]
        return self

    def clear(self) -> Self:  # type: ignore[override]
        super().clear()
        return self

    def __setitem__(self, key: types.Key, value: _T) -> None:
        """Sets an entry into this collection. See :meth:`set` for details."""
        self.set(key, value)

    # Queries

    def has(self, key: types.Key) -> bool:
        return key in self

    def contains(self, value: Any) -> bool:
        """Checks whether ``value`` is equal to any stored value."""
        return self.index_of(value) is not None

    def index_of(self, value: Any) -> Optional[types.Key]:
        """Returns the key of the first value equal to ``value``, or None."""
        for key, existing in self.items():
            if types.values_equal(existing, value):
                return key
        return None

    def all(self, keys: Iterable[types.Key] = ()) -> Dict[types.Key, _T]:
        """Returns the entries of this collection as a new ``dict``.

        :param keys: If given, only these keys are included. The result is
            still in the order of the collection; keys that are not present
            are skipped.
        """
        if types.is_stringy(keys):
            raise TypeError(
                f"all() takes an iterable of keys, not a single {types.typename(keys)}"
            )
        wanted = frozenset(keys)
        if not wanted:
            return dict(self.items())
        return {key: value for key, value in self.items() if key in wanted}

    def keys(self) -> List[types.Key]:  # type: ignore[override]
        """The keys of this collection, in order."""
        return list(self)

    def count(self) -> int:
        return len(self)

    def exists(self) -> bool:
        return len(self) > 0

    def is_not_empty(self) -> bool:
        return self.exists()

    def is_empty(self) -> bool:
        return not self.exists()

    # Transformations

    def each(self, callback: Callable[[types.Key, _T], Any]) -> Self:
        """Calls ``callback(key, value)`` for every entry, in order.

        The entries are copied before the walk starts, so the callback may
        modify the collection. The changes are not visited.
        """
        for key, value in list(self.items()):
            callback(key, value)
        return self

    def map(
        self,
        transform: Callable[[_T], Any],
        key_namer: Optional[Callable[[_T], Optional[types.Key]]] = None,
    ) -> "Collection[Any]":
        """Builds a new, untyped collection of transformed values.

        :param transform: Called with each value to make the new value.
        :param key_namer: If given, called with each (original) value to name
            its key in the new collection. Otherwise the original key is kept.
        """
        result: Collection[Any] = Collection()

        def put(key: types.Key, value: _T) -> None:
            new_key = key if key_namer is None else key_namer(value)
            result.set(new_key, transform(value))

        self.each(put)
        return result

    def filter(self, predicate: Callable[[_T, types.Key], Any]) -> "Collection[_T]":
        """Builds a new, untyped collection of the entries to keep.

        An entry is dropped only when ``predicate(value, key)`` returns the
        ``False`` object itself. Other falsy results such as ``0``, ``""`` or
        ``None`` keep the entry.
        """
        kept: Dict[types.Key, _T] = {}

        def check(key: types.Key, value: _T) -> None:
            if predicate(value, key) is not False:
                kept[key] = value

        self.each(check)
        return Collection(kept)

    # Conversions

    def to_dict(self) -> Dict[types.Key, Any]:
        """Converts this collection into a ``dict`` with the same keys.

        Nested collections are converted too. Other containers are returned
        as they are, even if they hold collections.
        """
        return {
            key: value.to_dict() if isinstance(value, BaseCollection) else value
            for key, value in self.items()
        }

    def to_object(self) -> SimpleNamespace:
        """Converts this collection into an attribute-access object.

        Attribute names are the keys as strings, so integer keys can only be
        read with ``getattr`` or ``vars``. Nested collections are converted
        too, as with :meth:`to_dict`.
        """
        result = SimpleNamespace()
        for key, value in self.items():
            if isinstance(value, BaseCollection):
                value = value.to_object()
            setattr(result, str(key), value)
        return result

    def to_json(self) -> str:
        """Encodes this collection as a JSON value.

        Collections keyed exactly ``0..n-1`` become JSON arrays; anything
        else becomes a JSON object with string keys. Since integer keys are
        lost, use :meth:`to_text` for a form that can be read back.
        """
        return json.dumps(_json_shape(self.to_dict()))

    def to_text(self) -> str:
        """Encodes this collection as a JSON list of ``[key, value]`` pairs.

        A nested collection is written as ``[key, pairs, "collection"]``,
        so its integer keys survive as well. Other values must be
        JSON-serializable, and plain dicts among them follow the JSON rules
        for keys. :meth:`from_text` reads it back.
        """
        return json.dumps(_text_pairs(self))

    def from_text(self, text: str) -> Self:
        """Adds the entries encoded by :meth:`to_text` to this collection.

        Nested collections come back as ``dict``s, the same form that
        :meth:`to_dict` and :meth:`deserialize` use.
        """
        entries = _entries_from_text_pairs(json.loads(text))
        logger.debug("restoring %d entries from text", len(entries))
        return self.set_batch(entries)

    def serialize(self) -> bytes:
        """Pickles the :meth:`to_dict` form of this collection."""
        return pickle.dumps(self.to_dict())

    def deserialize(self, data: bytes) -> Self:
        """Adds the entries pickled by :meth:`serialize` to this collection.

        Restored values are validated as usual. As with any pickle, only
        load data from a trusted source.
        """
        entries = pickle.loads(data)
        if not isinstance(entries, Mapping):
            raise TypeError(f"Expected pickled mapping, not {types.typename(entries)}")
        logger.debug("restoring %d pickled entries", len(entries))
        return self.set_batch(entries)

    def to_series(self) -> pd.Series:
        """Converts this collection into an object-dtype ``pandas.Series``.

        The index holds the keys. Nested collections become ``dict``s, as in
        :meth:`to_dict`. A collection can be rebuilt from the series by
        passing it to the constructor.
        """
        entries = self.to_dict()
        return pd.Series(
            list(entries.values()),
            index=pd.Index(list(entries.keys()), dtype=object),
            dtype=object,
        )


class Collection(BaseCollection[_T]):
    """An in-memory ordered collection that can enforce an element type.

    With no element type, anything may be stored. With one, every stored
    object must be an instance of it::

        animals = Collection(element_type=Animal)
        animals.push(Dog())  # OK
        animals.push(Car())  # raises InvalidElementError

    Primitive values (numbers, strings, ``None``, builtin containers and
    numpy scalars) are not checked unless ``primitives="enforce"`` is given.
    """

    __slots__ = ("_entries", "_next_index", "_constraint")

    def __init__(
        self,
        data: CollectionInput = (),
        element_type: Optional[types.TypeIdentifier] = None,
        *,
        primitives: options.PrimitivePolicy = "bypass",
    ):
        """Creates a new Collection.

        :param data: The initial entries. See :data:`CollectionInput`.
        :param element_type: The class, or import path of the class, that
            stored objects must be instances of.
        :param primitives: Whether primitive values are checked against
            ``element_type``. See :data:`options.PrimitivePolicy`.
        """
        self._entries: Dict[types.Key, _T] = {}
        self._next_index = 0
        """The next default slot; one past the highest integer key used."""
        self._constraint = types.TypeConstraint(None, primitives)
        self.set_element_type(element_type).set_batch(data)

    # Configuration

    @property
    def element_type(self) -> Optional[type]:
        """The class that stored objects must be instances of, if any."""
        return self._constraint.element_type

    @element_type.setter
    def element_type(self, value: Optional[types.TypeIdentifier]) -> None:
        self.set_element_type(value)

    def set_element_type(self, element_type: Optional[types.TypeIdentifier]) -> Self:
        """Sets the element type. ``None`` removes the restriction.

        Values that are already stored are not re-checked.

        :raises errors.ConfigurationError: If ``element_type`` does not
            resolve to a class usable with ``isinstance``.
        """
        self._constraint = types.TypeConstraint.resolve(
            element_type, self._constraint.primitives
        )
        return self

    @property
    def primitives(self) -> options.PrimitivePolicy:
        return self._constraint.primitives

    @primitives.setter
    def primitives(self, value: options.PrimitivePolicy) -> None:
        self._constraint = self._constraint.with_primitives(value)

    # Storage

    def set(self, key: Optional[types.Key], value: _T) -> Self:
        self._constraint.check(value)
        if key is None:
            return self._append(value)
        key = types.as_key(key)
        self._entries[key] = value
        if isinstance(key, int) and key >= self._next_index:
            self._next_index = key + 1
        return self

    def push(self, value: _T) -> Self:
        self._constraint.check(value)
        return self._append(value)

    def _append(self, value: _T) -> Self:
        self._entries[self._next_index] = value
        self._next_index += 1
        return self

    def prepend(self, value: _T) -> Self:
        self._constraint.check(value)
        entries: Dict[types.Key, _T] = {0: value}
        index = 1
        for key, existing in self._entries.items():
            if isinstance(key, int):
                entries[index] = existing
                index += 1
            else:
                entries[key] = existing
        self._entries = entries
        self._next_index = index
        return self

    def remove(self, key: types.Key) -> Self:
        self._entries.pop(key, None)
        return self

    def clear(self) -> Self:  # type: ignore[override]
        self._entries = {}
        self._next_index = 0
        return self

    def sort(
        self,
        comparator: Optional[types.Comparator] = None,
        *,
        key: Optional[Callable[[_T], Any]] = None,
        reverse: bool = False,
        preserve_keys: bool = False,
    ) -> Self:
        if comparator is not None and key is not None:
            raise TypeError("sort() takes either a comparator or a key, not both")
        sort_key = key if comparator is None else functools.cmp_to_key(comparator)
        if preserve_keys:
            self._entries = dict(
                sorted(
                    self._entries.items(),
                    key=_by_value(sort_key),
                    reverse=reverse,
                )
            )
            return self
        values = sorted(self._entries.values(), key=sort_key, reverse=reverse)
        self._entries = dict(enumerate(values))
        self._next_index = len(values)
        return self

    # Mapping

    def __getitem__(self, key: types.Key) -> _T:
        return self._entries[key]

    def __delitem__(self, key: types.Key) -> None:
        del self._entries[key]

    def __iter__(self) -> Iterator[types.Key]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def has(self, key: types.Key) -> bool:
        return key in self._entries

    def get(self, key: types.Key, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def __repr__(self) -> str:
        if self.element_type is None:
            return f"{type(self).__name__}({self._entries!r})"
        return (
            f"{type(self).__name__}({self._entries!r},"
            f" element_type={self.element_type.__qualname__})"
        )


def _entries_of(data: CollectionInput) -> Iterable[Tuple[Any, Any]]:
    if types.is_stringy(data):
        raise TypeError(
            f"Cannot fill a collection from {types.typename(data)};"
            " wrap it in a list or mapping"
        )
    items = getattr(data, "items", None)
    if callable(items):
        return items()
    return enumerate(data)


_NESTED_TAG: Final = "collection"
"""Third element of a text pair whose value is itself a list of pairs."""


def _text_pairs(coll: BaseCollection[Any]) -> List[List[Any]]:
    pairs: List[List[Any]] = []
    for key, value in coll.items():
        if isinstance(value, BaseCollection):
            pairs.append([key, _text_pairs(value), _NESTED_TAG])
        else:
            pairs.append([key, value])
    return pairs


def _entries_from_text_pairs(pairs: Any) -> Dict[types.Key, Any]:
    if not isinstance(pairs, list):
        raise ValueError("Collection text must be a JSON list of [key, value]")
    entries: Dict[types.Key, Any] = {}
    for pair in pairs:
        if isinstance(pair, list) and len(pair) == 2:
            key, value = pair
        elif isinstance(pair, list) and len(pair) == 3 and pair[2] == _NESTED_TAG:
            key, value = pair[0], _entries_from_text_pairs(pair[1])
        else:
            raise ValueError(f"Malformed collection entry in text: {pair!r}")
        entries[types.as_key(key)] = value
    return entries


def _by_value(
    sort_key: Optional[Callable[[Any], Any]]
) -> Callable[[Tuple[types.Key, Any]], Any]:
    if sort_key is None:
        return lambda entry: entry[1]
    return lambda entry: sort_key(entry[1])


def _json_shape(value: Any) -> Any:
    # Dense 0..n-1 keys encode as a JSON array, anything else as an object.
    if isinstance(value, dict):
        if list(value) == list(range(len(value))):
            return [_json_shape(item) for item in value.values()]
        return {str(key): _json_shape(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_shape(item) for item in value]
    return value
