"""The contract for objects that defer their own setup."""

from typing import Any

from typing_extensions import Protocol, runtime_checkable


@runtime_checkable
class LazyProxy(Protocol):
    """An object that stands in for another until it is first needed.

    Nothing in this package implements this; it exists so that lazily loaded
    objects stored in a collection can be recognized with ``isinstance``
    and used as an element type.
    """

    def initialize(self) -> Any:
        """Performs the deferred setup. The return value is unspecified."""

    def is_initialized(self) -> bool:
        """Returns True once :meth:`initialize` has completed."""
