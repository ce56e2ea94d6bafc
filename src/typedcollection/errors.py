"""Exceptions raised by collections.

Both concrete errors also subclass the builtin exception a caller would
otherwise expect (``ValueError`` for bad configuration, ``TypeError`` for a
value of the wrong type), so existing ``except`` clauses keep working.
"""

from typing import Any


class CollectionError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(CollectionError, ValueError):
    """The element type of a collection could not be resolved."""

    def __init__(self, identifier: Any, message: str):
        super().__init__(f"{message}. Please set an existing class name.")
        self.identifier = identifier
        """The type identifier that failed to resolve."""


class InvalidElementError(CollectionError, TypeError):
    """A value did not match the element type of the collection."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Collection accepts only {expected} objects but {actual} was passed"
        )
        self.expected = expected
        """The name of the configured element type."""
        self.actual = actual
        """The name of the type of the rejected value."""
