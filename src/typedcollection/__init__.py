"""Ordered collections that can enforce the type of their elements.

Types are defined in their own modules and then imported here for a single
unified namespace.
"""

# __init__ files, used strictly for re-exporting, are the exception to the
# "import modules only" style used in typedcollection.

import logging
from importlib import metadata

from .collection import BaseCollection
from .collection import Collection
from .errors import CollectionError
from .errors import ConfigurationError
from .errors import InvalidElementError
from .options import PrimitivePolicy
from .proxy import LazyProxy
from .types import Key
from .types import TypeConstraint

logging.getLogger(__name__).addHandler(logging.NullHandler())

try:
    __version__: str = metadata.version("typed-collection")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0.dev+invalid"


__all__ = (
    "BaseCollection",
    "Collection",
    "CollectionError",
    "ConfigurationError",
    "InvalidElementError",
    "Key",
    "LazyProxy",
    "PrimitivePolicy",
    "TypeConstraint",
)
