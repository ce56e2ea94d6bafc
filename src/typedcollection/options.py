"""Configuration values shared by collection types."""

from typing_extensions import Final, Literal

PrimitivePolicy = Literal["bypass", "enforce"]
"""How a typed collection treats primitive values (scalars, builtin
containers, numpy scalars).

- ``bypass``: primitives are stored without checking them against the element
  type. Only other objects are checked. This is the default.
- ``enforce``: every value must be an instance of the element type.
"""

PRIMITIVE_POLICIES: Final = ("bypass", "enforce")
