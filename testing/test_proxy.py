import unittest
from decimal import Decimal

from typedcollection import Collection
from typedcollection import LazyProxy
from typedcollection import errors


class LazyNumber:
    def __init__(self) -> None:
        self._value = None

    def initialize(self) -> None:
        self._value = 42

    def is_initialized(self) -> bool:
        return self._value is not None


class LazyProxyTest(unittest.TestCase):
    def test_structural_check(self):
        self.assertIsInstance(LazyNumber(), LazyProxy)
        self.assertNotIsInstance(Decimal(1), LazyProxy)

    def test_as_element_type(self):
        for element_type in (LazyProxy, "typedcollection.LazyProxy"):
            with self.subTest(element_type):
                coll = Collection(element_type=element_type)
                lazy = LazyNumber()
                coll.push(lazy)
                with self.assertRaises(errors.InvalidElementError) as ctx:
                    coll.push(Decimal(1))
                self.assertEqual("LazyProxy", ctx.exception.expected)
                # Storing a proxy does not initialize it.
                self.assertFalse(coll[0].is_initialized())
