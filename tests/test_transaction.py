"""Testing all-or-nothing execution"""
from __future__ import annotations  # types are strings by default in 3.11

import unittest

from fixedpointmath import FixedPoint

import lendpy.errors as errors
from lendpy.registry import AssetRegistry
from lendpy.tokens import Token, safe_transfer
from lendpy.transaction import atomic


class TestAtomic(unittest.TestCase):
    """Snapshot and rollback of component state"""

    def test_rollback_restores_every_component(self):
        """an exception restores all participants, then propagates"""
        usdc = Token("USDC")
        weth = Token("WETH")
        registry = AssetRegistry()
        usdc.mint("alice", FixedPoint(10))
        weth.mint("alice", FixedPoint(10))
        with self.assertRaises(errors.TransferFailed):
            with atomic(usdc, weth, registry, name="test"):
                safe_transfer(usdc, "alice", "bob", FixedPoint(10))
                registry.add_collateral(weth, 50)
                safe_transfer(weth, "alice", "bob", FixedPoint(11))
        self.assertEqual(usdc.balance_of("alice"), FixedPoint(10))
        self.assertEqual(usdc.balance_of("bob"), FixedPoint(0))
        self.assertEqual(weth.balance_of("alice"), FixedPoint(10))
        self.assertFalse(registry.is_supported("WETH"))
        self.assertEqual(registry.collateral_assets, [])

    def test_commit(self):
        """changes made inside a successful block are kept"""
        usdc = Token("USDC")
        usdc.mint("alice", FixedPoint(10))
        with atomic(usdc, usdc):
            safe_transfer(usdc, "alice", "bob", FixedPoint(4))
        self.assertEqual(usdc.balance_of("bob"), FixedPoint(4))

    def test_nested_rollback(self):
        """an inner block that committed is undone by a failing outer block"""
        usdc = Token("USDC")
        usdc.mint("alice", FixedPoint(10))
        with self.assertRaises(ValueError):
            with atomic(usdc, name="outer"):
                with atomic(usdc, name="inner"):
                    safe_transfer(usdc, "alice", "bob", FixedPoint(4))
                raise ValueError("outer failure")
        self.assertEqual(usdc.balance_of("alice"), FixedPoint(10))
        self.assertEqual(usdc.balance_of("bob"), FixedPoint(0))


if __name__ == "__main__":
    unittest.main()
