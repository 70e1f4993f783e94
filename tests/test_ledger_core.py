"""
Test suite for the Ledger facade and its configuration.

Tests cover:
- Configuration defaults, validation and from_dict()
- End-to-end allocation and collection scenarios
- Independence of separate ledgers
"""

import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from ledger import Ledger, LedgerConfiguration
from ledger.errors import ConfigurationError, InvalidSize, UnknownObject
from ledger import arena, collector, ledger_core, object_graph, reporter


class TestLedgerConfiguration(unittest.TestCase):
    """Test cases for LedgerConfiguration."""

    def test_defaults(self):
        config = LedgerConfiguration()
        self.assertEqual(config.size_classes, [8, 16, 32, 48, 64, 128])
        self.assertEqual(config.header_overhead, 16)
        self.assertEqual(config.alignment, 8)
        self.assertEqual(config.pool_size, 4096)

    def test_from_dict(self):
        config = LedgerConfiguration.from_dict({'size_classes': [16, 32], 'pool_size': 256})
        self.assertEqual(config.size_classes, [16, 32])
        self.assertEqual(config.pool_size, 256)

    def test_from_dict_rejects_unknown_keys(self):
        with self.assertRaises(ConfigurationError):
            LedgerConfiguration.from_dict({'young_gen_size_mb': 32})

    def test_from_dict_rejects_non_mapping(self):
        with self.assertRaises(ConfigurationError):
            LedgerConfiguration.from_dict([8, 16])

    def test_invalid_values(self):
        bad_values = [
            {'size_classes': [32, 16]},
            {'size_classes': 16},
            {'alignment': 6},
            {'header_overhead': -1},
            {'pool_size': 0},
            {'initial_pools': -1},
            {'history_size': 0},
            {'pool_size': '4096'},
        ]
        for values in bad_values:
            with self.assertRaises(ConfigurationError, msg=str(values)):
                LedgerConfiguration(**values)


class TestLedgerScenarios(unittest.TestCase):
    """End-to-end scenarios through the facade."""

    def setUp(self):
        self.ledger = Ledger()

    def test_round_trip_live_bytes(self):
        before = self.ledger.stats().live_bytes
        self.ledger.alloc(64, rooted=True)
        self.assertEqual(self.ledger.stats().live_bytes - before, self.ledger.classify(64))

    def test_unreferenced_object_collected(self):
        a = self.ledger.alloc(10, rooted=True)
        self.ledger.alloc(10)

        result = self.ledger.gc()

        self.assertEqual(result.to_dict(),
                         {'objectsFreed': 1, 'bytesFreed': self.ledger.classify(10)})
        self.assertEqual(self.ledger.stats().live_bytes, self.ledger.classify(10))
        self.assertIn(a, self.ledger.graph)

    def test_reference_keeps_object_alive_until_unrooted(self):
        a = self.ledger.alloc(10, rooted=True)
        b = self.ledger.alloc(10)
        self.ledger.ref(a, [b])

        self.assertEqual(self.ledger.gc().to_dict(), {'objectsFreed': 0, 'bytesFreed': 0})

        self.ledger.root(a, False)
        result = self.ledger.gc()
        self.assertEqual(result.objects_freed, 2)
        self.assertEqual(self.ledger.stats().live_bytes, 0)

    def test_cycle_is_not_mistaken_for_live(self):
        a = self.ledger.alloc(10)
        b = self.ledger.alloc(10)
        self.ledger.ref(a, [b])
        self.ledger.ref(b, [a])

        result = self.ledger.gc()
        self.assertEqual(result.objects_freed, 2)
        self.assertEqual(len(self.ledger.graph), 0)

    def test_idempotent_gc(self):
        self.ledger.alloc(10)
        self.ledger.gc()
        self.assertEqual(self.ledger.gc().to_dict(), {'objectsFreed': 0, 'bytesFreed': 0})

    def test_measure_delta(self):
        a = self.ledger.alloc(10, rooted=True)
        self.assertEqual(self.ledger.measure_delta(lambda: self.ledger.root(a, False)), -32)

    def test_failures_leave_state_unchanged(self):
        a = self.ledger.alloc(10, rooted=True)
        before = self.ledger.stats()

        with self.assertRaises(InvalidSize):
            self.ledger.alloc(-1)
        with self.assertRaises(UnknownObject):
            self.ledger.ref(a, [a, 77])
        with self.assertRaises(UnknownObject):
            self.ledger.root(77, True)

        after = self.ledger.stats()
        self.assertEqual(after.total_allocated_bytes, before.total_allocated_bytes)
        self.assertEqual(after.live_bytes, before.live_bytes)
        self.assertEqual(self.ledger.graph.get(a).references, set())

    def test_child_kept_alive_by_large_parent(self):
        child = self.ledger.alloc(10)
        parent = self.ledger.alloc(200, rooted=True)
        self.ledger.ref(parent, [child])

        self.assertEqual(self.ledger.collector.stats.total_collections, 0)
        self.assertEqual(self.ledger.gc().objects_freed, 0)
        self.assertIn(child, self.ledger.graph)

    def test_custom_configuration(self):
        ledger = Ledger(LedgerConfiguration(size_classes=[64, 256], header_overhead=0))
        self.assertEqual(ledger.classify(1), 64)
        self.assertEqual(ledger.classify(300), 304)


class TestLedgerIsolation(unittest.TestCase):
    """Separate ledgers share no state."""

    def test_independent_ledgers(self):
        first, second = Ledger(), Ledger()
        a = first.alloc(10, rooted=True)
        second.alloc(500)

        self.assertEqual(first.stats().total_allocated_bytes, 32)
        self.assertEqual(second.stats().total_allocated_bytes, 520)
        self.assertEqual(second.gc().objects_freed, 1)
        self.assertIn(a, first.graph)
        self.assertEqual(first.collector.stats.total_collections, 0)


class TestLoggerNames(unittest.TestCase):
    """Every module logs under the ledger namespace."""

    def test_module_loggers(self):
        for module in (arena, collector, ledger_core, object_graph, reporter):
            short_name = module.__name__.rsplit('.', 1)[-1]
            self.assertEqual(module.logger.name, f"ledger.{short_name}")


if __name__ == '__main__':
    unittest.main()
