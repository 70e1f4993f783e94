"""
Core interface of the Allocation Ledger

Wires a SizeClassModel, ObjectGraph, Collector and UsageReporter into one
Ledger. Every Ledger is an independent simulation: there is no process-wide
allocator state, so several ledgers can coexist and be tested in isolation.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Iterable, List, Mapping, Optional

from .arena import Arena
from .collector import CollectionResult, Collector
from .errors import ConfigurationError
from .object_graph import ObjectGraph
from .reporter import UsageReporter, UsageSnapshot
from .size_classes import (
    DEFAULT_ALIGNMENT, DEFAULT_HEADER_OVERHEAD, DEFAULT_SIZE_CLASSES, SizeClassModel
)


logger = logging.getLogger("ledger.ledger_core")


@dataclass
class LedgerConfiguration:
    """Configuration parameters for a simulated heap"""

    # Size classes
    size_classes: List[int] = None          # [8, 16, 32, 48, 64, 128] default
    header_overhead: int = DEFAULT_HEADER_OVERHEAD
    alignment: int = DEFAULT_ALIGNMENT

    # Free space
    pool_size: int = 4096
    initial_pools: int = 1

    # Bookkeeping
    history_size: int = 1000

    def __post_init__(self):
        if self.size_classes is None:
            self.size_classes = list(DEFAULT_SIZE_CLASSES)
        elif isinstance(self.size_classes, (list, tuple)):
            self.size_classes = list(self.size_classes)
        else:
            raise ConfigurationError(f"size_classes must be a list, got {self.size_classes!r}")

        for name in ('header_overhead', 'alignment', 'pool_size', 'initial_pools', 'history_size'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.pool_size <= 0:
            raise ConfigurationError(f"pool_size must be positive, got {self.pool_size}")
        if self.initial_pools < 0:
            raise ConfigurationError(f"initial_pools must be >= 0, got {self.initial_pools}")
        if self.history_size <= 0:
            raise ConfigurationError(f"history_size must be positive, got {self.history_size}")

        # Table, header and alignment checks live with the model
        SizeClassModel.from_configuration(self)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> 'LedgerConfiguration':
        if not isinstance(values, Mapping):
            raise ConfigurationError("configuration must be a mapping of names to values")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**values)


class Ledger:
    """
    One simulated heap.

    alloc/ref/root/stats/gc mirror the operations an embedding tool needs;
    the underlying components stay reachable as attributes.
    """

    def __init__(self, config: Optional[LedgerConfiguration] = None):
        self.config = config or LedgerConfiguration()

        self.size_model = SizeClassModel.from_configuration(self.config)
        self.graph = ObjectGraph(self.size_model)
        self.arena = Arena(
            pool_size=self.config.pool_size,
            table=self.size_model.table,
            initial_pools=self.config.initial_pools,
        )
        self.collector = Collector(self.graph, self.arena, self.config.history_size)
        self.reporter = UsageReporter(self.graph, self.collector)

        logger.debug("ledger created: %r, pool_size=%d", self.size_model, self.config.pool_size)

    def alloc(self, size: int, rooted: bool = False) -> int:
        return self.graph.create(size, rooted)

    def ref(self, object_id: int, target_ids: Iterable[int]):
        self.graph.set_references(object_id, target_ids)

    def root(self, object_id: int, rooted: bool = True):
        self.graph.set_rooted(object_id, rooted)

    def stats(self) -> UsageSnapshot:
        return self.reporter.snapshot()

    def gc(self) -> CollectionResult:
        return self.collector.collect()

    def classify(self, size: int) -> int:
        return self.size_model.classify(size)

    def measure_delta(self, operation: Callable[[], Any]) -> int:
        return self.reporter.measure_delta(operation)
