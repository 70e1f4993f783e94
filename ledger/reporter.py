"""
Usage Reporter for the Allocation Ledger

Read-only views over an ObjectGraph and its Collector. Taking a snapshot
never triggers a collection: measuring must not change what is measured.
The one exception is measure_delta(), which collects explicitly between
its two snapshots so that memory released by dropping references is not
mistaken for memory still in use.
"""

import gc
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import numpy as np
import psutil

from .collector import Collector
from .object_graph import ObjectGraph


logger = logging.getLogger("ledger.reporter")


@dataclass
class UsageSnapshot:
    """Memory figures of the simulated heap at a point in time"""
    total_allocated_bytes: int
    live_bytes: int
    per_class_counts: Dict[int, int] = field(default_factory=dict)
    object_count: int = 0
    live_object_count: int = 0
    free_bytes: int = 0
    timestamp: float = 0.0

    @property
    def garbage_bytes(self) -> int:
        """Allocated but unreachable, waiting for the next collection"""
        return self.total_allocated_bytes - self.live_bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allocated': self.total_allocated_bytes,
            'live': self.live_bytes,
            'classCounts': {str(size): count for size, count in self.per_class_counts.items()},
        }


class UsageReporter:
    """Aggregates allocation, liveness and per-class figures"""

    def __init__(self, graph: ObjectGraph, collector: Collector):
        self.graph = graph
        self.collector = collector

    def snapshot(self) -> UsageSnapshot:
        live = self.graph.reachable_from()
        live_count, live_bytes = self.graph.bytes_of(live)

        return UsageSnapshot(
            total_allocated_bytes=self.graph.allocated_bytes,
            live_bytes=live_bytes,
            per_class_counts=self.graph.counts_by_class(),
            object_count=len(self.graph),
            live_object_count=live_count,
            free_bytes=self.collector.arena.total_free,
            timestamp=time.time(),
        )

    def measure_delta(self, operation: Callable[[], Any]) -> int:
        """
        Change in live bytes caused by operation.

        The collection between the snapshots is what separates "released
        but not yet collected" from "still live".
        """
        before = self.snapshot()
        operation()
        self.collector.collect()
        after = self.snapshot()

        delta = after.live_bytes - before.live_bytes
        logger.debug("measured live delta %+d bytes (allocated %d -> %d)",
                     delta, before.total_allocated_bytes, after.total_allocated_bytes)
        return delta

    def size_distribution(self) -> Dict[str, float]:
        """Statistics over the allocated sizes of live objects"""
        live = sorted(self.graph.reachable_from())
        if not live:
            return {
                'count': 0, 'mean': 0.0, 'median': 0.0, 'p95': 0.0, 'max': 0,
                'rounding_waste_bytes': 0, 'rounding_waste_ratio': 0.0,
            }

        objects = [self.graph.get(object_id) for object_id in live]
        allocated = np.array([obj.allocated_size for obj in objects], dtype=np.int64)
        payload = np.array([obj.payload_size for obj in objects], dtype=np.int64)

        # Header bytes are fixed cost; only the rounding to a class is waste
        waste = allocated - payload - self.graph.size_model.header_overhead
        waste_total = int(waste.sum())

        return {
            'count': int(allocated.size),
            'mean': float(allocated.mean()),
            'median': float(np.median(allocated)),
            'p95': float(np.percentile(allocated, 95)),
            'max': int(allocated.max()),
            'rounding_waste_bytes': waste_total,
            'rounding_waste_ratio': waste_total / float(allocated.sum()),
        }

    def detailed_statistics(self) -> Dict[str, Any]:
        snapshot = self.snapshot()
        cycles = self.graph.find_cycles()
        live = self.graph.reachable_from()
        garbage_cycles = [cycle for cycle in cycles if not live.intersection(cycle)]

        return {
            'snapshot': snapshot.to_dict(),
            'garbage_bytes': snapshot.garbage_bytes,
            'size_distribution': self.size_distribution(),
            'collector': self.collector.get_statistics(),
            'arena_classes': self.collector.arena.get_statistics(),
            'reference_cycles': len(cycles),
            'unreachable_cycles': len(garbage_cycles),
            'largest_cycle_size': max((len(cycle) for cycle in cycles), default=0),
        }


class HostMonitor:
    """
    Memory figures of the real Python process running the ledger.

    Useful for comparing the simulation with what the host interpreter
    actually does; it never feeds back into the simulated graph.
    """

    def __init__(self, pid: Optional[int] = None):
        self.process = psutil.Process(pid if pid is not None else os.getpid())

    def rss_bytes(self) -> int:
        return self.process.memory_info().rss

    def get_statistics(self) -> Dict[str, Any]:
        memory = self.process.memory_info()
        system = psutil.virtual_memory()
        return {
            'process_memory_rss': memory.rss,
            'process_memory_vms': memory.vms,
            'system_memory_total': system.total,
            'system_memory_available': system.available,
            'system_memory_percent': system.percent,
        }

    def measure_host_delta(self, operation: Callable[[], Any]) -> int:
        """
        RSS change of the host process across operation.

        The host collector runs before each reading so uncollected garbage
        is not counted as live.
        """
        gc.collect()
        before = self.rss_bytes()
        operation()
        gc.collect()
        return self.rss_bytes() - before
