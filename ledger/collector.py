"""
Mark-and-Sweep Collector for the Allocation Ledger

The collector owns the arena's free-space counters and acts as the object
graph's allocator. Collection is lazy: it runs automatically only when an
allocation cannot be satisfied from the free space already provisioned for
its size class. Dropping a root never frees anything until the next
collection.

Precondition: one thread of control. Nothing may mutate the graph while a
collection cycle is running; the collector does not lock.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Set, Tuple

from .arena import Arena
from .errors import CorruptGraph
from .object_graph import ObjectGraph
from .size_classes import SizeClass


logger = logging.getLogger("ledger.collector")


class CollectorState(Enum):
    """Phases of a collection cycle"""
    IDLE = auto()
    MARKING = auto()
    SWEEPING = auto()


class CollectionTrigger(Enum):
    """Reasons why a collection was triggered"""
    ALLOCATION_PRESSURE = auto()    # Size class out of free space
    EXPLICIT_REQUEST = auto()       # Manual collect() call


@dataclass
class CollectionResult:
    """Outcome of one collection cycle"""
    objects_freed: int
    bytes_freed: int
    objects_scanned: int = 0
    trigger: CollectionTrigger = CollectionTrigger.EXPLICIT_REQUEST
    pause_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, int]:
        return {'objectsFreed': self.objects_freed, 'bytesFreed': self.bytes_freed}


@dataclass
class CollectorStats:
    """Running totals across all collections"""
    total_collections: int = 0
    collections_by_trigger: Dict[str, int] = field(default_factory=dict)
    total_objects_freed: int = 0
    total_bytes_freed: int = 0
    total_pause_time_ms: float = 0.0
    max_pause_time_ms: float = 0.0

    @property
    def average_pause_time_ms(self) -> float:
        if self.total_collections == 0:
            return 0.0
        return self.total_pause_time_ms / self.total_collections

    def record(self, result: CollectionResult):
        self.total_collections += 1
        name = result.trigger.name
        self.collections_by_trigger[name] = self.collections_by_trigger.get(name, 0) + 1
        self.total_objects_freed += result.objects_freed
        self.total_bytes_freed += result.bytes_freed
        self.total_pause_time_ms += result.pause_time_ms
        self.max_pause_time_ms = max(self.max_pause_time_ms, result.pause_time_ms)


class Collector:
    """
    Mark-and-sweep collector over an ObjectGraph.

    Attaches itself to the graph as its allocator, so every create() goes
    through reserve() and may trigger a collection.
    """

    def __init__(self, graph: ObjectGraph, arena: Optional[Arena] = None,
                 history_size: int = 1000):
        self.graph = graph
        self.arena = arena or Arena(table=graph.size_model.table)
        self.state = CollectorState.IDLE
        self.stats = CollectorStats()
        self._history: deque = deque(maxlen=history_size)

        self._adopt_existing_objects()
        graph.attach_allocator(self)

    def _adopt_existing_objects(self):
        """Account for objects created before the collector was attached"""
        for obj in self.graph.objects():
            size_class = obj.header.size_class
            if not self.arena.can_satisfy(size_class.budget_key, size_class.size):
                self.arena.grow(size_class.budget_key, size_class.size)
            self.arena.reserve(size_class.budget_key, size_class.size)

    # Allocation path

    def reserve(self, size_class: SizeClass):
        """
        Claim space for one object of size_class.

        Collects first when the class has no room left; grows the arena
        only if the collection did not free enough. All large objects
        share one budget.
        """
        key, size = size_class.budget_key, size_class.size
        if not self.arena.can_satisfy(key, size):
            logger.debug("class %s exhausted (%d bytes free), collecting",
                         size_class.label, self.arena.free_bytes(key))
            self.collect(CollectionTrigger.ALLOCATION_PRESSURE)

            if not self.arena.can_satisfy(key, size):
                self.arena.grow(key, size)

        self.arena.reserve(key, size)

    def release(self, size_class: SizeClass):
        """Return one object's bytes; called by the graph on removal"""
        self.arena.release(size_class.budget_key, size_class.size)

    # Collection

    def collect(self, trigger: CollectionTrigger = CollectionTrigger.EXPLICIT_REQUEST
                ) -> CollectionResult:
        """
        Run one full mark-and-sweep cycle.

        Always permitted. With nothing unreachable it frees nothing and
        reports zero counts.
        """
        if self.state is not CollectorState.IDLE:
            raise CorruptGraph(f"collection re-entered while {self.state.name}")

        start_time = time.perf_counter()
        scanned = len(self.graph)
        try:
            self.state = CollectorState.MARKING
            live = self._mark()

            self.state = CollectorState.SWEEPING
            objects_freed, bytes_freed = self._sweep(live)
        finally:
            self.state = CollectorState.IDLE

        result = CollectionResult(
            objects_freed=objects_freed,
            bytes_freed=bytes_freed,
            objects_scanned=scanned,
            trigger=trigger,
            pause_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        self._history.append(result)
        self.stats.record(result)

        logger.info("collection (%s): freed %d objects, %d bytes, scanned %d",
                    trigger.name, objects_freed, bytes_freed, scanned)
        return result

    def _mark(self) -> Set[int]:
        for obj in self.graph.objects():
            if obj.header.is_marked:
                self.graph.mark_corrupt(f"object {obj.object_id} carries a stale mark bit")

        live = self.graph.reachable_from()
        for object_id in live:
            self.graph.get(object_id).header.is_marked = True

        logger.debug("mark phase: %d of %d objects live", len(live), len(self.graph))
        return live

    def _sweep(self, live: Set[int]) -> Tuple[int, int]:
        dead = [obj.object_id for obj in self.graph.objects() if not obj.header.is_marked]
        if len(dead) + len(live) != len(self.graph):
            self.graph.mark_corrupt("mark bits disagree with the live set")

        # The graph hands each removed object's bytes back through release()
        removed = self.graph.remove(dead)
        bytes_freed = sum(obj.allocated_size for obj in removed)

        swept = set(dead)
        for obj in self.graph.objects():
            obj.header.is_marked = False
            dangling = obj.references & swept
            if dangling:
                self.graph.mark_corrupt(
                    f"survivor {obj.object_id} references swept objects {sorted(dangling)}")

        logger.debug("sweep phase: freed %d objects, %d bytes", len(removed), bytes_freed)
        return len(removed), bytes_freed

    # Introspection

    @property
    def history(self) -> List[CollectionResult]:
        return list(self._history)

    @property
    def last_result(self) -> Optional[CollectionResult]:
        return self._history[-1] if self._history else None

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'state': self.state.name,
            'total_collections': self.stats.total_collections,
            'collections_by_trigger': dict(self.stats.collections_by_trigger),
            'total_objects_freed': self.stats.total_objects_freed,
            'total_bytes_freed': self.stats.total_bytes_freed,
            'average_pause_time_ms': self.stats.average_pause_time_ms,
            'max_pause_time_ms': self.stats.max_pause_time_ms,
            'arena': {
                'capacity_bytes': self.arena.total_capacity,
                'used_bytes': self.arena.total_used,
                'free_bytes': self.arena.total_free,
                'pool_count': self.arena.pool_count,
            },
        }
