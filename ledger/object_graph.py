"""
Object Graph for the Allocation Ledger

Holds every live simulated object and its outgoing references. The graph
is the single source of truth for reachability: anything that captures
another object (a closure, a container, a bound method) is modelled as an
explicit edge set with set_references().

The graph assumes a single thread of control. Callers must not mutate it
while a collection is running.
"""

import itertools
import logging
from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .errors import CorruptGraph, UnknownObject
from .object_model import LedgerObject, make_object
from .size_classes import SizeClass, SizeClassModel


logger = logging.getLogger("ledger.object_graph")


class ObjectGraph:
    """
    Mapping of object ids to objects with their reference sets.

    Memory for new objects is obtained from an attached allocator (normally
    the Collector, which owns the free-space counters and decides when to
    collect). Without an allocator the graph only counts bytes.
    """

    def __init__(self, size_model: Optional[SizeClassModel] = None, allocator=None):
        self.size_model = size_model or SizeClassModel()
        self._allocator = allocator
        self._objects: Dict[int, LedgerObject] = {}
        self._ids = itertools.count(1)
        self._allocated_bytes = 0
        self._corrupt: Optional[str] = None

    def attach_allocator(self, allocator):
        """Route future allocations through allocator.reserve(size_class)"""
        self._allocator = allocator

    # Mutation

    def create(self, payload_bytes: int, rooted: bool = False) -> int:
        """Allocate a new object and return its id"""
        self._check_usable()
        size_class = self.size_model.class_for(payload_bytes)

        if self._allocator is not None:
            # May run a collection when the class is out of free space
            self._allocator.reserve(size_class)

        object_id = next(self._ids)
        self._objects[object_id] = make_object(object_id, payload_bytes, size_class, bool(rooted))
        self._allocated_bytes += size_class.size

        logger.debug("created object %d: payload=%d class=%s rooted=%s",
                     object_id, payload_bytes, size_class.label, bool(rooted))
        return object_id

    def set_references(self, object_id: int, new_refs: Iterable[int]):
        """Replace the outgoing edges of object_id"""
        self._check_usable()
        obj = self._lookup(object_id)

        obj.references = self._existing_ids(new_refs, f"referenced from {object_id}")

    def set_rooted(self, object_id: int, rooted: bool):
        """Toggle direct reachability; never frees anything by itself"""
        self._check_usable()
        self._lookup(object_id).rooted = bool(rooted)

    def remove(self, object_ids: Iterable[int]) -> List[LedgerObject]:
        """
        Drop objects from the graph and return them.

        Each object's bytes go back to the attached allocator, so the
        allocator's usage always matches allocated_bytes. Surviving edges
        into the removed ids are not touched; the collector's sweep
        verifies there are none.
        """
        self._check_usable()
        removed = {}
        for object_id in object_ids:
            obj = self._lookup(object_id)
            removed[obj.object_id] = obj

        for obj in removed.values():
            del self._objects[obj.object_id]
            self._allocated_bytes -= obj.allocated_size
            if self._allocator is not None:
                self._allocator.release(obj.header.size_class)

        return list(removed.values())

    # Queries

    def reachable_from(self, roots: Iterable[int] = ()) -> Set[int]:
        """
        Ids reachable from every rooted object plus the given roots.

        Breadth-first over outgoing edges. Every starting id reaches
        itself; cycles terminate through the visited set.
        """
        self._check_usable()
        start = self._existing_ids(roots, "reachability root")
        start.update(self.root_ids())

        visited = set(start)
        queue = deque(start)
        while queue:
            current = queue.popleft()
            for ref in self._objects[current].references:
                if ref not in self._objects:
                    self.mark_corrupt(f"object {current} references missing object {ref}")
                if ref not in visited:
                    visited.add(ref)
                    queue.append(ref)

        return visited

    def root_ids(self) -> Set[int]:
        return {object_id for object_id, obj in self._objects.items() if obj.rooted}

    def referrers(self, object_id: int) -> Set[int]:
        """Ids of objects holding an edge to object_id"""
        self._lookup(object_id)
        return {other_id for other_id, obj in self._objects.items()
                if object_id in obj.references}

    def find_cycles(self) -> List[List[int]]:
        """
        Groups of objects that reference each other in a cycle.

        Each group is a strongly connected component with more than one
        member, or a single object referencing itself. Tarjan's algorithm
        with an explicit work stack.
        """
        index_of: Dict[int, int] = {}
        lowlink: Dict[int, int] = {}
        on_stack: Set[int] = set()
        stack: List[int] = []
        cycles: List[List[int]] = []
        counter = 0

        for start in sorted(self._objects):
            if start in index_of:
                continue

            work = [(start, iter(sorted(self._objects[start].references)))]
            index_of[start] = lowlink[start] = counter
            counter += 1
            stack.append(start)
            on_stack.add(start)

            while work:
                node, children = work[-1]
                advanced = False
                for child in children:
                    if child not in self._objects:
                        continue
                    if child not in index_of:
                        index_of[child] = lowlink[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(sorted(self._objects[child].references))))
                        advanced = True
                        break
                    if child in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[child])
                if advanced:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

                if lowlink[node] == index_of[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self._objects[node].references:
                        cycles.append(sorted(component))

        return cycles

    def get(self, object_id: int) -> LedgerObject:
        return self._lookup(object_id)

    def ids(self) -> Set[int]:
        return set(self._objects)

    def objects(self) -> List[LedgerObject]:
        return list(self._objects.values())

    @property
    def allocated_bytes(self) -> int:
        return self._allocated_bytes

    @property
    def is_corrupt(self) -> bool:
        return self._corrupt is not None

    def mark_corrupt(self, reason: str):
        """Poison this graph and raise CorruptGraph"""
        if self._corrupt is None:
            self._corrupt = reason
            logger.error("object graph corrupted: %s", reason)
        raise CorruptGraph(reason)

    def size_class_of(self, object_id: int) -> SizeClass:
        return self._lookup(object_id).header.size_class

    def counts_by_class(self, object_ids: Optional[Iterable[int]] = None) -> Dict[int, int]:
        """Number of objects per allocated class size"""
        if object_ids is None:
            selected: Iterable[LedgerObject] = self._objects.values()
        else:
            selected = (self._objects[object_id] for object_id in object_ids)

        counts: Dict[int, int] = {}
        for obj in selected:
            counts[obj.allocated_size] = counts.get(obj.allocated_size, 0) + 1
        return dict(sorted(counts.items()))

    def bytes_of(self, object_ids: Iterable[int]) -> Tuple[int, int]:
        """(object count, allocated bytes) for the given ids"""
        count = 0
        total = 0
        for object_id in object_ids:
            count += 1
            total += self._objects[object_id].allocated_size
        return count, total

    def _lookup(self, object_id: int) -> LedgerObject:
        try:
            return self._objects[object_id]
        except (KeyError, TypeError):
            raise UnknownObject(object_id) from None

    def _existing_ids(self, object_ids: Iterable[int], context: str) -> Set[int]:
        """Set of the given ids; UnknownObject for any absent or unhashable one"""
        result = set()
        for object_id in object_ids:
            if object_id not in self:
                raise UnknownObject(object_id, context)
            result.add(object_id)
        return result

    def _check_usable(self):
        if self._corrupt is not None:
            raise CorruptGraph(f"graph is unusable after corruption: {self._corrupt}")

    def __contains__(self, object_id) -> bool:
        try:
            return object_id in self._objects
        except TypeError:
            return False

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._objects))
