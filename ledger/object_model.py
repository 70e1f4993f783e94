"""
Object Model for the Allocation Ledger

Defines the simulated object layout: a fixed header carrying the
collector's flags and the allocation's size class, plus the set of
outgoing references that make up the object graph.
"""

from dataclasses import dataclass, field
from enum import IntFlag
from typing import Set

from .size_classes import SizeClass


class GCFlags(IntFlag):
    """Flags stored in object headers"""
    MARKED = 1 << 0          # Mark bit for mark-and-sweep
    ROOTED = 1 << 1          # Directly reachable from the active scope
    LARGE_OBJECT = 1 << 2    # Allocated outside the size-class table


@dataclass
class ObjectHeader:
    """
    Header stored in front of every simulated object.

    allocated_size already includes the header overhead; it is the number
    of bytes the object occupies in its size class.
    """
    allocated_size: int
    size_class: SizeClass
    flags: GCFlags
    allocation_id: int

    @property
    def is_marked(self) -> bool:
        return bool(self.flags & GCFlags.MARKED)

    @is_marked.setter
    def is_marked(self, value: bool):
        if value:
            self.flags |= GCFlags.MARKED
        else:
            self.flags &= ~GCFlags.MARKED

    @property
    def is_rooted(self) -> bool:
        return bool(self.flags & GCFlags.ROOTED)

    @is_rooted.setter
    def is_rooted(self, value: bool):
        if value:
            self.flags |= GCFlags.ROOTED
        else:
            self.flags &= ~GCFlags.ROOTED

    @property
    def is_large(self) -> bool:
        return bool(self.flags & GCFlags.LARGE_OBJECT)


@dataclass
class LedgerObject:
    """A live object in the graph"""
    object_id: int
    payload_size: int
    header: ObjectHeader
    references: Set[int] = field(default_factory=set)

    @property
    def rooted(self) -> bool:
        return self.header.is_rooted

    @rooted.setter
    def rooted(self, value: bool):
        self.header.is_rooted = value

    @property
    def allocated_size(self) -> int:
        return self.header.allocated_size

    @property
    def overhead_bytes(self) -> int:
        """Header plus rounding: everything allocated beyond the payload"""
        return self.header.allocated_size - self.payload_size


def make_object(object_id: int, payload_size: int, size_class: SizeClass,
                rooted: bool) -> LedgerObject:
    flags = GCFlags(0)
    if rooted:
        flags |= GCFlags.ROOTED
    if size_class.is_large:
        flags |= GCFlags.LARGE_OBJECT

    header = ObjectHeader(
        allocated_size=size_class.size,
        size_class=size_class,
        flags=flags,
        allocation_id=object_id,
    )
    return LedgerObject(object_id, payload_size, header)
