"""
Free-space accounting for the Allocation Ledger

The arena does not hand out addresses. It keeps, per size class, how many
bytes have been provisioned in pools and how many of them are in use, which
is all the collector needs to decide whether an allocation can be satisfied
without collecting first.

Table classes are keyed by their size. Every allocation past the largest
class draws on one shared budget keyed by LARGE_BUDGET, whatever its
aligned size.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Union

from .errors import CorruptGraph
from .size_classes import LARGE_BUDGET


logger = logging.getLogger("ledger.arena")

BudgetKey = Union[int, str]


@dataclass
class PoolStats:
    """Counters for one budget"""
    capacity_bytes: int = 0
    used_bytes: int = 0
    pool_count: int = 0
    allocations_count: int = 0
    deallocations_count: int = 0

    @property
    def free_bytes(self) -> int:
        return self.capacity_bytes - self.used_bytes

    @property
    def utilization(self) -> float:
        return self.used_bytes / self.capacity_bytes if self.capacity_bytes > 0 else 0.0


def _key_order(key: BudgetKey):
    # Table classes by size, the large budget last
    return (isinstance(key, str), key if isinstance(key, int) else 0)


class Arena:
    """
    Per-budget capacity and usage counters, in bytes.

    Each table class and the large budget start with initial_pools pools.
    """

    def __init__(self, pool_size: int = 4096, table: Iterable[int] = (),
                 initial_pools: int = 1):
        self.pool_size = pool_size
        self._budgets: Dict[BudgetKey, PoolStats] = {}

        for key in list(table) + [LARGE_BUDGET]:
            stats = self._stats(key)
            stats.pool_count = initial_pools
            stats.capacity_bytes = initial_pools * pool_size

    def _stats(self, key: BudgetKey) -> PoolStats:
        if key not in self._budgets:
            self._budgets[key] = PoolStats()
        return self._budgets[key]

    def can_satisfy(self, key: BudgetKey, size: int) -> bool:
        stats = self._budgets.get(key)
        return stats is not None and stats.free_bytes >= size

    def reserve(self, key: BudgetKey, size: int):
        stats = self._stats(key)
        if stats.free_bytes < size:
            raise CorruptGraph(f"reserve of {size} bytes from {key!r} without free space")
        stats.used_bytes += size
        stats.allocations_count += 1

    def release(self, key: BudgetKey, size: int):
        stats = self._budgets.get(key)
        if stats is None or stats.used_bytes < size:
            raise CorruptGraph(f"release of {size} bytes to {key!r} that were never reserved")
        stats.used_bytes -= size
        stats.deallocations_count += 1

    def grow(self, key: BudgetKey, size: int) -> int:
        """Add enough pools to the budget to hold size more bytes"""
        stats = self._stats(key)
        pools = -(-size // self.pool_size)  # ceil
        stats.pool_count += pools
        stats.capacity_bytes += pools * self.pool_size

        logger.debug("arena grew budget %s by %d pool(s), capacity now %d bytes",
                     key, pools, stats.capacity_bytes)
        return pools * self.pool_size

    def free_bytes(self, key: BudgetKey) -> int:
        stats = self._budgets.get(key)
        return stats.free_bytes if stats is not None else 0

    @property
    def total_capacity(self) -> int:
        return sum(stats.capacity_bytes for stats in self._budgets.values())

    @property
    def total_used(self) -> int:
        return sum(stats.used_bytes for stats in self._budgets.values())

    @property
    def total_free(self) -> int:
        return self.total_capacity - self.total_used

    @property
    def pool_count(self) -> int:
        return sum(stats.pool_count for stats in self._budgets.values())

    def get_statistics(self) -> Dict[BudgetKey, Dict[str, float]]:
        return {
            key: {
                'capacity_bytes': stats.capacity_bytes,
                'used_bytes': stats.used_bytes,
                'free_bytes': stats.free_bytes,
                'pool_count': stats.pool_count,
                'utilization': stats.utilization,
                'allocations': stats.allocations_count,
                'deallocations': stats.deallocations_count,
            }
            for key, stats in sorted(self._budgets.items(), key=lambda item: _key_order(item[0]))
        }
