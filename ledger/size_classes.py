"""
Size Class Model for the Allocation Ledger

Maps a requested payload size to the number of bytes an allocator would
actually hand out: the payload plus a fixed object header, rounded up to
the smallest fitting size class. Requests that outgrow the table fall back
to the large-object path and are rounded to the alignment constant.
"""

import bisect
from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple, Union

from .errors import ConfigurationError, InvalidSize


DEFAULT_SIZE_CLASSES: Tuple[int, ...] = (8, 16, 32, 48, 64, 128)
DEFAULT_HEADER_OVERHEAD = 16   # type pointer + refcount/gc fields
DEFAULT_ALIGNMENT = 8

# Free-space budget shared by every allocation past the largest class
LARGE_BUDGET = "large"


@dataclass(frozen=True)
class SizeClass:
    """The bucket an allocation lands in"""
    size: int           # Bytes handed out for the allocation
    is_large: bool      # True when no table class fits

    @property
    def label(self) -> str:
        return f"large:{self.size}" if self.is_large else str(self.size)

    @property
    def budget_key(self) -> Union[int, str]:
        """Arena key whose free space this allocation draws on"""
        return LARGE_BUDGET if self.is_large else self.size


def align_up(size: int, alignment: int) -> int:
    """Round size up to the next multiple of alignment (a power of two)"""
    return (size + alignment - 1) & ~(alignment - 1)


def validate_size(size: Any) -> int:
    """Return size unchanged if it is a usable payload size"""
    # bool is an int subclass, but True is not a byte count
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise InvalidSize(size)
    return size


class SizeClassModel:
    """
    Deterministic size classifier.

    The model has no state beyond its table; classify() is a pure function
    of the payload size.
    """

    def __init__(self,
                 size_classes: Iterable[int] = DEFAULT_SIZE_CLASSES,
                 header_overhead: int = DEFAULT_HEADER_OVERHEAD,
                 alignment: int = DEFAULT_ALIGNMENT):
        table = list(size_classes)
        self._check_table(table)
        if header_overhead < 0:
            raise ConfigurationError(f"header overhead must be >= 0, got {header_overhead}")
        if alignment <= 0 or alignment & (alignment - 1):
            raise ConfigurationError(f"alignment must be a positive power of two, got {alignment}")

        self._table: List[int] = table
        self.header_overhead = header_overhead
        self.alignment = alignment

    @classmethod
    def from_configuration(cls, config) -> 'SizeClassModel':
        return cls(config.size_classes, config.header_overhead, config.alignment)

    @staticmethod
    def _check_table(table: Sequence[int]):
        if not table:
            raise ConfigurationError("size class table is empty")
        for entry in table:
            if isinstance(entry, bool) or not isinstance(entry, int) or entry <= 0:
                raise ConfigurationError(f"size classes must be positive integers, got {entry!r}")
        for smaller, larger in zip(table, table[1:]):
            if smaller >= larger:
                raise ConfigurationError(
                    f"size classes must be strictly ascending ({smaller} before {larger})")

    @property
    def table(self) -> Tuple[int, ...]:
        return tuple(self._table)

    @property
    def largest_class(self) -> int:
        return self._table[-1]

    def class_for(self, payload_bytes: int) -> SizeClass:
        """Find the bucket for a payload, header included"""
        needed = validate_size(payload_bytes) + self.header_overhead

        index = bisect.bisect_left(self._table, needed)
        if index < len(self._table):
            return SizeClass(self._table[index], False)

        return SizeClass(align_up(needed, self.alignment), True)

    def classify(self, payload_bytes: int) -> int:
        """Bytes actually allocated for a payload of the given size"""
        return self.class_for(payload_bytes).size

    def is_large(self, payload_bytes: int) -> bool:
        return self.class_for(payload_bytes).is_large

    def __repr__(self) -> str:
        return (f"SizeClassModel(table={self._table}, header={self.header_overhead}, "
                f"alignment={self.alignment})")
