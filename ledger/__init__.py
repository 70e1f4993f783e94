"""
Allocation Ledger

A simulator for small-object allocation and tracing garbage collection:
size-classed allocation with a fixed object header, an explicit object
reference graph, and a mark-and-sweep collector that runs lazily when a
size class runs out of free space.

Architecture:
    ledger/
    ├── size_classes.py   # Payload size -> allocated size
    ├── object_model.py   # Object headers and GC flags
    ├── object_graph.py   # Objects, references, reachability
    ├── arena.py          # Per-class free-space counters
    ├── collector.py      # Lazy mark-and-sweep
    ├── reporter.py       # Snapshots, deltas, host figures
    ├── ledger_core.py    # Configuration and the Ledger facade
    └── cli.py            # Command script driver

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .errors import LedgerError, InvalidSize, UnknownObject, CorruptGraph, ConfigurationError
from .size_classes import SizeClassModel, SizeClass
from .object_model import LedgerObject, ObjectHeader, GCFlags
from .object_graph import ObjectGraph
from .arena import Arena, PoolStats
from .collector import (
    Collector, CollectorState, CollectionTrigger, CollectionResult, CollectorStats
)
from .reporter import UsageReporter, UsageSnapshot, HostMonitor
from .ledger_core import Ledger, LedgerConfiguration

__all__ = [
    # Errors
    'LedgerError', 'InvalidSize', 'UnknownObject', 'CorruptGraph', 'ConfigurationError',

    # Sizing and object layout
    'SizeClassModel', 'SizeClass', 'LedgerObject', 'ObjectHeader', 'GCFlags',

    # Graph and collection
    'ObjectGraph', 'Arena', 'PoolStats',
    'Collector', 'CollectorState', 'CollectionTrigger', 'CollectionResult', 'CollectorStats',

    # Reporting
    'UsageReporter', 'UsageSnapshot', 'HostMonitor',

    # Facade
    'Ledger', 'LedgerConfiguration',

    # Version info
    '__version__',
]
