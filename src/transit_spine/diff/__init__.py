"""Change detection: diff engine, run coordinator and run report.

Architecture::

    engine.py          diff_snapshots() + DiffOutput (pure)
    protocols.py       Partition, PartitionCatalog, SnapshotSource, DiffSink
    coordinator.py     DiffRunCoordinator (asyncio fan-out per partition)
    report.py          RunReport
    manager.py         DiffManager (storage-backed wiring)
"""

from .coordinator import DEFAULT_RECORD_TYPES, DiffRunCoordinator, DiffRunResult, PartitionResult
from .engine import DiffOutput, diff_snapshots
from .protocols import DiffSink, Partition, PartitionCatalog, SnapshotSource
from .report import RunReport

__all__ = [
    "DEFAULT_RECORD_TYPES",
    "DiffOutput",
    "DiffRunCoordinator",
    "DiffRunResult",
    "DiffSink",
    "Partition",
    "PartitionCatalog",
    "PartitionResult",
    "RunReport",
    "SnapshotSource",
    "diff_snapshots",
]
