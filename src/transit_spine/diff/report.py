"""Run report: per-partition, per-kind change counts for one run.

The diff metadata entries are the report proper. What was downloaded and
what the publish stage applied for the same run ride along, so one report
shows a run end to end.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from transit_spine.domain.entities import (
    DiffMetadataEntity,
    DownloadMetadataEntity,
    PublishMetadataEntity,
)
from transit_spine.domain.enums import RecordType

_COUNT_FIELDS = ("added_count", "updated_count", "deleted_count", "resurrected_count")


def _sort_key(entry: Any) -> tuple[str, str, str]:
    return (entry.record_type.value, entry.region_id, entry.agency_id)


def _sum_counts(entries: Iterable[Any]) -> dict[str, int]:
    entries = list(entries)
    return {
        name.removesuffix("_count"): sum(getattr(e, name) for e in entries)
        for name in _COUNT_FIELDS
    }


@dataclass(frozen=True)
class RunReport:
    """
    Concatenation of the diff metadata entries of a run.

    Built once, after every partition of the run has completed; it never
    changes afterwards. A report with no entries is a valid "nothing was
    diffed" run, and one whose totals are all zero is a "nothing changed" run.
    """

    run_id: str
    entries: tuple[DiffMetadataEntity, ...] = ()
    downloads: tuple[DownloadMetadataEntity, ...] = ()
    published: tuple[PublishMetadataEntity, ...] = ()

    @classmethod
    def from_entries(
        cls,
        run_id: str,
        entries: Iterable[DiffMetadataEntity],
        *,
        downloads: Iterable[DownloadMetadataEntity] = (),
        published: Iterable[PublishMetadataEntity] = (),
    ) -> RunReport:
        return cls(
            run_id=run_id,
            entries=tuple(sorted(entries, key=_sort_key)),
            downloads=tuple(sorted(downloads, key=_sort_key)),
            published=tuple(sorted(published, key=_sort_key)),
        )

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def has_changes(self) -> bool:
        return any(e.total for e in self.entries)

    def for_record_type(self, record_type: RecordType) -> tuple[DiffMetadataEntity, ...]:
        return tuple(e for e in self.entries if e.record_type == record_type)

    def totals(self, record_type: RecordType | None = None) -> dict[str, int]:
        """Sum the four counts, over one record type or the whole run."""
        entries = self.entries if record_type is None else self.for_record_type(record_type)
        return _sum_counts(entries)

    def downloaded(self) -> dict[str, int]:
        """Downloaded records per kind, e.g. ``{"Route": 120, "Stop": 4000}``."""
        counts: dict[str, int] = {}
        for entry in self.downloads:
            key = entry.record_type.value
            counts[key] = counts.get(key, 0) + entry.count
        return counts

    def published_totals(self) -> dict[str, int]:
        return _sum_counts(self.published)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "downloaded": self.downloaded(),
            "totals": self.totals(),
            "published": self.published_totals(),
            "entries": [e.to_dict() for e in self.entries],
        }
