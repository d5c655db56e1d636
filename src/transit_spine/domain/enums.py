"""
Shared enums for stored records and tables.

STDLIB ONLY - NO PYDANTIC.
"""

from enum import Enum


class RecordType(str, Enum):
    """Kind of record held in download, diff and publish tables."""

    REGION = "Region"
    AGENCY = "Agency"
    ROUTE = "Route"
    STOP = "Stop"


class TableType(str, Enum):
    """
    Logical tables of the service.

    Download and Diff tables are per run (their name carries the run id);
    the others are shared and partitioned by region or run id.
    """

    DOWNLOAD = "Download"
    DOWNLOAD_METADATA = "DownloadMetadata"
    DIFF = "Diff"
    DIFF_METADATA = "DiffMetadata"
    PUBLISH = "Publish"
    PUBLISH_METADATA = "PublishMetadata"
