"""Filtered, sorted and grouped views over the engine's record list."""

from typing import Literal

import structlog
from pydantic import BaseModel, Field

from offgrid_sync.models.record import Record, RecordStatus

log = structlog.stdlib.get_logger()


class ProjectionOptions(BaseModel):
    """Filter and sort settings for a record view."""

    search_text: str | None = Field(
        default=None, description="Case-insensitive substring of title or content"
    )
    category: str | None = Field(default=None, description="Category tag to keep")
    only_materialized: bool = Field(
        default=False, description="Offline view: keep records usable without a connection"
    )
    sort_key: Literal["last_modified", "title"] = Field(default="last_modified")
    sort_dir: Literal["asc", "desc"] = Field(default="desc")


def matches(record: Record, options: ProjectionOptions) -> bool:
    """Check a single record against the filter part of ``options``."""
    if options.only_materialized and not record.status.holds_local_copy:
        return False

    if options.category and record.category.casefold() != options.category.casefold():
        return False

    if options.search_text:
        needle = options.search_text.casefold()
        if needle not in record.title.casefold() and needle not in record.content.casefold():
            return False

    return True


def project(records: list[Record], options: ProjectionOptions | None = None) -> list[Record]:
    """
    Filter and sort records for presentation.

    Sorting is a total order: records with equal sort keys are ordered by
    id ascending, in both sort directions.

    Args:
        records: Records to project (left untouched)
        options: Filter and sort settings (defaults if None)

    Returns:
        New list of the matching records in display order
    """
    options = options or ProjectionOptions()

    selected = [record for record in records if matches(record, options)]

    # Two stable passes: id first, then the sort key. reverse=True keeps
    # equal keys in their existing (id ascending) order.
    selected.sort(key=lambda r: r.id)
    if options.sort_key == "title":
        selected.sort(key=lambda r: r.title.casefold(), reverse=options.sort_dir == "desc")
    else:
        selected.sort(key=lambda r: r.last_modified, reverse=options.sort_dir == "desc")

    log.debug("records_projected", total=len(records), selected=len(selected))
    return selected


def group_by_status(records: list[Record]) -> dict[RecordStatus, list[Record]]:
    """Bucket records by status, keeping input order within each bucket."""
    groups: dict[RecordStatus, list[Record]] = {status: [] for status in RecordStatus}
    for record in records:
        groups[record.status].append(record)
    return groups


def categories(records: list[Record]) -> list[str]:
    """Distinct category tags, sorted."""
    return sorted({record.category for record in records})
