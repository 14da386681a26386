"""Record views for presentation"""

from offgrid_sync.query.projection import (
    ProjectionOptions,
    categories,
    group_by_status,
    matches,
    project,
)
from offgrid_sync.query.result_formatter import ResultFormatter

__all__ = [
    "ProjectionOptions",
    "ResultFormatter",
    "categories",
    "group_by_status",
    "matches",
    "project",
]
