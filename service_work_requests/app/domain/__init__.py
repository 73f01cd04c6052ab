"""
Domain helpers for the Work Requests service.

Pure functions and value types: filter/pagination handling for the
listing endpoint and creator resolution. Nothing here touches I/O.
"""

from .creators import CreatorKind, CreatorRef, attach_creator_names, group_by_kind
from .query_builder import (
    Pagination,
    SqlPredicate,
    WorkRequestFilter,
    build_predicate,
    parse_int,
    parse_int4,
)

__all__ = [
    "CreatorKind",
    "CreatorRef",
    "Pagination",
    "SqlPredicate",
    "WorkRequestFilter",
    "attach_creator_names",
    "build_predicate",
    "group_by_kind",
    "parse_int",
    "parse_int4",
]
