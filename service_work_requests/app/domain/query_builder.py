"""
Search and filter predicate construction for the work request listing.

Predicates are emitted as SQL fragments with positional ``$n`` placeholders
and a matching tuple of bind values, ready for asyncpg.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

DEFAULT_LIMIT = 100
MAX_LIMIT = 500

# work_requests.id and status_id are int4 columns
INT4_MIN = -(2 ** 31)
INT4_MAX = 2 ** 31 - 1
INT8_MAX = 2 ** 63 - 1

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def parse_int(value: Any) -> Optional[int]:
    """Parse ``value`` as a whole integer, or return None.

    Strings must be entirely an optionally signed run of ASCII digits
    (surrounding whitespace is ignored); ``"42abc"`` is not an integer.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if not _INTEGER_RE.fullmatch(text):
        return None
    return int(text)


def parse_int4(value: Any) -> Optional[int]:
    """Like ``parse_int`` but only for values an int4 column can hold."""
    number = parse_int(value)
    if number is None or not INT4_MIN <= number <= INT4_MAX:
        return None
    return number


@dataclass(frozen=True)
class WorkRequestFilter:
    """Free-text search plus status filter, combined with AND."""
    search: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_query(cls, search: Optional[str] = None, filter_: Optional[str] = None,
                   status: Optional[str] = None) -> "WorkRequestFilter":
        # "filter" is accepted as an alias of "search"
        return cls(search=search or filter_ or None, status=status or None)

    @property
    def is_empty(self) -> bool:
        return not self.search and not self.status


@dataclass(frozen=True)
class SqlPredicate:
    clauses: Tuple[str, ...] = ()
    params: Tuple[Any, ...] = ()

    @property
    def where_clause(self) -> str:
        if not self.clauses:
            return ""
        return "WHERE " + " AND ".join(self.clauses)

    @property
    def next_index(self) -> int:
        """Placeholder number for the next bind value appended after these."""
        return len(self.params) + 1


def build_predicate(filters: WorkRequestFilter) -> SqlPredicate:
    """Translate a filter into WHERE clauses over ``wr``, ``ct`` and ``s``."""
    clauses = []
    params = []

    if filters.search:
        pattern = f"%{filters.search}%"
        search_id = parse_int4(filters.search)
        if search_id is not None:
            id_slot, text_slot = len(params) + 1, len(params) + 2
            clauses.append(
                f"(wr.id = ${id_slot} OR wr.address ILIKE ${text_slot} "
                f"OR wr.description ILIKE ${text_slot} OR ct.type_name ILIKE ${text_slot})"
            )
            params.extend([search_id, pattern])
        else:
            text_slot = len(params) + 1
            clauses.append(
                f"(wr.address ILIKE ${text_slot} OR wr.description ILIKE ${text_slot} "
                f"OR ct.type_name ILIKE ${text_slot})"
            )
            params.append(pattern)

    if filters.status:
        status_id = parse_int4(filters.status)
        slot = len(params) + 1
        if status_id is not None:
            clauses.append(f"wr.status_id = ${slot}")
            params.append(status_id)
        else:
            clauses.append(f"s.name ILIKE ${slot}")
            params.append(f"%{filters.status}%")

    return SqlPredicate(clauses=tuple(clauses), params=tuple(params))


@dataclass(frozen=True)
class Pagination:
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @classmethod
    def from_query(cls, limit: Any = None, offset: Any = None) -> "Pagination":
        """Normalize raw query values.

        A missing, zero, negative or unparseable limit falls back to the
        default; larger limits are capped. Offsets are floored at zero and
        otherwise only bounded by what a bigint holds.
        """
        parsed_limit = parse_int(limit)
        if parsed_limit is None or parsed_limit <= 0:
            parsed_limit = DEFAULT_LIMIT
        parsed_offset = parse_int(offset)
        if parsed_offset is None or parsed_offset < 0:
            parsed_offset = 0
        return cls(limit=min(parsed_limit, MAX_LIMIT), offset=min(parsed_offset, INT8_MAX))

    def has_more(self, total: int) -> bool:
        return self.offset + self.limit < total
