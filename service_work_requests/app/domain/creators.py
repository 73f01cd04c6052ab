"""
Work request creators.

A work request is filed by a user, an agent or a social-media person. The
creator is carried as a ``(kind, id)`` pair and resolved to a display name
through one lookup table per kind.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set


class CreatorKind(str, Enum):
    """Creator kinds stored in ``work_requests.creator_type``."""
    USER = "user"
    AGENT = "agent"
    SOCIAL_MEDIA = "socialmedia"


@dataclass(frozen=True)
class CreatorSource:
    table: str
    name_column: str = "name"

    def lookup_query(self) -> str:
        return f"SELECT id, {self.name_column} AS name FROM {self.table} WHERE id = ANY($1::int[])"


CREATOR_SOURCES: Dict[CreatorKind, CreatorSource] = {
    CreatorKind.USER: CreatorSource("users"),
    CreatorKind.AGENT: CreatorSource("agents"),
    CreatorKind.SOCIAL_MEDIA: CreatorSource("socialmediaperson"),
}


@dataclass(frozen=True)
class CreatorRef:
    kind: CreatorKind
    id: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["CreatorRef"]:
        """Build a reference from ``creator_type``/``creator_id`` columns."""
        creator_type = row.get("creator_type")
        creator_id = row.get("creator_id")
        if creator_type is None or creator_id is None:
            return None
        try:
            kind = CreatorKind(creator_type)
        except ValueError:
            return None
        return cls(kind=kind, id=int(creator_id))


def group_by_kind(rows: Iterable[Mapping[str, Any]]) -> Dict[CreatorKind, Set[int]]:
    """Collect the creator ids to look up, per kind."""
    grouped: Dict[CreatorKind, Set[int]] = defaultdict(set)
    for row in rows:
        ref = CreatorRef.from_row(row)
        if ref is not None:
            grouped[ref.kind].add(ref.id)
    return dict(grouped)


def attach_creator_names(rows: List[Dict[str, Any]],
                         names: Mapping[CreatorRef, Optional[str]]) -> List[Dict[str, Any]]:
    """Set ``creator_name`` on each row; unknown creators get None."""
    for row in rows:
        ref = CreatorRef.from_row(row)
        row["creator_name"] = names.get(ref) if ref is not None else None
    return rows
