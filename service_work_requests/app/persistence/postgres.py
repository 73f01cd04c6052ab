"""
PostgreSQL read layer for work requests.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import asyncpg

from shared.errors import AccessLayerException
from shared.logging import get_logger
from ..domain.creators import CREATOR_SOURCES, CreatorRef, attach_creator_names, group_by_kind
from ..domain.query_builder import INT4_MAX, INT4_MIN, Pagination, WorkRequestFilter, build_predicate


LIST_COLUMNS = """
    wr.id,
    wr.request_date,
    wr.address,
    wr.description,
    wr.zone_id,
    wr.division_id,
    wr.town_id,
    ST_Y(wr.geo_tag) AS latitude,
    ST_X(wr.geo_tag) AS longitude,
    s.name AS status_name,
    ct.type_name AS complaint_type,
    t.town AS town_name,
    d.title AS district_name,
    wr.creator_type,
    wr.creator_id,
    wr.created_date
"""

DETAIL_COLUMNS = """
    wr.id,
    wr.request_date,
    wr.address,
    wr.description,
    wr.zone_id,
    wr.division_id,
    wr.town_id,
    wr.subtown_id,
    ST_Y(wr.geo_tag) AS latitude,
    ST_X(wr.geo_tag) AS longitude,
    wr.contact_number,
    wr.status_id,
    s.name AS status_name,
    ct.type_name AS complaint_type,
    wr.complaint_type_id,
    cst.subtype_name AS complaint_subtype,
    t.town AS town_name,
    st.subtown AS subtown_name,
    d.title AS district_name,
    wr.created_date,
    wr.updated_date,
    wr.creator_id,
    wr.creator_type,
    wr.assigned_to,
    u2.name AS assigned_to_name,
    wr.executive_engineer_id,
    exen.name AS executive_engineer_name,
    wr.contractor_id,
    COALESCE(contractor.company_name, contractor.name) AS contractor_name,
    (
        SELECT json_agg(
            json_build_object(
                'id', wrl.id,
                'latitude', wrl.latitude,
                'longitude', wrl.longitude,
                'description', wrl.description
            )
        )
        FROM work_request_locations wrl
        WHERE wrl.work_request_id = wr.id
    ) AS additional_locations,
    (
        SELECT link FROM final_videos WHERE work_request_id = wr.id LIMIT 1
    ) AS final_video_link
"""

# Joins referenced by the listing predicate (ct, s) must appear in both the
# count and the data query.
FILTER_JOINS = """
    LEFT JOIN complaint_types ct ON wr.complaint_type_id = ct.id
    LEFT JOIN status s ON wr.status_id = s.id
"""

LIST_JOINS = FILTER_JOINS + """
    LEFT JOIN town t ON wr.town_id = t.id
    LEFT JOIN district d ON t.district_id = d.id
"""

DETAIL_JOINS = FILTER_JOINS + """
    LEFT JOIN complaint_subtypes cst ON wr.complaint_subtype_id = cst.id
    LEFT JOIN town t ON wr.town_id = t.id
    LEFT JOIN subtown st ON wr.subtown_id = st.id
    LEFT JOIN district d ON t.district_id = d.id
    LEFT JOIN users u2 ON wr.assigned_to = u2.id
    LEFT JOIN agents exen ON wr.executive_engineer_id = exen.id
    LEFT JOIN agents contractor ON wr.contractor_id = contractor.id
"""

VERIFY_QUERY = """
    SELECT
        wr.id,
        wr.address,
        wr.description,
        wr.status_id,
        wr.request_date,
        wr.created_date,
        s.name AS status_name,
        ct.type_name AS complaint_type
    FROM work_requests wr
""" + FILTER_JOINS + """
    WHERE wr.id = $1
"""

BEFORE_CONTENT_QUERY = """
    SELECT
        bc.id,
        bc.work_request_id,
        bc.description,
        bc.link,
        bc.content_type,
        bc.file_name,
        bc.file_size,
        bc.file_type,
        bc.created_at,
        bc.creator_id,
        bc.creator_type,
        bc.creator_name,
        ST_Y(bc.geo_tag) AS latitude,
        ST_X(bc.geo_tag) AS longitude
    FROM before_content bc
    WHERE bc.work_request_id = $1
    ORDER BY bc.created_at DESC
"""

VIDEOS_QUERY = """
    SELECT
        id,
        link,
        description,
        file_name,
        file_size,
        file_type,
        created_at,
        creator_name
    FROM videos
    WHERE work_request_id = $1
    ORDER BY created_at DESC
"""


def _in_id_range(work_request_id: int) -> bool:
    return INT4_MIN <= work_request_id <= INT4_MAX


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns into Python objects."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class WorkRequestRepository:
    """Read-only queries over work requests and their media."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("work-requests.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30,
                init=_init_connection,
            )
            self.logger.info("PostgreSQL pool started", min_size=self.min_size, max_size=self.max_size)

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL pool", error=str(e))
            raise AccessLayerException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL pool stopped")

    async def ping(self) -> bool:
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            self.logger.warning("PostgreSQL ping failed", error=str(e))
            return False

    def _acquire(self):
        if self.pool is None:
            raise RuntimeError("PostgreSQL pool is not started")
        return self.pool.acquire()

    async def _resolve_creators(self, conn, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        names: Dict[CreatorRef, Optional[str]] = {}
        for kind, ids in group_by_kind(rows).items():
            source = CREATOR_SOURCES[kind]
            found = await conn.fetch(source.lookup_query(), sorted(ids))
            for record in found:
                names[CreatorRef(kind=kind, id=record["id"])] = record["name"]
        return attach_creator_names(rows, names)

    async def list_work_requests(self, filters: WorkRequestFilter,
                                 pagination: Pagination) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of matching work requests and the total match count."""
        predicate = build_predicate(filters)
        limit_slot = predicate.next_index

        count_query = f"""
            SELECT COUNT(*) AS total
            FROM work_requests wr
            {FILTER_JOINS}
            {predicate.where_clause}
        """
        data_query = f"""
            SELECT {LIST_COLUMNS}
            FROM work_requests wr
            {LIST_JOINS}
            {predicate.where_clause}
            ORDER BY wr.created_date DESC
            LIMIT ${limit_slot} OFFSET ${limit_slot + 1}
        """

        async with self._acquire() as conn:
            total = await conn.fetchval(count_query, *predicate.params)
            records = await conn.fetch(data_query, *predicate.params, pagination.limit, pagination.offset)
            rows = [dict(record) for record in records]
            rows = await self._resolve_creators(conn, rows)

        for row in rows:
            row.pop("creator_type", None)
            row.pop("creator_id", None)
        return rows, int(total or 0)

    async def get_work_request(self, work_request_id: int) -> Optional[Dict[str, Any]]:
        """Full work request detail, or None when it does not exist."""
        if not _in_id_range(work_request_id):
            return None

        query = f"""
            SELECT {DETAIL_COLUMNS}
            FROM work_requests wr
            {DETAIL_JOINS}
            WHERE wr.id = $1
        """
        async with self._acquire() as conn:
            record = await conn.fetchrow(query, work_request_id)
            if record is None:
                return None
            rows = await self._resolve_creators(conn, [dict(record)])
        return rows[0]

    async def get_verification_summary(self, work_request_id: int) -> Optional[Dict[str, Any]]:
        if not _in_id_range(work_request_id):
            return None
        async with self._acquire() as conn:
            record = await conn.fetchrow(VERIFY_QUERY, work_request_id)
        return dict(record) if record is not None else None

    async def work_request_exists(self, work_request_id: int) -> bool:
        if not _in_id_range(work_request_id):
            return False
        async with self._acquire() as conn:
            found = await conn.fetchval("SELECT id FROM work_requests WHERE id = $1", work_request_id)
        return found is not None

    async def list_before_content(self, work_request_id: int) -> List[Dict[str, Any]]:
        async with self._acquire() as conn:
            records = await conn.fetch(BEFORE_CONTENT_QUERY, work_request_id)
        return [dict(record) for record in records]

    async def list_videos(self, work_request_id: int) -> List[Dict[str, Any]]:
        async with self._acquire() as conn:
            records = await conn.fetch(VIDEOS_QUERY, work_request_id)
        return [dict(record) for record in records]
