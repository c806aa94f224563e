"""
PostgreSQL primary store.

Reads WordPress-shaped post tables (``ID``, ``post_type``, ``post_status``
plus content columns). Multisite tenants follow the WordPress table
naming: site 1 uses ``<prefix>posts``, site N uses ``<prefix>N_posts``.
"""

import logging
import uuid
from typing import Any, Dict, Iterator, Optional, Sequence

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from sync_audit.reconciliation.models import Record, RecordFilter

logger = logging.getLogger(__name__)

ID_COLUMN = "ID"
TYPE_COLUMN = "post_type"
STATUS_COLUMN = "post_status"

MAIN_TENANT_ID = 1


def posts_table(prefix: str, tenant_id: int) -> str:
    if tenant_id == MAIN_TENANT_ID:
        return f"{prefix}posts"
    return f"{prefix}{tenant_id}_posts"


class PostgresPrimaryStore:
    """Primary store backed by a PostgreSQL posts table."""

    def __init__(
        self,
        connection,
        table: str = "wp_posts",
        public_types: Sequence[str] = ("post", "page"),
        itersize: int = 1000
    ):
        """
        Args:
            connection: Open psycopg2 connection
            table: Posts table name
            public_types: Record types considered public
            itersize: Rows fetched per round trip while streaming
        """
        self.connection = connection
        self.table = table
        self._public_types = list(public_types)
        self.itersize = itersize

    @classmethod
    def from_settings(cls, settings) -> "PostgresPrimaryStore":
        logger.info(f"Connecting to PostgreSQL at {settings.primary_db_host}:{settings.primary_db_port}")
        connection = psycopg2.connect(
            host=settings.primary_db_host,
            port=settings.primary_db_port,
            database=settings.primary_db_name,
            user=settings.primary_db_user,
            password=settings.primary_db_password
        )
        return cls(
            connection,
            table=posts_table(settings.table_prefix, MAIN_TENANT_ID),
            public_types=settings.public_post_types,
            itersize=settings.batch_size * 10
        )

    def public_types(self) -> Sequence[str]:
        return list(self._public_types)

    def lookup(self, record_id: int) -> Optional[Record]:
        query = sql.SQL("SELECT * FROM {table} WHERE {id} = %s").format(
            table=sql.Identifier(self.table),
            id=sql.Identifier(ID_COLUMN)
        )
        with self.connection.cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(query, (record_id,))
            row = cursor.fetchone()

        return self._to_record(row) if row else None

    def stream(self, record_filter: RecordFilter) -> Iterator[Record]:
        """
        Yield matching records in id order through a server-side cursor.

        Rows written after the cursor opens may or may not be seen.
        """
        types = list(record_filter.types if record_filter.types is not None else self._public_types)
        statuses = list(record_filter.statuses)
        if not types or not statuses:
            return

        query = sql.SQL(
            "SELECT * FROM {table} WHERE {type} = ANY(%s) AND {status} = ANY(%s) ORDER BY {id}"
        ).format(
            table=sql.Identifier(self.table),
            type=sql.Identifier(TYPE_COLUMN),
            status=sql.Identifier(STATUS_COLUMN),
            id=sql.Identifier(ID_COLUMN)
        )

        cursor_name = f"sync_audit_{uuid.uuid4().hex}"
        logger.debug(f"Streaming {self.table} for types={types} statuses={statuses}")

        with self.connection.cursor(name=cursor_name, cursor_factory=RealDictCursor) as cursor:
            cursor.itersize = self.itersize
            cursor.execute(query, (types, statuses))
            for row in cursor:
                yield self._to_record(row)

    def count_by(self, record_type: str) -> Dict[str, int]:
        query = sql.SQL(
            "SELECT {status} AS status, COUNT(*) AS count FROM {table} WHERE {type} = %s GROUP BY {status}"
        ).format(
            table=sql.Identifier(self.table),
            type=sql.Identifier(TYPE_COLUMN),
            status=sql.Identifier(STATUS_COLUMN)
        )
        with self.connection.cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(query, (record_type,))
            return {row["status"]: int(row["count"]) for row in cursor.fetchall()}

    def close(self) -> None:
        self.connection.close()

    def _to_record(self, row: Dict[str, Any]) -> Record:
        row = dict(row)
        return Record(
            id=int(row.pop(ID_COLUMN)),
            type=row.pop(TYPE_COLUMN),
            status=row.pop(STATUS_COLUMN),
            fields=row
        )


class PrefixTenantSwitcher:
    """
    Switches a PostgresPrimaryStore (and optionally a search backend)
    between multisite tenants.
    """

    def __init__(
        self,
        store: PostgresPrimaryStore,
        table_prefix: str = "wp_",
        search_backend=None,
        index_pattern: Optional[str] = None,
        current_tenant: int = MAIN_TENANT_ID
    ):
        """
        Args:
            store: Store whose table is switched
            table_prefix: Base table prefix
            search_backend: Backend with ``use_index()``, switched alongside
            index_pattern: Index name pattern with a ``{tenant_id}`` field
            current_tenant: Tenant the store currently points at
        """
        self.store = store
        self.table_prefix = table_prefix
        self.search_backend = search_backend
        self.index_pattern = index_pattern
        self._current = current_tenant

    def current_tenant(self) -> int:
        return self._current

    def switch_to(self, tenant_id: int) -> None:
        self.store.table = posts_table(self.table_prefix, tenant_id)
        if self.search_backend is not None and self.index_pattern:
            self.search_backend.use_index(self.index_pattern.format(tenant_id=tenant_id))
        self._current = tenant_id
        logger.debug(f"Switched to site {tenant_id} ({self.store.table})")

    def list_tenants(self) -> Sequence[int]:
        """Live sites: not archived, spam or deleted."""
        query = sql.SQL(
            "SELECT blog_id FROM {table} WHERE archived = 0 AND spam = 0 AND deleted = 0 ORDER BY blog_id"
        ).format(table=sql.Identifier(f"{self.table_prefix}blogs"))

        with self.store.connection.cursor() as cursor:
            cursor.execute(query)
            return [int(row[0]) for row in cursor.fetchall()]
