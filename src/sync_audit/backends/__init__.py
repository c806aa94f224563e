"""
Concrete adapters for the stores the audit core talks to.

- search_http: Elasticsearch-compatible search over HTTP (requests)
- postgres_store: WordPress-shaped posts tables in PostgreSQL (psycopg2)
"""

from sync_audit.backends.postgres_store import PostgresPrimaryStore, PrefixTenantSwitcher
from sync_audit.backends.search_http import HttpSearchBackend

__all__ = [
    "HttpSearchBackend",
    "PostgresPrimaryStore",
    "PrefixTenantSwitcher",
]
