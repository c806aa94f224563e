"""
HTTP search backend.

Posts query DSL to an Elasticsearch-compatible ``_search`` endpoint and
returns the ``{"results": {"hits": [...], "total": n, "aggregations": {...}}}``
envelope the audit core expects.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import requests

from sync_audit.reconciliation.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def to_envelope(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a raw search response into the result envelope.

    Bodies that already carry a ``results`` key are returned unchanged.
    """
    if "results" in body:
        return body

    hits = body.get("hits", {})
    total = hits.get("total")
    if isinstance(total, dict):
        total = total.get("value")

    results: Dict[str, Any] = {"hits": hits.get("hits", []), "total": total}
    if "aggregations" in body:
        results["aggregations"] = body["aggregations"]

    return {"results": results}


class HttpSearchBackend:
    """Search backend speaking the Elasticsearch REST API."""

    def __init__(
        self,
        base_url: str,
        index: str = "posts",
        timeout: float = 30.0,
        auth: Optional[Tuple[str, str]] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            base_url: Cluster URL, e.g. ``http://localhost:9200``
            index: Index (or alias) to search
            timeout: Request timeout in seconds
            auth: Optional (username, password) for basic auth
            session: Session to reuse; a new one if not provided
        """
        self.base_url = base_url.rstrip("/")
        self.index = index
        self.timeout = timeout
        self.session = session or requests.Session()
        if auth:
            self.session.auth = auth

    @classmethod
    def from_settings(cls, settings) -> "HttpSearchBackend":
        auth = None
        if settings.search_username and settings.search_password:
            auth = (settings.search_username, settings.search_password)
        return cls(settings.search_url, settings.search_index, settings.search_timeout, auth)

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/{self.index}/_search"

    def use_index(self, index: str) -> None:
        """Point subsequent searches at another index."""
        logger.debug(f"Switching search index from {self.index} to {index}")
        self.index = index

    def search(self, dsl: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a query.

        Raises:
            StoreUnavailable: On transport errors, error statuses or
                undecodable bodies
        """
        try:
            response = self.session.post(self.search_url, json=dsl, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise StoreUnavailable(f"Search request to {self.search_url} failed: {e}")
        except ValueError as e:
            raise StoreUnavailable(f"Search response from {self.search_url} is not JSON: {e}")

        if not isinstance(body, dict):
            raise StoreUnavailable(f"Unexpected search response type: {type(body).__name__}")
        if body.get("error"):
            raise StoreUnavailable(f"Search index reported an error: {body['error']}")

        return to_envelope(body)

    def close(self) -> None:
        self.session.close()
