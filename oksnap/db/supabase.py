"""
Minimal Supabase (PostgREST) client over requests.
Only the three verbs the app needs: filtered select, upsert-on-conflict, filtered delete.
"""
import logging
from typing import Optional

import requests

from oksnap.core.config import QUOTA_STORE_TIMEOUT, SupabaseConfig, get_supabase_config
from oksnap.core.errors import ExternalServiceError, TableNotFoundError

logger = logging.getLogger(__name__)

# PostgREST answers 404 for unknown tables and 406 when the schema cache does not know them yet
TABLE_MISSING_STATUSES = (404, 406)


class SupabaseRestClient:
    def __init__(self, config: SupabaseConfig, session: Optional[requests.Session] = None,
                 timeout: float = QUOTA_STORE_TIMEOUT):
        self.config = config
        # requests.request opens and closes a session per call
        self.session = session or requests
        self.timeout = timeout

    def _headers(self, prefer: Optional[str] = None) -> dict:
        headers = {
            "apikey": self.config.key,
            "Authorization": f"Bearer {self.config.key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _url(self, table: str) -> str:
        return f"{self.config.url}/rest/v1/{table}"

    def _request(self, method: str, table: str, params: Optional[dict] = None,
                 json_body=None, prefer: Optional[str] = None) -> requests.Response:
        logger.debug("[Supabase] %s %s params=%s", method, table, params)
        try:
            response = self.session.request(
                method,
                self._url(table),
                params=params,
                json=json_body,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ExternalServiceError(f"Supabase {method} {table} timed out: {e}",
                                       service="supabase", timeout=True) from e
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError(f"Supabase {method} {table} failed: {e}", service="supabase") from e

        if response.status_code in TABLE_MISSING_STATUSES:
            raise TableNotFoundError(
                f"Supabase table '{table}' not found ({response.status_code})",
                service="supabase",
                upstream_status=response.status_code,
            )
        if not response.ok:
            raise ExternalServiceError(
                f"Supabase {method} {table} failed: {response.status_code} - {response.text[:300]}",
                service="supabase",
                upstream_status=response.status_code,
            )
        return response

    def select(self, table: str, filters: Optional[dict] = None, columns: str = "*",
               order: Optional[str] = None) -> list:
        """
        Args:
            filters: column -> PostgREST filter expression, e.g. {"slug": "eq.kimchi-stew"}
            order: e.g. "created_at.desc"
        """
        params = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        response = self._request("GET", table, params=params)
        data = response.json()
        return data if isinstance(data, list) else []

    def upsert(self, table: str, rows, return_representation: bool = False) -> list:
        """Insert or merge on the table's primary key."""
        prefer = "resolution=merge-duplicates"
        if return_representation:
            prefer += ",return=representation"
        response = self._request("POST", table, json_body=rows, prefer=prefer)
        if not return_representation or not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    def delete(self, table: str, filters: dict) -> None:
        if not filters:
            # PostgREST refuses unfiltered deletes anyway; never send one.
            raise ValueError("delete requires at least one filter")
        self._request("DELETE", table, params=dict(filters))


def eq(value) -> str:
    return f"eq.{value}"


def get_supabase_client(timeout: float = QUOTA_STORE_TIMEOUT) -> Optional[SupabaseRestClient]:
    """Return a client when Supabase is configured, otherwise None."""
    config = get_supabase_config()
    if not config:
        return None
    return SupabaseRestClient(config, timeout=timeout)
