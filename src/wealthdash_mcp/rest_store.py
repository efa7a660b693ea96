"""Remote ledger store over a PostgREST-style HTTP API."""

import logging
from datetime import date
from typing import Any

import httpx

from .database import Filter, LedgerStore, Order
from .errors import StoreError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
NET_BURN_RPC = "get_cash_runway_net_burn"


class RestStore(LedgerStore):
    """Ledger tables served by a PostgREST endpoint (e.g. Supabase)."""

    def __init__(
        self,
        url: str,
        key: str,
        page_size: int = 1000,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the HTTP client.

        Args:
            url: Project URL; "/rest/v1" is appended.
            key: Service key sent as apikey and bearer token.
            page_size: Rows per page for paginated reads.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = f"{url.strip().rstrip('/')}/rest/v1"
        self.page_size = page_size
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"HTTP error on {method} {path}: {e}") from e

        if response.status_code >= 400:
            raise StoreError(
                f"Store {method} {path} failed ({response.status_code}): {response.text[:500]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Invalid JSON response from {path}: {e}") from e

    def fetch_page(
        self,
        table: str,
        filters: list[Filter],
        order: Order | None,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        params: list[tuple[str, Any]] = [
            ("select", "*"),
            ("limit", limit),
            ("offset", offset),
        ]
        if order is not None:
            direction = "desc" if order.descending else "asc"
            params.append(("order", f"{order.column}.{direction},id.asc"))
        for flt in filters:
            params.append((flt.column, _encode_filter(flt)))

        page = self._request("GET", f"/{table}", params=params)
        if not isinstance(page, list):
            raise StoreError(f"Unexpected response type for table {table}")
        return page

    def get_net_burn(self, start: date, end: date, excluded: tuple[str, ...]) -> dict[str, float]:
        """Net spend per currency from the server-side aggregate.

        The remote function applies its own category exclusions, so
        ``excluded`` is not sent.
        """
        logger.debug("Calling %s for %s..%s", NET_BURN_RPC, start, end)
        data = self._request(
            "POST",
            f"/rpc/{NET_BURN_RPC}",
            json={"p_start": start.isoformat(), "p_end": end.isoformat()},
        )
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict):
            row = {}
        gbp = row.get("gbp_net")
        usd = row.get("usd_net")
        return {
            "GBP": float(gbp) if gbp is not None else 0.0,
            "USD": float(usd) if usd is not None else 0.0,
        }


def _encode_filter(flt: Filter) -> str:
    if flt.op == "ilike":
        return f"ilike.*{flt.value}*"
    if flt.op in ("eq", "gte", "lte"):
        return f"{flt.op}.{flt.value}"
    raise StoreError(f"Unsupported filter operator: {flt.op}")
