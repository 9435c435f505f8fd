"""Client attribution: display name, route, zone and salesperson.

Three sources are reconciled, any of which may be missing:

- client registry (name, route, cached zone)
- route planning table (zone, salesperson per route)
- sales ledger (name captured at sale time)
"""

from __future__ import annotations

import logging

from bajas.eligibility.sales_history import SalesHistory, SalesHistoryIndex
from bajas.models import Attribution, normalize_code
from bajas.storage.base import SalesStore

logger = logging.getLogger(__name__)


class AttributionResolver:
    """Resolves who a client is and where it sits in the route planning.

    Read-only. Storage failures propagate to the caller.
    """

    def __init__(self, store: SalesStore, sales_index: SalesHistoryIndex | None = None):
        self.store = store
        self.sales_index = sales_index or SalesHistoryIndex(store)

    async def resolve(
        self,
        client_code: str,
        history: SalesHistory | None = None,
    ) -> Attribution:
        """Resolve attribution for ``client_code``.

        Args:
            client_code: Client code as entered (trimmed here)
            history: Already-loaded sales history, to avoid a second sales read

        Returns:
            Attribution; ``display_name`` is None when the client is unknown.
            Route, zone and salesperson are empty strings when unknown.
        """
        code = normalize_code(client_code)
        client = await self.store.get_client_by_code(code)

        if client is not None and client.name:
            display_name: str | None = client.name
        else:
            if history is None:
                history = await self.sales_index.history(code)
            display_name = history.latest_client_name or None
            if client is None and display_name:
                logger.debug(f"Client {code} not in registry, name taken from sales")

        route = client.route if client is not None else ""
        zone = ""
        salesperson = ""

        if route:
            assignment = await self.store.get_route_assignment(route)
            if assignment is not None:
                zone = assignment.zone or (client.zone if client is not None else "")
                salesperson = assignment.salesperson
            else:
                logger.debug(f"Route {route} of client {code} not in route planning")

        return Attribution(
            display_name=display_name,
            route=route,
            zone=zone,
            salesperson=salesperson,
        )
