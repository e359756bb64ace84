"""Interface for the Remote API client.

Defines the contract for authenticated, tenant-scoped calls to the
dashboard backend. Implementations never raise: every outcome is reported
through an ApiResponse envelope.
"""

import abc
from typing import Any, Mapping, Optional

from syncdash.domain.models.api import ApiResponse
from syncdash.domain.models.common import QueryText, SearchTerm, TenantId

ORPHAN_ANALYSIS_ENDPOINT = "/api/v1/admin/orphan-analysis"
DISCOVER_ENDPOINT = "/api/v1/search/discover"
RETRIEVE_ENDPOINT = "/api/v1/search/retrieve"


class RemoteApi(abc.ABC):
    """Abstract Base Class for backend calls."""

    @abc.abstractmethod
    async def request(
        self,
        method: str,
        endpoint: str,
        tenant_id: TenantId,
        params: Optional[Mapping[str, Any]] = None,
        payload: Optional[Any] = None,
    ) -> ApiResponse:
        """Performs one call with tenant and session headers attached.

        Args:
            method: HTTP method ('GET', 'POST', 'PUT').
            endpoint: Path relative to the backend base URL.
            tenant_id: Tenant whose data is addressed.
            params: Optional query string parameters.
            payload: Optional JSON body.

        Returns:
            The normalized envelope.
        """
        pass

    async def get(self, endpoint: str, tenant_id: TenantId, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.request("GET", endpoint, tenant_id, params=params)

    async def post(self, endpoint: str, tenant_id: TenantId, payload: Optional[Any] = None) -> ApiResponse:
        return await self.request("POST", endpoint, tenant_id, payload=payload)

    async def put(self, endpoint: str, tenant_id: TenantId, payload: Optional[Any] = None) -> ApiResponse:
        return await self.request("PUT", endpoint, tenant_id, payload=payload)

    async def fetch_orphan_analysis(self, tenant_id: TenantId) -> ApiResponse:
        """Fetches the current state of the orphan analysis job."""
        return await self.get(ORPHAN_ANALYSIS_ENDPOINT, tenant_id)

    async def discover(self, tenant_id: TenantId, query: QueryText) -> ApiResponse:
        """Asks for term suggestions matching a free-text query."""
        return await self.get(DISCOVER_ENDPOINT, tenant_id, params={"q": query})

    async def retrieve(self, tenant_id: TenantId, term: SearchTerm, is_topic: bool) -> ApiResponse:
        """Fetches categorized results for a committed term."""
        return await self.post(RETRIEVE_ENDPOINT, tenant_id, payload={"term": term, "isTopic": is_topic})
