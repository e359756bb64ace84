"""HTTP implementation of the RemoteApi interface.

Wraps ``httpx.AsyncClient``. Every call carries the tenant id and a
backend visit session id as headers, and every outcome (including
transport failures) is normalized into an ApiResponse envelope.
"""

import logging
import random
import string
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from syncdash.domain.interfaces.remote_api import RemoteApi
from syncdash.domain.models.api import ApiResponse
from syncdash.domain.models.common import SessionId, TenantId

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
SESSION_ENDPOINT = "/api/v1/auth/visit"
TENANT_HEADER = "X-Tenant-ID"
SESSION_HEADER = "X-Session-ID"


def fallback_session_id() -> SessionId:
    """Locally generated session id used when the backend cannot issue one."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return SessionId(f"ssr-fallback-{int(time.time() * 1000)}-{suffix}")


class RemoteApiClient(RemoteApi):
    """Tenant-aware backend client."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the client.

        Args:
            base_url: Backend root, e.g. 'http://localhost:8080'.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self._sessions: Dict[TenantId, SessionId] = {}
        logger.info(f"RemoteApiClient initialized: base_url={self.base_url}, timeout={timeout}s")

    async def ensure_session(self, tenant_id: TenantId) -> SessionId:
        """Returns the cached session id for the tenant, creating it on first use."""
        session_id = self._sessions.get(tenant_id)
        if session_id:
            return session_id

        try:
            response = await self._client.post(
                SESSION_ENDPOINT,
                json={},
                headers={"Content-Type": "application/json", TENANT_HEADER: tenant_id},
            )
            response.raise_for_status()
            issued = response.json().get("sessionId")
            if not issued:
                raise ValueError("Backend did not return a sessionId")
            session_id = SessionId(str(issued))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Backend session creation failed for tenant '{tenant_id}': {e}. Using fallback session id.")
            session_id = fallback_session_id()

        self._sessions[tenant_id] = session_id
        logger.debug(f"Session for tenant '{tenant_id}': {session_id}")
        return session_id

    async def request(
        self,
        method: str,
        endpoint: str,
        tenant_id: TenantId,
        params: Optional[Mapping[str, Any]] = None,
        payload: Optional[Any] = None,
    ) -> ApiResponse:
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        session_id = await self.ensure_session(tenant_id)
        headers = {
            "Content-Type": "application/json",
            TENANT_HEADER: tenant_id,
            SESSION_HEADER: session_id,
        }

        try:
            response = await self._client.request(method, path, params=params, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} for tenant '{tenant_id}' failed: {type(e).__name__}: {e}")
            return ApiResponse.fail(str(e) or "Network error")

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"{method} {path} returned a non-JSON body (HTTP {response.status_code})")
            return ApiResponse.fail(f"HTTP {response.status_code}: invalid JSON response")

        if not response.is_success:
            error = body.get("error") if isinstance(body, dict) else None
            logger.debug(f"{method} {path} -> HTTP {response.status_code}: {error}")
            return ApiResponse.fail(
                error or f"HTTP {response.status_code}",
                data=body.get("data") if isinstance(body, dict) else None,
            )

        if isinstance(body, dict):
            data = body.get("data") or body
            return ApiResponse.ok(data, message=body.get("message"))
        return ApiResponse.ok(body)

    async def aclose(self) -> None:
        """Releases the underlying connection pool."""
        await self._client.aclose()
