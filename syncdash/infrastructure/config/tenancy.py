"""Tenant id helpers: hostname mapping and validation rules."""

import re
from typing import Optional, Tuple

from syncdash.domain.models.common import DEFAULT_TENANT_ID, TenantId

LOCAL_TENANT_ID = TenantId("localhost")
SANDBOX_DOMAINS = ("tractstack", "freewebpress")

_TENANT_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")


def tenant_from_hostname(hostname: Optional[str]) -> TenantId:
    """Maps a site hostname to its tenant.

    ``localhost``/``127.0.0.1`` map to "localhost", sandbox hosts of the form
    ``<tenant>.sandbox.<tractstack|freewebpress>.com`` map to ``<tenant>``,
    anything else maps to "default".
    """
    if not hostname:
        return DEFAULT_TENANT_ID
    if hostname in ("localhost", "127.0.0.1"):
        return LOCAL_TENANT_ID

    parts = hostname.split(".")
    if (
        len(parts) >= 4
        and parts[1] == "sandbox"
        and parts[2] in SANDBOX_DOMAINS
        and parts[3] == "com"
    ):
        return TenantId(parts[0])
    return DEFAULT_TENANT_ID


def validate_tenant_id(tenant_id: str) -> Tuple[bool, Optional[str]]:
    """Checks a tenant id against the backend's provisioning rules.

    Returns:
        (True, None) when valid, otherwise (False, reason).
    """
    if len(tenant_id) < 3 or len(tenant_id) > 12:
        return False, "Tenant ID must be 3-12 characters long"
    if tenant_id != tenant_id.lower():
        return False, "Tenant ID must be lowercase"
    if not _TENANT_ID_PATTERN.match(tenant_id):
        return False, "Tenant ID can only contain lowercase letters, numbers, and dashes"
    if tenant_id == DEFAULT_TENANT_ID:
        return False, "'default' is a reserved tenant ID"
    return True, None
