"""Defines common Value Objects used across the synchronization contexts.

These objects represent simple values like tenant ids, session ids and
query strings, ensuring consistency and type safety.
"""

from typing import NewType

# === Tenancy Context ===
TenantId = NewType("TenantId", str)            # Opaque tenant/site key
SessionId = NewType("SessionId", str)          # Backend visit session id

# === Search Context ===
QueryText = NewType("QueryText", str)          # Raw text typed by the user
SearchTerm = NewType("SearchTerm", str)        # A committed discovery term

DEFAULT_TENANT_ID = TenantId("default")
