"""In-memory observable stores.

Provides the Atom observable value and the TenantPartitionedStore that
isolates cached state per tenant inside one process-wide map.
Bounded Context: Client State
"""

from syncdash.infrastructure.store.observable import Atom
from syncdash.infrastructure.store.tenant_store import TenantPartitionedStore

__all__ = ["Atom", "TenantPartitionedStore"]
