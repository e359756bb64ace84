"""Tenant-partitioned store.

Gives every controller the illusion of a single-tenant store while
holding independent state per tenant in one process-wide map. Slices are
created lazily from a default, replaced wholesale on update and never
deleted.
"""

import logging
from typing import Any, Callable, Dict, Generic, Mapping, TypeVar

from syncdash.domain.interfaces.observable import ObservableValue, Unsubscribe
from syncdash.domain.models.common import TenantId
from syncdash.infrastructure.config.settings import get_tenant_id
from syncdash.infrastructure.store.observable import Atom, merge

logger = logging.getLogger(__name__)

S = TypeVar("S")


class TenantPartitionedStore(ObservableValue[S], Generic[S]):
    """Per-tenant slices of ``S`` kept in a single Atom."""

    def __init__(
        self,
        default_factory: Callable[[], S],
        tenant_resolver: Callable[[], str] = get_tenant_id,
        name: str = "store",
    ):
        """Initializes the store.

        Args:
            default_factory: Builds the slice returned for an unseen tenant.
            tenant_resolver: Resolves the current tenant; called on every
                read/subscribe so a runtime tenant switch is seen at once.
            name: Label used in log messages.
        """
        self._default_factory = default_factory
        self._resolve_tenant = tenant_resolver
        self.name = name
        self._partitions: Atom[Dict[TenantId, S]] = Atom({})

    def current_tenant(self) -> TenantId:
        return TenantId(self._resolve_tenant())

    def get(self, tenant_id: str) -> S:
        """Returns the slice for ``tenant_id`` or the default when absent."""
        partitions = self._partitions.read()
        if tenant_id in partitions:
            return partitions[TenantId(tenant_id)]
        return self._default_factory()

    def set(self, tenant_id: str, updates: Mapping[str, Any]) -> None:
        """Shallow-merges ``updates`` into the tenant's slice and republishes the map.

        Every subscriber is notified, including those of other tenants;
        they re-derive their own slice.
        """
        updated = merge(self.get(tenant_id), updates)
        logger.debug(f"[{self.name}] tenant={tenant_id} updated fields={sorted(updates)}")
        self._partitions.write({TenantId(tenant_id): updated})

    def reset(self, tenant_id: str) -> None:
        """Replaces the tenant's slice with a fresh default."""
        partitions = dict(self._partitions.read())
        partitions[TenantId(tenant_id)] = self._default_factory()
        self._partitions.replace(partitions)

    def partitions(self) -> Dict[TenantId, S]:
        """Snapshot of every tenant slice created so far."""
        return dict(self._partitions.read())

    # --- ObservableValue for the current tenant ---

    def read(self) -> S:
        return self.get(self.current_tenant())

    def write(self, partial: Mapping[str, Any]) -> None:
        self.set(self.current_tenant(), partial)

    def subscribe(self, callback: Callable[[S], None]) -> Unsubscribe:
        """Forwards the subscribing tenant's slice on every change.

        The tenant is resolved once, at subscription time.
        """
        tenant_id = self.current_tenant()
        return self.subscribe_tenant(tenant_id, callback)

    def subscribe_tenant(self, tenant_id: str, callback: Callable[[S], None]) -> Unsubscribe:
        """Like subscribe(), for an explicit tenant."""
        return self._partitions.subscribe(lambda _partitions: callback(self.get(tenant_id)))
