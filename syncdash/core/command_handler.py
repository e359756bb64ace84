"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and drives the
synchronization controllers, rendering their store state through the
UserInterface.
"""

import logging
from typing import Optional

from syncdash.core.services.job_poll_controller import JobPollController
from syncdash.core.services.query_coalescer import QueryCoalescer
from syncdash.domain.interfaces.user_interface import UserInterface
from syncdash.domain.models.jobs import JobState
from syncdash.domain.models.search import SearchState
from syncdash.infrastructure.config.settings import get_tenant_id
from syncdash.infrastructure.config.tenancy import validate_tenant_id
from syncdash.infrastructure.store.tenant_store import TenantPartitionedStore

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to the controllers."""

    def __init__(
        self,
        poller: JobPollController,
        coalescer: QueryCoalescer,
        job_store: TenantPartitionedStore[JobState],
        search_store: TenantPartitionedStore[SearchState],
        ui: UserInterface,
    ):
        self.poller = poller
        self.coalescer = coalescer
        self.job_store = job_store
        self.search_store = search_store
        self.ui = ui

    async def handle_orphans(self, force: bool = False) -> bool:
        """Runs the orphan analysis poller until it settles; True on completion."""
        tenant = get_tenant_id()
        logger.info(f"Handling 'orphans' command for tenant '{tenant}' (force={force})")
        if force:
            self.poller.reset(tenant)

        unsubscribe = self.job_store.subscribe_tenant(tenant, self.ui.display_job_state)
        try:
            await self.poller.load(tenant)
            await self.poller.wait_until_settled(tenant)
        except Exception as e:
            logger.error(f"Orphan analysis command failed: {e}", exc_info=True)
            self.ui.display_error(f"Orphan analysis failed: {e}")
            return False
        finally:
            unsubscribe()

        state = self.job_store.get(tenant)
        return state.error is None and state.data is not None and state.data.is_complete

    async def handle_search(self, query: str, exact: bool = False) -> bool:
        """Discovers suggestions for ``query``, then retrieves the best one."""
        logger.info(f"Handling 'search' command: query='{query}', exact={exact}")
        try:
            self.coalescer.discover_terms(query)
            await self.coalescer.wait_until_idle()

            state = self.search_store.read()
            if state.discover_error:
                self.ui.display_warning(f"Discovery failed: {state.discover_error}")
            self.ui.display_suggestions(state.suggestions)

            if exact or not state.suggestions:
                await self.coalescer.select_exact_match(query.strip())
            else:
                await self.coalescer.select_suggestion(state.suggestions[0])
        except Exception as e:
            logger.error(f"Search command failed: {e}", exc_info=True)
            self.ui.display_error(f"Search failed: {e}")
            return False

        state = self.search_store.read()
        if state.retrieve_error:
            self.ui.display_error(f"Retrieval failed: {state.retrieve_error}")
            return False
        self.ui.display_results(state.search_results or {})
        return True

    def handle_tenant(self, tenant_id: Optional[str] = None) -> bool:
        """Shows the resolved tenant, or validates ``tenant_id`` when given."""
        return describe_tenant(self.ui, tenant_id)


def describe_tenant(ui: UserInterface, tenant_id: Optional[str] = None) -> bool:
    """Displays the resolved tenant, or the validation verdict for ``tenant_id``."""
    if tenant_id is None:
        ui.display_info(f"Current tenant: {get_tenant_id()}")
        return True
    valid, reason = validate_tenant_id(tenant_id)
    if not valid:
        ui.display_error(f"Invalid tenant ID '{tenant_id}': {reason}")
        return False
    ui.display_info(f"Tenant ID '{tenant_id}' is valid.")
    return True
