"""Main entry point for the syncdash application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import typer
from typing_extensions import Annotated

from syncdash.core.command_handler import CommandHandler, describe_tenant
from syncdash.core.services.job_poll_controller import JobPollController
from syncdash.core.services.query_coalescer import QueryCoalescer
from syncdash.domain.models.jobs import JobState
from syncdash.domain.models.search import SearchState
from syncdash.infrastructure.api.remote_client import RemoteApiClient
from syncdash.infrastructure.cli.display import ConsoleDisplay
from syncdash.infrastructure.clock.loop_clock import LoopClock
from syncdash.infrastructure.config.settings import (
    get_backend_url, get_poll_policy, get_search_timing, load_configuration, set_tenant_id
)
from syncdash.infrastructure.config.tenancy import tenant_from_hostname
from syncdash.infrastructure.monitoring.logger_setup import setup_logging_from_config
from syncdash.infrastructure.store.tenant_store import TenantPartitionedStore

logger = logging.getLogger(__name__)

# --- Dependency Injection (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command run.

    This acts as the Composition Root.
    """
    load_configuration()
    setup_logging_from_config()

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['clock'] = LoopClock()
    dependencies['api'] = RemoteApiClient(base_url=get_backend_url())
    dependencies['job_store'] = TenantPartitionedStore(JobState, name="orphan-analysis")
    dependencies['search_store'] = TenantPartitionedStore(SearchState, name="search")
    dependencies['poller'] = JobPollController(
        api=dependencies['api'],
        store=dependencies['job_store'],
        clock=dependencies['clock'],
        policy=get_poll_policy(),
    )
    dependencies['coalescer'] = QueryCoalescer(
        api=dependencies['api'],
        store=dependencies['search_store'],
        clock=dependencies['clock'],
        timing=get_search_timing(),
    )
    dependencies['command_handler'] = CommandHandler(
        poller=dependencies['poller'],
        coalescer=dependencies['coalescer'],
        job_store=dependencies['job_store'],
        search_store=dependencies['search_store'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="syncdash",
    help="syncdash: tenant-scoped synchronization with the content dashboard backend.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(command: Callable[[CommandHandler], Awaitable[bool]]) -> bool:
    """Builds dependencies, runs one async command, and closes the API client."""
    dependencies = create_dependencies()

    async def runner() -> bool:
        try:
            return await command(dependencies['command_handler'])
        finally:
            await dependencies['api'].aclose()

    try:
        return asyncio.run(runner())
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        dependencies['ui'].display_error(f"Command execution failed: {e}")
        return False

# --- CLI Commands ---

@app.command()
def orphans(
    force: Annotated[bool, typer.Option("--force", "-f", help="Discard cached results and restart the analysis.")] = False,
):
    """Track the orphan analysis job until it completes or gives up."""
    if not run_async(lambda handler: handler.handle_orphans(force=force)):
        raise typer.Exit(code=1)

@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Free-text search query.")],
    exact: Annotated[bool, typer.Option("--exact", "-e", help="Retrieve the typed term instead of the top suggestion.")] = False,
):
    """Discover suggestions for a query, then retrieve results."""
    if not run_async(lambda handler: handler.handle_search(query, exact=exact)):
        raise typer.Exit(code=1)

@app.command()
def tenant(
    tenant_id: Annotated[Optional[str], typer.Argument(help="Tenant ID to validate.")] = None,
):
    """Show the resolved tenant, or validate a tenant ID."""
    ui = ConsoleDisplay()
    valid = describe_tenant(ui, tenant_id)
    if not valid:
        raise typer.Exit(code=1)

@app.callback()
def main_callback(
    tenant_option: Annotated[Optional[str], typer.Option("--tenant", "-t", help="Tenant ID for this run.")] = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Site hostname to derive the tenant from.")] = None,
):
    """Select the runtime tenant before any command runs."""
    if tenant_option:
        set_tenant_id(tenant_option)
    elif host:
        set_tenant_id(tenant_from_hostname(host))

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
