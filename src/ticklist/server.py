"""
ticklist MCP server entry point.

Startup sequence:
1. Read settings from the environment
2. Load every group document into the TaskStore
3. Start the store's background writer
4. Start REST API server in background thread (if API_ENABLED)
5. Register all MCP tools
6. Run MCP server (stdio transport)
7. On exit, flush pending writes and stop the writer
"""

import logging
import threading

from mcp.server.fastmcp import FastMCP

from ticklist.api.tools import register_tools
from ticklist.config import Settings, configure_logging
from ticklist.storage.gateway import FileGateway
from ticklist.store.task_store import TaskStore

log = logging.getLogger(__name__)


def _start_api_server(store: TaskStore, host: str, port: int) -> None:
    """Run the FastAPI/uvicorn server in a daemon thread."""
    import uvicorn

    from ticklist.api.app import create_app

    app = create_app(store)
    log.info("Starting REST API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="warning")


def build_store(settings: Settings) -> TaskStore:
    """Create, load and start a store rooted at settings.home."""
    log.info("Data directory: %s", settings.home)
    store = TaskStore(FileGateway(settings.home))
    store.load_all()
    store.start()
    return store


def run_server(settings: Settings) -> None:
    store = build_store(settings)

    if settings.api_enabled:
        api_thread = threading.Thread(
            target=_start_api_server,
            args=(store, settings.api_host, settings.api_port),
            daemon=True,
        )
        api_thread.start()

    mcp = FastMCP("ticklist")
    register_tools(mcp, store)

    log.info("Starting ticklist server")
    try:
        mcp.run(transport="stdio")
    finally:
        store.close()


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    run_server(settings)


if __name__ == "__main__":
    main()
