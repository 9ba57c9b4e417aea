"""FastAPI application factory for the ticklist REST API."""

from fastapi import APIRouter, FastAPI

from ticklist.api.routes import register_routes


def create_app(store) -> FastAPI:
    """Build and return a FastAPI app wired to the given TaskStore."""
    app = FastAPI(title="ticklist", docs_url="/api/docs", openapi_url="/api/openapi.json")

    api = APIRouter(prefix="/api")
    register_routes(api, store)
    app.include_router(api)

    return app
