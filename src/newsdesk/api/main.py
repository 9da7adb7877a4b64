"""FastAPI application factory."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from newsdesk.config import get_settings
from newsdesk.db.engine import get_engine
from newsdesk.api.routes import articles, sync as sync_routes


def create_app(start_scheduler: Optional[bool] = None) -> FastAPI:
    """Build and return the FastAPI app.

    Args:
        start_scheduler: Run the sync scheduler inside the API process.
            Defaults to Settings.run_scheduler. Running it here means a
            scheduled sync flushes the same response cache the API reads.
    """
    settings = get_settings()
    engine = get_engine()
    if start_scheduler is None:
        start_scheduler = settings.run_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if start_scheduler:
            from newsdesk.scheduler.jobs import build_scheduler

            scheduler = build_scheduler(engine)
            scheduler.start()
        yield
        if scheduler is not None:
            scheduler.shutdown()

    app = FastAPI(
        title="Newsdesk API",
        description="Published articles mirrored from Notion",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(articles.router, prefix="/articles", tags=["articles"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


# Module-level app instance for uvicorn
app = create_app()
