from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ratedesk.api.routes import router
from ratedesk.config.settings import Settings, settings
from ratedesk.core.logging import setup_logging
from ratedesk.jobs.refresh import RefreshOrchestrator
from ratedesk.providers.http import Fetch
from ratedesk.state.backends import build_backend
from ratedesk.state.store import StateStore


def create_app(config: Settings | None = None, fetch: Fetch | None = None) -> FastAPI:
    config = config or settings
    store = StateStore(build_backend(config))
    orchestrator = RefreshOrchestrator(store, config, fetch=fetch)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.load()
        orchestrator.start()
        try:
            yield
        finally:
            await orchestrator.stop()

    app = FastAPI(title="ratedesk", lifespan=lifespan)
    app.state.store = store
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app


def main() -> None:
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
