import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session, sessionmaker
from starlette.responses import Response

from notaryflow.api.custody import router as custody_router
from notaryflow.api.notifications import router as notifications_router
from notaryflow.config import settings
from notaryflow.db import build_session_factory, get_engine
from notaryflow.errors import register_error_handlers
from notaryflow.logging import configure_logging
from notaryflow.services.custody_workflow import CustodyWorkflow

logger = logging.getLogger(__name__)


def create_app(session_factory: sessionmaker[Session] | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if app.state.session_factory is None:
            engine = get_engine()
            app.state.session_factory = build_session_factory(engine)
            app.state.workflow = CustodyWorkflow(app.state.session_factory)
        logger.info("%s custody API started", settings.brand_name)
        try:
            yield
        finally:
            if engine is not None:
                engine.dispose()

    configure_logging()
    app = FastAPI(title=f"{settings.brand_name} Custody API", lifespan=lifespan)
    app.state.session_factory = session_factory
    app.state.workflow = (
        CustodyWorkflow(session_factory) if session_factory is not None else None
    )
    register_error_handlers(app)

    def _include_api_router(router, dependencies=None):
        app.include_router(router, dependencies=dependencies)
        app.include_router(router, prefix="/api/v1", dependencies=dependencies)

    _include_api_router(custody_router)
    _include_api_router(notifications_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
