import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.router import v1_router
from app.core.config import get_settings
from app.core.errors import WorkflowError
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware

logger = logging.getLogger(__name__)


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Any WorkflowError a route did not translate itself."""
    logger.warning("Unhandled workflow error: %s", exc.message, extra={"kind": exc.kind, "path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title=settings.app_name, version="0.1.0")
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.include_router(v1_router, prefix=settings.api_prefix)

    logger.info(
        "Works tracker configured",
        extra={
            "objectStore": settings.object_store_backend,
            "statusTransitionsEnforced": settings.status_transitions_enforced,
        },
    )
    return app


app = create_app()
