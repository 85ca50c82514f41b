from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ruleflow.api.v1 import api_router
from ruleflow.core.automation.engine import AutomationEngine
from ruleflow.core.config_file import get_settings
from ruleflow.core.db.deps import get_db
from ruleflow.core.db.session import SessionLocal
from ruleflow.core.exceptions import APIException

settings = get_settings()


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle APIException and return standard error format."""
    # exc.detail already contains {"error": {...}}, add data: null
    response_content = exc.detail.copy()
    response_content["data"] = None
    return JSONResponse(
        status_code=exc.status_code,
        content=response_content,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert FastAPI validation errors to the standard error format."""
    details: dict[str, list[str]] = {}
    for error in exc.errors():
        # Ignore "body", "query", "path" and keep the field name
        field_path = error["loc"]
        field_name = str(field_path[-1] if len(field_path) > 1 else field_path[0])
        details.setdefault(field_name, []).append(error["msg"])

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Validation failed",
                "details": details,
            },
            "data": None,
        },
    )


def create_app(
    session_factory: Callable[[], Session] | None = None,
    automation_engine: AutomationEngine | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        session_factory: Session factory for the API and the engine
            (defaults to the configured database)
        automation_engine: Prebuilt engine (built from settings when omitted)

    Returns:
        Configured application. The engine starts and stops with it.
    """
    session_factory = session_factory or SessionLocal
    engine = automation_engine or AutomationEngine.from_settings(session_factory, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(
        title="Ruleflow API",
        version="0.1.0",
        description="Tenant automation rule engine",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.automation_engine = engine

    if session_factory is not SessionLocal:

        async def get_app_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = get_app_db

    # CORS configuration
    if settings.CORS_ORIGINS:
        origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    else:
        origins = ["http://localhost:5173", "http://localhost:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/healthz", tags=["system"])
    def healthz():
        """Health check endpoint."""
        return {
            "status": "ok",
            "env": settings.ENV,
            "engine_running": engine.scheduler.is_running,
        }

    # Include API routers
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ruleflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
