import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from clausewright.config import Settings
from clausewright.database import create_engine, create_session_factory
from clausewright.middleware import RequestIDLogFilter, RequestIDMiddleware


def configure_logging(log_level: str) -> None:
    """Set up logging with request ID injected into every log line."""
    log_filter = RequestIDLogFilter()
    formatter = logging.Formatter(
        "%(asctime)s [%(request_id)s] %(levelname)s %(name)s: %(message)s"
    )

    # Replace existing handlers on the root logger rather than using basicConfig
    # (basicConfig is a no-op if handlers are already set, which uvicorn does at startup)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(log_filter)
    root_logger.addHandler(handler)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator:
    """Set up the DB engine and rendering delegate on startup, dispose the engine on shutdown."""
    from clausewright.services.rendering.factory import create_renderer

    settings: Settings = application.state.settings
    engine = create_engine(settings)
    application.state.engine = engine
    application.state.session_factory = create_session_factory(engine)
    application.state.renderer = create_renderer(settings)

    yield

    await application.state.engine.dispose()


def create_app() -> FastAPI:
    """Application factory."""
    settings = Settings()

    application = FastAPI(
        title="Clausewright",
        description="Contract assembly from a clause library, templates and project data",
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    application.state.settings = settings

    configure_logging(settings.LOG_LEVEL)
    application.add_middleware(RequestIDMiddleware)

    # Database session dependency, injected into every route that needs DB access
    async def get_session() -> AsyncGenerator[AsyncSession, None]:
        async with application.state.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # Register routers
    from fastapi import Depends

    from clausewright.repositories.clause_repo import ClauseRepository
    from clausewright.repositories.template_repo import TemplateRepository
    from clausewright.routers.clauses import get_clause_service, router as clauses_router
    from clausewright.routers.contracts import get_generation_service, router as contracts_router
    from clausewright.services.clause_service import ClauseLibraryService
    from clausewright.services.generation_service import ContractGenerationService

    # Override the service dependencies so the routers get a real DB session
    async def get_generation_service_with_session(
        session: AsyncSession = Depends(get_session),
    ) -> ContractGenerationService:
        return ContractGenerationService(
            ClauseRepository(session),
            TemplateRepository(session),
            application.state.renderer,
            settings,
        )

    async def get_clause_service_with_session(
        session: AsyncSession = Depends(get_session),
    ) -> ClauseLibraryService:
        return ClauseLibraryService(ClauseRepository(session), settings.SOURCE_DIR)

    application.include_router(contracts_router, prefix="/api/v1")
    application.include_router(clauses_router, prefix="/api/v1")
    application.dependency_overrides[get_generation_service] = get_generation_service_with_session
    application.dependency_overrides[get_clause_service] = get_clause_service_with_session

    @application.get("/health", tags=["Health Check"])
    async def health_check():
        return {"status": "healthy", "version": "0.1.0", "renderer": settings.RENDERER}

    return application


app = create_app()
