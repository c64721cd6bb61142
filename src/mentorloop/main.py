import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

import mentorloop.models  # noqa: F401 — register all models with Base.metadata
from mentorloop.api.errors import register_error_handlers
from mentorloop.api.routes.availability import router as availability_router
from mentorloop.api.routes.bookings import router as bookings_router
from mentorloop.api.routes.commitments import router as commitments_router
from mentorloop.api.routes.slots import router as slots_router
from mentorloop.api.routes.tasks import router as tasks_router
from mentorloop.config import get_settings
from mentorloop.database import Base, engine
from mentorloop.schemas.system import StatusResponse


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Create tables on startup (dev convenience; Alembic for production)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(
        title="MentorLoop",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.include_router(availability_router)
    app.include_router(slots_router)
    app.include_router(bookings_router)
    app.include_router(commitments_router)
    app.include_router(tasks_router)
    register_error_handlers(app)

    @app.get("/api/system/status", response_model=StatusResponse)
    async def system_status() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
