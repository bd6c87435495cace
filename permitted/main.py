import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from permitted import __version__
from permitted.api import api_router, register_exception_handlers
from permitted.config.settings import API_HOST, API_PORT, CORS_ORIGINS
from permitted.database.connection import create_db_and_tables
from permitted.database.seed import seed_database
from permitted.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema and seed the admin catalog before serving."""
    logger.info("[App] Starting permission admin API")
    create_db_and_tables()
    seed_database()
    logger.info("[App] Schema ready, admin catalog seeded")
    yield
    logger.info("[App] Shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Permitted",
        version=__version__,
        description="Roles, permissions and module access administration",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=API_HOST, port=API_PORT)
