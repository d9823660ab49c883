import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from voicestyle.config import ALLOWED_ORIGINS, AUTO_APPLY_MIGRATIONS, LOG_LEVEL
from voicestyle.model.CommunicationStyle import CommunicationStyle
from voicestyle.routes import onboarding_routes, static_routes
from voicestyle.services.database import engine
from voicestyle.services.migrations import apply_migrations
from voicestyle.services.schema_capabilities import SchemaCapabilities
from voicestyle.services.style_writer import StyleWriter
from voicestyle.services.utils.logger_config import setup_logging

_logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check the live schema once and share the style writer"""
    if AUTO_APPLY_MIGRATIONS:
        applied = apply_migrations(engine)
        _logger.info(f"Applied {len(applied)} migration(s) on startup")
    capabilities = SchemaCapabilities(engine, CommunicationStyle.__table__).load()
    capabilities.check_required()
    app.state.style_writer = StyleWriter(engine, capabilities)
    yield
    engine.dispose()


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(static_routes.router)
app.include_router(onboarding_routes.router)


def main():
    """Start the FastAPI application using uvicorn"""
    import uvicorn
    setup_logging(LOG_LEVEL)
    _logger.info("Starting voicestyle application...")

    uvicorn.run(
        "voicestyle.app:app",
        host="0.0.0.0",
        port=8000,
        log_level=LOG_LEVEL.lower(),
    )


def run():
    """Calls :func:`main` passing the CLI arguments extracted from :obj:`sys.argv`

    This function can be used as entry point to create console scripts with setuptools.
    """
    main()


if __name__ == "__main__":
    run()
