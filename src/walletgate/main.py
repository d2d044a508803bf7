"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis pool, database engine).
Middleware, CORS, error handlers and routers all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from walletgate import __version__
from walletgate.api import api_router
from walletgate.api.errors import register_exception_handlers
from walletgate.auth.tokens import check_signing_config
from walletgate.config import settings
from walletgate.db.engine import dispose_engine
from walletgate.logging import configure_logging
from walletgate.middleware.request_id import RequestIdMiddleware
from walletgate.revocation.redis_store import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: a bad signing configuration stops startup here rather than
    failing on the first login. Redis being down does not: requests that
    need the revocation store answer 503 until it comes back.
    """
    configure_logging(settings.log_level, json_output=settings.log_json)
    check_signing_config(settings.jwt_secret, settings.jwt_algorithm)
    logger.info(
        "walletgate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    try:
        await init_redis()
        logger.info("walletgate.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("walletgate.redis_unavailable", error=str(e))

    yield

    logger.info("walletgate.shutdown")
    await close_redis()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="WalletGate",
        description="Password and Ethereum-wallet authentication with JWT sessions",
        version=__version__,
        lifespan=lifespan,
    )

    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: walletgate.main:app)
app = create_app()
