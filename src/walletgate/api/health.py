"""Health check endpoint.

Learn: reports whether both stores answer: Postgres (accounts) and Redis
(revocations). Each probe runs under the same timeout as real store
calls, so a hung dependency shows up as "degraded" instead of hanging
the health check. Always 200; load balancers read the "status" field.
"""

from typing import Awaitable, Callable

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text

from walletgate import __version__
from walletgate.auth.dependencies import get_settings
from walletgate.config import Settings
from walletgate.db.engine import get_engine
from walletgate.errors import ServiceUnavailableError
from walletgate.resilience import call_with_timeout
from walletgate.revocation.redis_store import get_redis

logger = structlog.get_logger()

router = APIRouter()


async def _ping_postgres() -> None:
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    await get_redis().ping()


async def _probe(name: str, ping: Callable[[], Awaitable[None]], timeout: float) -> str:
    """Return "ok" or "unavailable". Error detail goes to the log only."""
    try:
        await call_with_timeout(ping, store=name, timeout=timeout, retries=0)
    except ServiceUnavailableError:
        return "unavailable"
    except Exception as e:
        logger.error("health.probe_failed", store=name, error=repr(e))
        return "unavailable"
    return "ok"


@router.get("/health")
async def health_check(config: Settings = Depends(get_settings)):
    """Check server health and store connectivity."""
    stores = {
        "postgres": await _probe("postgres", _ping_postgres, config.store_timeout_seconds),
        "redis": await _probe("redis", _ping_redis, config.store_timeout_seconds),
    }
    status = "healthy" if all(v == "ok" for v in stores.values()) else "degraded"
    return {"status": status, "version": __version__, **stores}
