import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wms.config import settings
from wms.middleware.exceptions import register_exception_handlers
from wms.rbac.audit import get_audit_reporter
from wms.routers import access, health, users
from wms.utils.cache import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("WMS access service starting (%s)", settings.environment)
    yield
    # Flush pending denial rows before the engine goes away
    await get_audit_reporter().drain()
    await close_redis()


app = FastAPI(
    title="WMS Access",
    description="Warehouse role-based access control",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(access.router, prefix="/api/access", tags=["access"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
