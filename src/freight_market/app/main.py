"""FastAPI application entry point for the freight marketplace API."""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from freight_market.app.config import get_settings
from freight_market.domain.errors import MarketError
from freight_market.infra.database import init_db, open_session
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import seed
from freight_market.services.publisher import room_sink

logger = logging.getLogger(__name__)

_started = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create tables, optionally seed demo data."""
    await init_db()

    settings = get_settings()
    if settings.seed_on_startup:
        try:
            async with open_session() as session:
                await seed.seed(MarketRepository(session))
        except Exception as e:
            logger.warning("Startup seed failed: %s", e)
    yield
    await room_sink.drain()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="Freight Marketplace API",
    lifespan=lifespan,
    debug=settings.debug,
)

_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering: every failure is {"ok": false, "error": "..."}
# ---------------------------------------------------------------------------


@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "invalid request")
    else:
        message = "invalid request"
    return JSONResponse(status_code=400, content={"ok": False, "error": message})


# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from freight_market.app.routes.auth import router as auth_router
from freight_market.app.routes.shipments import router as shipments_router
from freight_market.app.routes.quotes import router as quotes_router
from freight_market.app.routes.bookings import router as bookings_router, payments_router
from freight_market.app.routes.messages import router as messages_router
from freight_market.app.routes.dm import router as dm_router
from freight_market.app.routes.admin import router as admin_router
from freight_market.app.routes.events import router as events_router
from freight_market.app.routes.ws import router as ws_router

app.include_router(auth_router)
app.include_router(shipments_router)
app.include_router(quotes_router)
app.include_router(bookings_router)
app.include_router(payments_router)
app.include_router(messages_router)
app.include_router(dm_router)
app.include_router(admin_router)
app.include_router(events_router)
app.include_router(ws_router)


@app.get("/health", tags=["health"])
async def health_check(repo: MarketRepository = Depends(get_repository)):
    """Return service health status with store counts."""
    return {
        "ok": True,
        "service": "freight-market",
        "ts": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started, 3),
        "counts": await repo.counts(),
    }


@app.post("/seed", tags=["health"])
async def reseed(repo: MarketRepository = Depends(get_repository)):
    """Replace the store with the demo data set."""
    counts = await seed.seed(repo)
    return {"ok": True, "message": "Demo data seeded", "counts": counts}


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "freight_market.app.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
