"""
ReMarket - Application Entry Point
===================================
FastAPI app initialization, middleware, and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import SessionLocal, Base, engine
from common.exceptions import MarketError, StorageFailureError, error_payload, market_error_handler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("remarket")
scheduler_logger = logging.getLogger("remarket.scheduler")

# ==========================================
# Import ALL models so Base can see them
# ==========================================
from modules.user.models import User, UserSession  # noqa: F401,E402
from modules.catalog.models import Product  # noqa: F401,E402
from modules.cart.models import CartItem  # noqa: F401,E402
from modules.order.models import Order  # noqa: F401,E402
from modules.message.models import Message  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.auth.routes import router as auth_router  # noqa: E402
from modules.catalog.routes import router as catalog_router  # noqa: E402
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.message.routes import router as message_router  # noqa: E402
from modules.customer.routes import router as customer_router  # noqa: E402


# ==========================================
# Background Scheduler: Expired Session Cleanup
# ==========================================
def _purge_expired_sessions():
    """Background job: delete expired login sessions."""
    db = SessionLocal()
    try:
        from modules.auth.service import auth_service
        count = auth_service.purge_expired_sessions(db)
        db.commit()
        if count:
            scheduler_logger.info(f"Purged {count} expired sessions")
    except SQLAlchemyError as e:
        db.rollback()
        scheduler_logger.error(f"Session cleanup error: {e}")
    finally:
        db.close()


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    scheduler.add_job(
        _purge_expired_sessions, "interval",
        minutes=settings.SESSION_PURGE_INTERVAL_MINUTES, id="session_purge",
    )
    scheduler.start()
    scheduler_logger.info(f"Background scheduler started (sessions: {settings.SESSION_PURGE_INTERVAL_MINUTES}m)")
    yield
    scheduler.shutdown()
    scheduler_logger.info("Background scheduler stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="ReMarket",
    description="Second-hand marketplace",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ==========================================
# Static Files (uploaded listing images)
# ==========================================
app.mount("/static", StaticFiles(directory="static", check_dir=False), name="static")


# ==========================================
# Exception handlers
# ==========================================
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    """Any unhandled DB error: log for operators, answer with a generic error."""
    logger.exception(f"Storage failure on {request.method} {request.url.path}", exc_info=exc)
    err = StorageFailureError()
    return JSONResponse(error_payload(err), status_code=err.status_code)


app.add_exception_handler(MarketError, market_error_handler)
app.add_exception_handler(SQLAlchemyError, storage_error_handler)


# ==========================================
# Middleware: CSRF Cookie
# ==========================================
@app.middleware("http")
async def csrf_cookie_refresh(request: Request, call_next):
    """Hand every client a CSRF cookie to echo back in the X-CSRF-Token header."""
    response = await call_next(request)
    if not request.cookies.get("csrf_token"):
        from common.security import new_csrf_token
        response.set_cookie("csrf_token", new_csrf_token(), httponly=False, samesite="lax")
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(message_router)
app.include_router(customer_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
