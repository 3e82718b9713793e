# backend/restopos/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from restopos.api import (
    auth_router,
    users_router,
    categories_router,
    menu_router,
    discounts_router,
    orders_router,
    transactions_router,
    reports_router,
    public_router,
    notifications_router,
)
from restopos.errors import ErrorKind, OrderError
from restopos.services.notifications import NotificationHub
from restopos.storage import SQLAlchemyStorage, DEFAULT_DATABASE_URL
from restopos.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store once per process and dispose of it on shutdown."""
    configure_logging()
    # Tests may install their own storage before startup
    if getattr(app.state, "storage", None) is None:
        app.state.storage = SQLAlchemyStorage(os.getenv("APP_DATABASE_URL", DEFAULT_DATABASE_URL))
    if getattr(app.state, "notifications", None) is None:
        app.state.notifications = NotificationHub()
    logger.info("Restaurant POS backend started")
    try:
        yield
    finally:
        app.state.storage.close()
        logger.info("Restaurant POS backend stopped")


app = FastAPI(title="Restaurant POS Backend", lifespan=lifespan)
app.state.storage = None
app.state.notifications = NotificationHub()

# Allow CORS for local dev (set CORS_ALLOW_ORIGINS in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error mapping ----------
@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    """Map a typed order error to its HTTP status. Store failures stay opaque."""
    if not exc.is_client_fault:
        logger.exception(
            "%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message(), "kind": exc.kind.value}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Bodies, paths and queries that fail parsing answer like any other validation error."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"detail": f"{where}: {message}" if where else message, "kind": ErrorKind.VALIDATION.value}
    )


# ---------- Routers ----------
app.include_router(auth_router.router)
app.include_router(users_router.router)
app.include_router(categories_router.router)
app.include_router(menu_router.router)
app.include_router(discounts_router.router)
app.include_router(orders_router.router)
app.include_router(transactions_router.router)
app.include_router(reports_router.router)
app.include_router(public_router.router)
app.include_router(notifications_router.router)


@app.get("/api/health", summary="Liveness check")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("restopos.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
