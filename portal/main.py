import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# Every model module must be imported before create_all
from . import (
    models,  # noqa: F401
    models_invoice,  # noqa: F401
)
from .config import ALLOWED_ORIGINS, RATE_LIMIT_ENABLED
from .database import Base, engine
from .domain.approvals import router as approvals
from .domain.change_orders import router as change_orders
from .domain.comments import router as comments
from .domain.incidents import router as incidents
from .domain.invoices import router as invoices
from .domain.organizations import router as organizations
from .domain.payments import router as payments
from .domain.series import router as series
from .domain.service_templates import router as service_templates
from .domain.time_logs import router as time_logs
from .domain.users import router as users
from .domain.work_orders import router as work_orders
from .rate_limiter import get_redis_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Portal API starting")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
    except SQLAlchemyError as e:
        # Another worker booting at the same time may have won the race
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Tables already created by another worker")
        else:
            logger.error(f"❌ Could not create database tables: {e}")
            raise

    if RATE_LIMIT_ENABLED and get_redis_client() is None:
        logger.warning("⚠️ Redis unavailable, rate limits are tracked per process")

    yield
    logger.info("Portal API shutting down")


app = FastAPI(title="A/V Work Order Portal API", version="1.0.0", lifespan=lifespan)


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validator errors can carry the raw exception in ctx"""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Staff and client routes, then the unauthenticated token routes
for module_router in (
    users.router,
    organizations.router,
    service_templates.router,
    work_orders.router,
    series.router,
    change_orders.router,
    time_logs.router,
    approvals.router,
    incidents.router,
    invoices.router,
    payments.router,
    comments.router,
    approvals.public_router,
    invoices.public_router,
    comments.public_router,
    payments.webhooks_router,
):
    app.include_router(module_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
