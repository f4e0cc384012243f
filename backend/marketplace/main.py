import logging
import re
import sys
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.config import settings
from marketplace.routers import (
    addresses,
    admin,
    auth,
    bling,
    categories,
    health,
    orders,
    payment,
    products,
    seller_settings,
    shipping,
)
from marketplace.utils.logger import logger

# Global logging configuration
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

app = FastAPI(title="Optical Marketplace API", version="1.0.0")

origins = settings.allowed_origins
if settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)


# Request logging middleware with request ID
@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logger.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
        logger.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
        resp.headers["X-Request-ID"] = rid
        return resp
    except Exception as e:
        logger.exception("Unhandled error rid=%s: %s", rid, str(e))
        body = {"error": "internal_error", "rid": rid, "type": type(e).__name__}
        if settings.DEBUG:
            body["message"] = str(e)
        error_resp = JSONResponse(body, status_code=500)
        error_resp.headers["X-Request-ID"] = rid
        return error_resp


app.include_router(auth.router)
app.include_router(orders.router)
app.include_router(payment.router)
app.include_router(products.router)
app.include_router(categories.router)
app.include_router(addresses.router)
app.include_router(shipping.router)
app.include_router(seller_settings.router)
app.include_router(bling.router)
app.include_router(admin.router)
app.include_router(health.router)


def init_database(database_url: str) -> None:
    """Bring the schema up to date: Alembic on Postgres, create_all on SQLite."""
    if database_url.startswith("sqlite"):
        from marketplace.models_sqlalchemy import Base, engine
        from marketplace.models_sqlalchemy import models  # noqa: F401

        logger.info("Using SQLite database - creating tables if missing")
        Base.metadata.create_all(bind=engine)
        return

    masked_url = re.sub(r"://([^:]+):([^@]+)@", r"://\1:****@", database_url)
    logger.info(f"📊 Database URL: {masked_url}")
    logger.info("📊 Running database migrations...")

    import os
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config(os.path.join(os.path.dirname(os.path.dirname(__file__)), "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")
    logger.info("✅ Database migrations completed successfully!")


@app.on_event("startup")
async def startup_event():
    logger.info("Optical Marketplace API starting up...")
    init_database(settings.DATABASE_URL)


@app.get("/")
async def root():
    return {
        "message": "Optical Marketplace API",
        "version": "1.0.0",
        "docs": "/docs",
    }
