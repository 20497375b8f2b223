import logging
import time

import sentry_sdk
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text

from .config import settings
from .database import engine
from .errors import install_error_handlers
from .models import Base
from .middleware_rate_limit import SlidingWindowLimiter
from .middleware_request_id import RequestIDMiddleware
from .routers import auth as auth_router
from .routers import bookings as bookings_router
from .routers import impact as impact_router
from .routers import items as items_router
from .routers import messages as messages_router
from .routers import ratings as ratings_router
from .routers import users as users_router
from .routers import wishlist as wishlist_router
from .routers import ws as ws_router


logger = logging.getLogger("cityshare")

# Module level so repeated create_app() calls do not re-register collectors
REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.LOG_LEVEL)
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN, traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE)

    app = FastAPI(title="CityShare API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.RATE_LIMIT_ENABLED:
        app.add_middleware(
            SlidingWindowLimiter,
            limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
            auth_limit_per_minute=settings.RATE_LIMIT_AUTH_PER_MINUTE,
        )
    app.add_middleware(RequestIDMiddleware)
    install_error_handlers(app)

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        return {"status": "ok", "env": settings.ENV}

    @app.middleware("http")
    async def _metrics_mw(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        route = getattr(request.scope.get("route"), "path", None) or request.url.path
        REQ.labels(request.method, route, str(response.status_code)).inc()
        REQ_DURATION.labels(request.method, route).observe(duration)
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(auth_router.router)
    app.include_router(users_router.router)
    app.include_router(items_router.router)
    app.include_router(bookings_router.router)
    app.include_router(messages_router.router)
    app.include_router(ratings_router.router)
    app.include_router(wishlist_router.router)
    app.include_router(impact_router.router)
    app.include_router(ws_router.router)
    logger.info("CityShare API ready (env=%s)", settings.ENV)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT)
