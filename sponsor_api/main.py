import time
import uuid

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sponsor_api.core.config import get_settings
from sponsor_api.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from sponsor_api.core.logging import bind_request_id, configure_logging, get_logger
from sponsor_api.routers import catalogue, dispatch, orders, payfast, paypal

settings = get_settings()
configure_logging(debug=settings.debug, service=settings.service_name)
log = get_logger(__name__)

app = FastAPI(
    title=settings.service_name,
    version="1.0.0",
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    bind_request_id(request_id)
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    log.info(
        "request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(orders.router, prefix="/v1/orders", tags=["orders"])
app.include_router(paypal.router, prefix="/v1/paypal", tags=["paypal"])
app.include_router(payfast.router, prefix="/v1/payfast", tags=["payfast"])
app.include_router(catalogue.router, prefix="/v1/catalogue", tags=["catalogue"])
app.include_router(dispatch.router, tags=["dispatch"])


@app.on_event("startup")
async def startup():
    if settings.sentry_dsn:
        import sentry_sdk
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
        log.info("startup", msg="Sentry enabled")
    app.state.http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    log.info("startup", msg="HTTP client ready", table_backend=settings.table_backend)


@app.on_event("shutdown")
async def shutdown():
    http = getattr(app.state, "http", None)
    if http is not None:
        await http.aclose()


@app.get("/health")
async def health():
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}
