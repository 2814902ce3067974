import time
import uuid

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.core.clerk import ClerkSessionVerifier
from app.core.config import get_settings
from app.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from app.core.logging import bind_request_id, configure_logging, get_logger
from app.core.route_guard import RouteGuardMiddleware, create_route_matcher
from app.db.init import close_database, connect_to_database
from app.deps import get_session_claims
from app.routers import users, webhooks

settings = get_settings()
configure_logging(debug=settings.debug)
log = get_logger(__name__)

app = FastAPI(
    title="User Records API",
    version="1.0.0",
)

# Protected routes are fixed for the life of the process.
app.add_middleware(
    RouteGuardMiddleware,
    matcher=create_route_matcher(settings.protected_routes),
    verifier=ClerkSessionVerifier.from_settings(settings),
    sign_in_url=settings.clerk_sign_in_url,
)

# CORS must wrap the guard so preflights and 401s carry CORS headers.
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
app.include_router(users.router, prefix="/v1/users", tags=["users"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["webhooks"])


@app.on_event("startup")
async def startup():
    if settings.sentry_dsn:
        import sentry_sdk
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
        log.info("startup", msg="Sentry enabled")
    await connect_to_database()
    log.info("startup", msg="DB connected")


@app.on_event("shutdown")
async def shutdown():
    await close_database()


@app.get("/")
async def home(claims: dict = Depends(get_session_claims)):
    """Session summary for the signed-in user."""
    return {"user_id": claims.get("sub"), "session_id": claims.get("sid")}


@app.get("/health")
async def health():
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}
