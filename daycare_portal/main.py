import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from daycare_portal.config import settings
from daycare_portal.core.exceptions import PortalError
from daycare_portal.core.rate_limit import limiter
from daycare_portal.modules.auth import routes as auth_routes
from daycare_portal.modules.issues import routes as issues_routes
from daycare_portal.modules.users import routes as users_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

_CATEGORY_BY_STATUS = {
    400: "ValidationFailure",
    401: "AuthenticationFailure",
    403: "AuthorizationFailure",
    404: "NotFound",
    405: "ValidationFailure",
    429: "RateLimited",
}

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    category = _CATEGORY_BY_STATUS.get(exc.status_code, "UpstreamFailure")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": category, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "ValidationFailure", "message": "Invalid request", "details": details},
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"error": "RateLimited", "message": f"Rate limit exceeded: {exc.detail}"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    body = {"error": "UpstreamFailure", "message": "An unexpected error occurred"}
    if not settings.is_production:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"Cache-Control", b"private, no-store"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(users_routes.router, prefix="/api")
app.include_router(users_routes.admin_router, prefix="/api")
app.include_router(auth_routes.router, prefix="/api")
app.include_router(issues_routes.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup (environment=%s)", settings.environment)
    if not settings.supabase_url:
        logger.warning("SUPABASE_URL is not set; record store calls will fail")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to daycare-portal", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "OK", "message": "Server is running"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: extend here with record store checks if needed."""
    return {"status": "ready"}
