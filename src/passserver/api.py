"""FastAPI application for the pass server.

Exposes the encrypted index and individual secrets of a password store.
The server never decrypts anything; it only relays ciphertext.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from passserver import __version__
from passserver.config import ServerConfig, get_config
from passserver.errors import NotFoundError, PassServerError, UnavailableError, ValidationError
from passserver.logging_utils import clear_request_id, log_info, log_warning, set_request_id
from passserver.metrics import get_metrics_collector, is_metrics_enabled
from passserver.models import (
    DependencyStatus,
    ErrorResponse,
    ListSecretsRequest,
    SecretRequest,
    SecretResponse,
    StatusResponse,
)
from passserver.store import SecretCache, SecretIdentifier, get_index_encryptor
from passserver.store.recipients import GPG_ID_FILENAME

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()

# Trailing-slash aliases served by the same handlers
SLASH_ALIASES = {"/secret/": "/secret", "/secrets/": "/secrets"}

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_400_BAD_REQUEST,
    UnavailableError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_cache(request: Request) -> SecretCache:
    """Get the secret cache attached to the running application."""
    return request.app.state.cache


def get_app_config(request: Request) -> ServerConfig:
    return request.app.state.config


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/v1/status", response_model=StatusResponse)
def get_status(
    cache: SecretCache = Depends(get_cache),
) -> StatusResponse:
    """Get service status.

    Reports whether the store root and its recipient file are present and
    what state the secret cache is in. Never triggers a rebuild.
    """
    dependencies = []

    gpg_id_path = cache.store_root / GPG_ID_FILENAME
    if not cache.store_root.is_dir():
        dependencies.append(
            DependencyStatus(
                name="password_store",
                status="unavailable",
                message="Password store directory not found",
            )
        )
    elif not gpg_id_path.is_file():
        dependencies.append(
            DependencyStatus(
                name="password_store",
                status="unavailable",
                message=f"{GPG_ID_FILENAME} not found in password store",
            )
        )
    else:
        dependencies.append(
            DependencyStatus(name="password_store", status="ok", message="Password store readable")
        )

    cache_state = cache.state
    dependencies.append(
        DependencyStatus(
            name="secret_cache",
            status="ok",
            message=f"Secret cache {cache_state.value}",
        )
    )

    overall_status = "ok"
    if any(dep.status != "ok" for dep in dependencies):
        overall_status = "degraded"

    return StatusResponse(
        status=overall_status,
        version=__version__,
        timestamp=datetime.now(UTC),
        cache_state=cache_state.value,
        secret_count=cache.secret_count,
        dependencies=dependencies,
    )


@router.get("/v1/metrics")
def get_metrics(config: ServerConfig = Depends(get_app_config)):
    """Get in-process metrics. Returns 404 unless metrics are enabled."""
    if not is_metrics_enabled(config):
        raise HTTPException(status_code=404, detail="metrics are disabled")
    return get_metrics_collector().get_snapshot()


@router.post(
    "/secrets",
    response_model=SecretResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def list_secrets(
    request_body: ListSecretsRequest | None = None,
    cache: SecretCache = Depends(get_cache),
) -> SecretResponse:
    """Return the encrypted index of every secret in the store."""
    metrics = get_metrics_collector()
    try:
        index = cache.list_index()
    except UnavailableError:
        metrics.record_request("secrets", "unavailable")
        raise

    metrics.record_request("secrets", "ok")
    return SecretResponse(response=index)


@router.post(
    "/secret",
    response_model=SecretResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def show_secret(
    request_body: SecretRequest,
    cache: SecretCache = Depends(get_cache),
) -> SecretResponse:
    """Return the armored ciphertext of one secret."""
    metrics = get_metrics_collector()
    if not request_body.path:
        metrics.record_request("secret", "invalid")
        raise ValidationError("no path found in request body")
    if not request_body.username:
        metrics.record_request("secret", "invalid")
        raise ValidationError("no username found in request body")

    identifier = SecretIdentifier(path=request_body.path, username=request_body.username)
    try:
        secret = cache.lookup(identifier)
    except NotFoundError:
        metrics.record_request("secret", "not_found")
        raise
    except UnavailableError:
        metrics.record_request("secret", "unavailable")
        raise

    metrics.record_request("secret", "ok")
    return SecretResponse(response=secret)


async def handle_pass_server_error(request: Request, exc: PassServerError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    message = exc.message
    if isinstance(exc, UnavailableError):
        message = f"unable to load password store: {exc.message}"
    return _error_response(status_code, message)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    log_warning(logger, "Rejected request body", path=request.url.path, errors=len(exc.errors()))
    return _error_response(status.HTTP_400_BAD_REQUEST, "unable to read request body")


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def request_context_middleware(request: Request, call_next) -> Response:
    """Assign a request ID and, in development, log each request."""
    request_id = set_request_id(request.headers.get("X-Request-ID"))
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        if request.app.state.config.is_development:
            log_info(
                logger,
                "Handled request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
            )
        return response
    finally:
        clear_request_id()


async def strip_slash_middleware(request: Request, call_next) -> Response:
    """Serve /secret/ and /secrets/ from the slash-less routes."""
    path = request.scope["path"]
    if path in SLASH_ALIASES:
        request.scope["path"] = SLASH_ALIASES[path]
    return await call_next(request)


async def force_https_middleware(request: Request, call_next) -> Response:
    """Redirect plain-HTTP requests to HTTPS in production.

    ``X-Forwarded-Proto`` is honoured for deployments behind a TLS proxy.
    """
    config: ServerConfig = request.app.state.config
    if config.is_production:
        proto = request.headers.get("X-Forwarded-Proto", request.url.scheme)
        if proto != "https":
            target = request.url.replace(scheme="https")
            return RedirectResponse(str(target), status_code=status.HTTP_301_MOVED_PERMANENTLY)
    return await call_next(request)


def create_app(config: ServerConfig | None = None, cache: SecretCache | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Server configuration (defaults to the cached environment config)
        cache: Secret cache to serve from (defaults to one built from config)

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    if cache is None:
        cache = SecretCache(
            config.store,
            get_index_encryptor(config),
            sort_index=config.sort_index,
        )

    app = FastAPI(
        title="Pass Server API",
        version=__version__,
        description="Read-only API over a GPG-encrypted password store",
    )
    app.state.config = config
    app.state.cache = cache

    app.include_router(router)

    app.add_exception_handler(PassServerError, handle_pass_server_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)

    # Last added runs first
    app.middleware("http")(request_context_middleware)
    app.middleware("http")(strip_slash_middleware)
    app.middleware("http")(force_https_middleware)

    logger.info("Serving password store at %s (env: %s)", cache.store_root, config.env)
    return app


app = create_app()
