"""
FastAPI server for router-ddns.

This module provides the HTTP API: ``POST /user`` provisions router
accounts behind an administrative API key, and ``GET /nic/update`` lets
routers point their hostnames at their current IPv4 address.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as st_status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from router_ddns import __version__
from router_ddns.config import Config, load_config
from router_ddns.errors import BadRequestError, DDNSError, UnauthorizedError
from router_ddns.models import CreateUserRequest, ErrorResponse, NicUpdateResponse
from router_ddns.providers.cloudflare import CloudFlareZoneDirectory
from router_ddns.providers.memory import InMemoryZoneDirectory
from router_ddns.providers.route53 import Route53ZoneDirectory
from router_ddns.provisioner import CredentialProvisioner
from router_ddns.reconciler import UpdateReconciler
from router_ddns.stores.dynamodb import DynamoDBCredentialStore
from router_ddns.stores.memory import InMemoryCredentialStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from router_ddns.config import DNSConfig, StoreConfig
    from router_ddns.providers.base import BaseZoneDirectory
    from router_ddns.stores.base import BaseCredentialStore


logger = logging.getLogger(__name__)

# Global config (set during startup)
_config: Config | None = None

# Collaborators (built from the config during startup)
_store: BaseCredentialStore | None = None
_zones: BaseZoneDirectory | None = None


def get_config() -> Config:
    """Get the current configuration."""
    if _config is None:
        msg = "Configuration not loaded"
        raise RuntimeError(msg)
    return _config


def configure(config: Config) -> None:
    """
    Inject a loaded configuration and build the backends it selects.

    The CLI calls this before starting uvicorn, so backend construction
    errors (e.g. a missing AWS region) surface before the port is bound,
    and the lifespan handler does not re-parse command-line arguments.

    Parameters
    ----------
    config : Config
        The configuration object to set.

    Raises
    ------
    botocore.exceptions.BotoCoreError
        If an AWS client cannot be created.
    """
    global _config, _store, _zones  # noqa: PLW0603
    _config = config
    _store = build_credential_store(config.store)
    _zones = build_zone_directory(config.dns)


def get_store() -> BaseCredentialStore:
    """Get the credential store."""
    if _store is None:
        msg = "Credential store not initialized"
        raise RuntimeError(msg)
    return _store


def get_zone_directory() -> BaseZoneDirectory:
    """Get the zone directory."""
    if _zones is None:
        msg = "Zone directory not initialized"
        raise RuntimeError(msg)
    return _zones


def build_credential_store(config: StoreConfig) -> BaseCredentialStore:
    """
    Build the credential store selected by the configuration.

    Parameters
    ----------
    config : StoreConfig
        Store configuration.

    Returns
    -------
    BaseCredentialStore
        The store instance.
    """
    if config.backend == "dynamodb":
        return DynamoDBCredentialStore(config.table_name, region=config.region)
    return InMemoryCredentialStore()


def build_zone_directory(config: DNSConfig) -> BaseZoneDirectory:
    """
    Build the zone directory selected by the configuration.

    Parameters
    ----------
    config : DNSConfig
        DNS provider configuration.

    Returns
    -------
    BaseZoneDirectory
        The zone directory instance.
    """
    if config.provider == "route53":
        return Route53ZoneDirectory(ttl=config.ttl, region=config.region)
    if config.provider == "cloudflare":
        # Presence of cf_token is checked by DNSConfig
        return CloudFlareZoneDirectory(config.cf_token or "", ttl=config.ttl)
    return InMemoryZoneDirectory(config.zones)


def _error_response(
    status_code: int,
    message: str,
    error: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(code=status_code, message=message, error=error)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


class AdminKeyMiddleware(BaseHTTPMiddleware):
    """
    Middleware guarding the administrative endpoint.

    Intercepts requests to /user before body validation and checks the
    ``x-api-key`` header: 401 if missing, 403 if invalid.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Check the API key of /user requests."""
        if request.url.path != "/user":
            return await call_next(request)

        # Config may not be loaded during startup
        try:
            config = get_config()
        except RuntimeError:
            return await call_next(request)

        if not config.admin.enabled:
            return await call_next(request)

        api_key = request.headers.get("x-api-key", "").strip()
        if not api_key:
            return _error_response(
                st_status.HTTP_401_UNAUTHORIZED,
                "Missing API key",
            )
        if not any(
            secrets.compare_digest(api_key.encode(), key.encode())
            for key in config.admin.api_keys
        ):
            return _error_response(
                st_status.HTTP_403_FORBIDDEN,
                "Invalid API key",
            )

        return await call_next(request)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _config, _store, _zones  # noqa: PLW0603

    # If config was not set by CLI (e.g., running via uvicorn directly),
    # load it here
    if _config is None:
        _config = load_config()

    if _store is None:
        _store = build_credential_store(_config.store)
    if _zones is None:
        _zones = build_zone_directory(_config.dns)

    # Dynamically register "/health" endpoint (GET method) if enabled
    if _config.health.enabled:
        _app.add_api_route("/health", health, methods=["GET"])

    logger.info(
        'router-ddns starting on "%s:%d" (store: "%s", dns: "%s").',
        _config.server.host,
        _config.server.port,
        _store.name,
        _zones.name,
    )

    yield

    logger.info("router-ddns shutting down.")


app = FastAPI(
    title="router-ddns",
    description="Dynamic DNS update service for routers",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(AdminKeyMiddleware)


@app.exception_handler(DDNSError)
async def ddns_exception_handler(_request: Request, exc: DDNSError) -> Response:
    """
    Render core errors with the unified JSON error body.

    Unauthorized responses carry a Basic challenge so that HTTP clients
    retry with credentials.
    """
    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": 'Basic realm="router-ddns"'}
    return _error_response(exc.status_code, exc.message, exc.code, headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException) -> Response:
    """
    Handle HTTP exceptions with consistent JSON responses.

    Convert FastAPI's default {"detail": "..."} format to the unified
    API response format {"status": "error", "code": ..., "message": "..."}.
    """
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    _request: Request,
    exc: RequestValidationError,
) -> Response:
    """
    Handle validation errors with consistent JSON responses.

    Convert FastAPI's validation error format to the unified API response format,
    listing all missing or invalid fields in the message.
    """
    missing_fields: list[str] = []
    invalid_fields: list[str] = []

    for error in exc.errors():
        field_path = ".".join(
            str(loc) for loc in error["loc"] if loc not in {"query", "body"}
        )
        if error["type"] == "missing":
            missing_fields.append(field_path)
        else:
            invalid_fields.append(f"{field_path}: {error['msg']}")

    messages: list[str] = []
    if missing_fields:
        messages.append(f"Missing required fields: {', '.join(missing_fields)}")
    if invalid_fields:
        messages.append(f"Invalid fields: {'; '.join(invalid_fields)}")

    message = ". ".join(messages) if messages else "Validation error"

    return _error_response(st_status.HTTP_422_UNPROCESSABLE_CONTENT, message)


def parse_hostnames(values: list[str]) -> list[str]:
    """
    Flatten repeated and comma-separated ``hostname`` parameters.

    Parameters
    ----------
    values : list[str]
        Every ``hostname`` query value, in order.

    Returns
    -------
    list[str]
        The hostnames in request order. Duplicates and empty entries are
        kept so the reconciler can reject them.
    """
    return [part.strip() for value in values for part in value.split(",")]


@app.post("/user", status_code=st_status.HTTP_201_CREATED)
async def create_user(params: CreateUserRequest) -> Response:
    """
    Create a router account.

    The API key is checked by AdminKeyMiddleware. Responds 201 with an
    empty body on success.
    """
    provisioner = CredentialProvisioner(get_store())
    await provisioner.create(params.username, params.password, params.domains)
    return Response(status_code=st_status.HTTP_201_CREATED)


@app.get("/nic/update")
async def nic_update(request: Request) -> Response:
    """
    Point the requested hostnames at an IPv4 address.

    Query parameters: ``hostname`` (repeatable, comma-separated values
    allowed) and ``myip``. Credentials are passed as HTTP Basic
    authorization. Requests without a ``User-Agent`` header are rejected.
    """
    hostnames = parse_hostnames(request.query_params.getlist("hostname"))
    # More than one myip makes the address invalid rather than picking one
    ip = ",".join(request.query_params.getlist("myip")) or None

    user_agent = request.headers.get("user-agent", "").strip()
    if not user_agent:
        msg = "Missing User-Agent header"
        raise BadRequestError(msg)
    logger.debug("[request] user-agent=%s", user_agent)

    reconciler = UpdateReconciler(get_store(), get_zone_directory())
    outcome = await reconciler.update(
        request.headers.get("authorization"),
        hostnames,
        ip,
    )

    response = NicUpdateResponse.from_outcome(outcome)
    return JSONResponse(
        content=response.model_dump(mode="json", exclude_none=True),
        status_code=response.code,
    )


# Note: Unlike the routes above, this endpoint is dynamically registered
# in lifespan() based on config.health.enabled.
async def health() -> Response:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"})
