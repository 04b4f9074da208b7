"""
Configuration management for router-ddns.

This module handles loading and validating configuration from TOML files
and command-line arguments. Configuration priority (high to low):
1. Command-line arguments
2. Configuration file
3. Default values
"""

from __future__ import annotations

import argparse
import copy
import logging
import sys
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_core import PydanticCustomError

from router_ddns.logging_config import DATE_FORMAT, LOG_FORMAT

if TYPE_CHECKING:
    from typing import Any, Final, Self

    from pydantic_core import ErrorDetails

# Configure basic logging for early startup messages.
# Log messages emitted while loading the configuration (before "setup_logging()"
# is called) still get the regular format. "setup_logging()" reconfigures the
# "router_ddns" logger with full settings later.
# Note: Logs from this logger are never written to a file, as the log file path
# has not been parsed yet.
logger_basic = logging.getLogger(__name__)
logger_basic.setLevel(logging.DEBUG)
handler = logging.StreamHandler()
formatter = logging.Formatter(
    fmt=LOG_FORMAT,
    datefmt=DATE_FORMAT,
)
handler.setFormatter(formatter)
logger_basic.addHandler(handler)
logger_basic.propagate = False


class ConfigValidationError(Exception):
    """
    Exception raised when configuration validation fails.

    This exception is raised when the TOML configuration contains
    invalid types or values.

    Attributes
    ----------
    message : str
        Human-readable error message describing the validation failures.
    config_path : Path | None
        Path to the configuration file that failed validation.
    """

    def __init__(self, message: str, config_path: Path | None = None) -> None:
        """
        Initialize ConfigValidationError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        config_path : Path | None, optional
            Path to the configuration file.
        """
        self.config_path = config_path
        super().__init__(message)


# Configuration models (Pydantic with type validation and coercion)


class ServerConfig(BaseModel):
    """
    Server configuration.

    Attributes
    ----------
    host : str
        Host address to bind to.
    port : int
        Port number to listen on.
    """

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 38080


class AdminConfig(BaseModel):
    """
    Administrative endpoint configuration.

    Attributes
    ----------
    enabled : bool
        Whether ``POST /user`` requires an API key. Disable only when an
        upstream gateway already checks it.
    api_keys : list[str]
        Valid values of the ``x-api-key`` header.
    """

    enabled: bool = True
    api_keys: list[str] = []


class StoreConfig(BaseModel):
    """
    Credential store configuration.

    Attributes
    ----------
    backend : Literal["memory", "dynamodb"]
        Store backend.
    table_name : str
        DynamoDB table holding the credential records.
    region : str | None
        AWS region, or None for the boto3 default.
    """

    backend: Literal["memory", "dynamodb"] = "memory"
    table_name: str = "ddns-dev-UsersTable"
    region: str | None = None


class DNSConfig(BaseModel):
    """
    DNS provider configuration.

    Attributes
    ----------
    provider : Literal["memory", "route53", "cloudflare"]
        Zone directory backend.
    ttl : int
        TTL of upserted A-records, in seconds.
    cf_token : str | None
        CloudFlare API Token (cloudflare provider only).
    region : str | None
        AWS region (route53 provider only).
    zones : list[str]
        Hosted zone names (memory provider only).
    """

    provider: Literal["memory", "route53", "cloudflare"] = "memory"
    ttl: int = Field(default=300, ge=1, le=86400)
    cf_token: str | None = None
    region: str | None = None
    zones: list[str] = []

    @model_validator(mode="after")
    def check_provider_credentials(self) -> Self:
        """
        Validate that the selected provider has its credentials.

        Returns
        -------
        Self
            The validated model.

        Raises
        ------
        PydanticCustomError
            If the cloudflare provider is selected without a token.
        """
        if self.provider == "cloudflare" and not self.cf_token:
            err_type = "dns_config_error"
            raise PydanticCustomError(
                err_type,
                "The cloudflare provider requires cf_token",
            )
        return self


class LoggingConfig(BaseModel):
    """
    Logging configuration.

    Attributes
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    file_enabled : bool
        Whether to log to file.
    file_path : str
        Path to the log file.
    """

    level: str = "INFO"
    file_enabled: bool = False
    file_path: str = "/var/log/router-ddns.log"

    @property
    def file_path_as_path(self) -> Path:
        """
        Get the log file path as a Path object.

        Returns
        -------
        Path
            The resolved log file path.
        """
        return Path(self.file_path)


class HealthConfig(BaseModel):
    """
    Health endpoint configuration.

    Attributes
    ----------
    enabled : bool
        Whether the /health endpoint is enabled.
    """

    enabled: bool = False


class Config(BaseModel):
    """
    Application configuration.

    Attributes
    ----------
    server : ServerConfig
        Server configuration.
    admin : AdminConfig
        Administrative endpoint configuration.
    store : StoreConfig
        Credential store configuration.
    dns : DNSConfig
        DNS provider configuration.
    logging : LoggingConfig
        Logging configuration.
    health : HealthConfig
        Health endpoint configuration.
    """

    server: ServerConfig = ServerConfig()
    admin: AdminConfig = AdminConfig()
    store: StoreConfig = StoreConfig()
    dns: DNSConfig = DNSConfig()
    logging: LoggingConfig = LoggingConfig()
    health: HealthConfig = HealthConfig()


# Readable expectation per pydantic error type. Other error types (such as
# "dns_config_error") carry a complete message of their own.
EXPECTED_VALUES: Final[dict[str, str]] = {
    "int_type": "an integer",
    "int_parsing": "an integer",
    "bool_type": "a boolean",
    "bool_parsing": "a boolean",
    "string_type": "a string",
    "list_type": "a list",
    "literal_error": "one of the allowed values",
    "greater_than_equal": "a larger number",
    "less_than_equal": "a smaller number",
}


def _describe_error(err: ErrorDetails) -> str:
    """Render one pydantic error as ``[section.field]: ...``."""
    field_path = ".".join(str(loc) for loc in err["loc"])
    expected = EXPECTED_VALUES.get(err["type"])
    if expected is None:
        return f"  [{field_path}]: {err['msg']}."

    value = err["input"]
    value_repr = f'"{value}"' if isinstance(value, str) else repr(value)
    return (
        f"  [{field_path}]: Expected {expected}, got {type(value).__name__} "
        f"(value: {value_repr}). {err['msg']}."
    )


def _format_validation_errors(
    error: ValidationError,
    config_path: Path | None,
) -> str:
    """
    Format Pydantic validation errors into human-readable messages.

    Parameters
    ----------
    error : ValidationError
        Pydantic validation error.
    config_path : Path | None
        Path to the configuration file.

    Returns
    -------
    str
        One header line followed by one line per error.
    """
    header = (
        f'Configuration error in "{config_path}":'
        if config_path
        else "Configuration error:"
    )
    return "\n".join([header, *(_describe_error(err) for err in error.errors())])


def validate_config_dict(
    data: dict[str, Any],
    config_path: Path | None = None,
) -> None:
    """
    Validate configuration dictionary using Pydantic.

    Parameters
    ----------
    data : dict[str, Any]
        Configuration dictionary to validate.
    config_path : Path | None, optional
        Path to the configuration file (for error messages).

    Raises
    ------
    ConfigValidationError
        If validation fails.
    """
    try:
        Config(**data)
    except ValidationError as e:
        msg = _format_validation_errors(e, config_path)
        raise ConfigValidationError(msg, config_path) from e


def load_config_from_file(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a TOML file.

    Parameters
    ----------
    config_path : Path
        Path to the configuration file.

    Returns
    -------
    dict[str, Any]
        Parsed configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    tomllib.TOMLDecodeError
        If the configuration file is not valid TOML.
    """
    with config_path.open("rb") as f:
        return tomllib.load(f)


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge two configuration dictionaries.

    Parameters
    ----------
    base : dict[str, Any]
        Base configuration.
    override : dict[str, Any]
        Override configuration (takes precedence).

    Returns
    -------
    dict[str, Any]
        Merged configuration.
    """
    # Use deep copy to avoid modifying the original base configuration
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = value
    return result


def dict_to_config(data: dict[str, Any]) -> Config:
    """
    Convert a dictionary to a Config object.

    Parameters
    ----------
    data : dict[str, Any]
        Configuration dictionary.

    Returns
    -------
    Config
        Configuration object.
    """
    # Handle file_path expansion before Pydantic validation
    if "logging" in data and "file_path" in data["logging"]:
        data = copy.deepcopy(data)
        data["logging"]["file_path"] = str(
            Path(data["logging"]["file_path"]).expanduser(),
        )

    return Config.model_validate(data)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Parameters
    ----------
    args : list[str] | None, optional
        Command-line arguments. If None, uses sys.argv.

    Returns
    -------
    argparse.Namespace
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="router-ddns",
        description="router-ddns - A dynamic DNS update service for routers",
    )

    # Config arguments
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.toml)",
    )

    # Server arguments
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port number to listen on",
    )

    # Admin arguments
    admin_group = parser.add_mutually_exclusive_group()
    admin_group.add_argument(
        "--admin-enabled",
        action="store_true",
        dest="admin_enabled",
        default=None,
        help="Require an API key on POST /user",
    )
    admin_group.add_argument(
        "--admin-disabled",
        action="store_false",
        dest="admin_enabled",
        default=None,
        help="Do not check API keys on POST /user",
    )
    parser.add_argument(
        "--admin-keys",
        nargs="+",
        action="extend",
        dest="admin_keys",
        default=None,
        help="Administrative API keys",
    )

    # Store arguments
    parser.add_argument(
        "--store-backend",
        type=str,
        choices=["memory", "dynamodb"],
        dest="store_backend",
        default=None,
        help="Credential store backend",
    )
    parser.add_argument(
        "--table-name",
        type=str,
        dest="table_name",
        default=None,
        help="DynamoDB users table name",
    )

    # DNS arguments
    parser.add_argument(
        "--dns-provider",
        type=str,
        choices=["memory", "route53", "cloudflare"],
        dest="dns_provider",
        default=None,
        help="DNS provider",
    )
    parser.add_argument(
        "--cf-token",
        type=str,
        dest="cf_token",
        default=None,
        help="CloudFlare API Token",
    )

    # Logging arguments
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level",
    )
    log_file_group = parser.add_mutually_exclusive_group()
    log_file_group.add_argument(
        "--log-file-enabled",
        action="store_true",
        dest="log_file_enabled",
        default=None,
        help="Enable logging to file",
    )
    log_file_group.add_argument(
        "--log-file-disabled",
        action="store_false",
        dest="log_file_enabled",
        default=None,
        help="Disable logging to file",
    )
    parser.add_argument(
        "--log-file-path",
        type=Path,
        dest="log_file_path",
        default=None,
        help="Path to the log file",
    )

    # Health endpoint arguments
    health_group = parser.add_mutually_exclusive_group()
    health_group.add_argument(
        "--health-enabled",
        action="store_true",
        dest="health_enabled",
        default=None,
        help='Enable "/health" endpoint',
    )
    health_group.add_argument(
        "--health-disabled",
        action="store_false",
        dest="health_enabled",
        default=None,
        help='Disable "/health" endpoint',
    )

    return parser.parse_args(args)


def load_config(args: argparse.Namespace | None = None) -> Config:
    """
    Load configuration from file and command-line arguments.

    Priority (high to low):
    1. Command-line arguments
    2. Configuration file
    3. Default values

    Parameters
    ----------
    args : argparse.Namespace | None, optional
        Parsed command-line arguments.

    Returns
    -------
    Config
        Loaded configuration.
    """
    if args is None:
        args = parse_args()

    config_dict: dict[str, Any] = {}

    # Load from config file if specified or if default exists
    config_path = args.config
    if config_path is not None:
        config_path = config_path.expanduser()
    if config_path is None:
        default_config = Path("config.toml")
        if default_config.exists():
            config_path = default_config

    if config_path is not None:
        if config_path.exists():
            logger_basic.info('Loading configuration from "%s".', config_path)
            try:
                config_dict = load_config_from_file(config_path)
            except tomllib.TOMLDecodeError as e:
                logger_basic.critical('Failed to parse configuration file: "%s".', e)
                sys.exit(1)
        else:
            logger_basic.critical("Configuration file not found: %s", config_path)
            sys.exit(1)

    # Apply command-line overrides
    cli_overrides: dict[str, Any] = {}

    # Server overrides
    if args.host is not None:
        cli_overrides.setdefault("server", {})["host"] = args.host
    if args.port is not None:
        cli_overrides.setdefault("server", {})["port"] = args.port

    # Admin overrides
    if args.admin_enabled is not None:
        cli_overrides.setdefault("admin", {})["enabled"] = args.admin_enabled
    if args.admin_keys is not None:
        cli_overrides.setdefault("admin", {})["api_keys"] = args.admin_keys

    # Store overrides
    if args.store_backend is not None:
        cli_overrides.setdefault("store", {})["backend"] = args.store_backend
    if args.table_name is not None:
        cli_overrides.setdefault("store", {})["table_name"] = args.table_name

    # DNS overrides
    if args.dns_provider is not None:
        cli_overrides.setdefault("dns", {})["provider"] = args.dns_provider
    if args.cf_token is not None:
        cli_overrides.setdefault("dns", {})["cf_token"] = args.cf_token

    # Logging overrides
    if args.log_level is not None:
        cli_overrides.setdefault("logging", {})["level"] = args.log_level
    if args.log_file_enabled is not None:
        cli_overrides.setdefault("logging", {})["file_enabled"] = args.log_file_enabled
    if args.log_file_path is not None:
        cli_overrides.setdefault("logging", {})["file_path"] = str(args.log_file_path)

    # Health overrides
    if args.health_enabled is not None:
        cli_overrides.setdefault("health", {})["enabled"] = args.health_enabled

    if cli_overrides:
        config_dict = merge_config(config_dict, cli_overrides)

    # Validate merged configuration
    validate_config_dict(config_dict, config_path)

    return dict_to_config(config_dict)
