"""
Logging configuration for router-ddns.

This module provides logging setup with support for console and file output.
Credentials (Basic authorization, API keys, passwords) are automatically
masked in log messages.
"""

from __future__ import annotations

import copy
import logging
import logging.handlers
import re
import sys
from typing import TYPE_CHECKING

from uvicorn.config import LOGGING_CONFIG

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Final

    from router_ddns.config import LoggingConfig


# Patterns to match sensitive values in log messages
# Each tuple is (pattern, replacement)
# For partial masking, capture the prefix to keep and mask the rest
SENSITIVE_PATTERNS: Final[list[tuple[re.Pattern[str], str]]] = [
    # Basic credential (router username and password), mask completely
    (
        re.compile(r"((?:Authorization:\s*)?Basic\s+)([^\s\"']*)", re.IGNORECASE),
        r"\1******",
    ),
    # Bearer token (CloudFlare API Token), keep first 6 characters
    (
        re.compile(
            r"((?:Authorization:\s*)?Bearer\s+)(.{0,6})([^\s\"']*)", re.IGNORECASE,
        ),
        r"\1\2******",
    ),
    # Admin API key header, keep first 6 characters
    (
        re.compile(r"(x-api-key:\s*)(.{0,6})([^\s\"',]*)", re.IGNORECASE),
        r"\1\2******",
    ),
    # JSON password field, mask completely
    (
        re.compile(r"(\"password\"\s*:\s*\")((?:[^\"\\]|\\.)*)\"", re.IGNORECASE),
        r'\1******"',
    ),
    # Form/query style password and token fields, mask completely
    (
        re.compile(r"((?:password|cf_token)=)([^\s&,\"']+)", re.IGNORECASE),
        r"\1******",
    ),
]


LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO (httpx logs every request line)
NOISY_LOGGERS: Final[tuple[str, ...]] = ("botocore", "boto3", "urllib3", "httpx")


def mask_sensitive(value: str) -> str:
    """
    Apply every pattern of SENSITIVE_PATTERNS to a string.

    Parameters
    ----------
    value : str
        The string to process.

    Returns
    -------
    str
        The string with credentials masked.
    """
    for pattern, replacement in SENSITIVE_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def _mask_arg(arg: object) -> object:
    return mask_sensitive(arg) if isinstance(arg, str) else arg


class SensitiveFilter(logging.Filter):
    """
    A logging filter that masks credentials.

    Router passwords, admin API keys and provider tokens are replaced with
    asterisks in the message, its arguments and the uvicorn access log
    fields, so they never reach a console or a log file.
    """

    # Attributes set on records by uvicorn's formatters
    _RECORD_FIELDS: tuple[str, ...] = ("request_line", "full_path", "path", "url")

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Mask credentials in a log record.

        Parameters
        ----------
        record : logging.LogRecord
            The log record to process.

        Returns
        -------
        bool
            Always True. Records are rewritten, never dropped.
        """
        if record.msg:
            record.msg = mask_sensitive(str(record.msg))

        if isinstance(record.args, dict):
            record.args = {k: _mask_arg(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(_mask_arg(arg) for arg in record.args)

        for field in self._RECORD_FIELDS:
            value = record.__dict__.get(field)
            if isinstance(value, str):
                record.__dict__[field] = mask_sensitive(value)

        return True


def _prepare_log_file(config: LoggingConfig, logger: logging.Logger) -> Path:
    """
    Create the log file and its directory, exiting if that fails.

    Parameters
    ----------
    config : LoggingConfig
        Logging configuration with ``file_enabled`` set.
    logger : logging.Logger
        Logger to report the failure on.

    Returns
    -------
    Path
        The log file path.
    """
    log_path = config.file_path_as_path
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.touch(exist_ok=True)
    except OSError as e:
        logger.critical('Failed to create log file "%s": %s', log_path, e)
        sys.exit(1)
    return log_path


def setup_logging(config: LoggingConfig) -> None:
    """
    Set up the "router_ddns" logger based on configuration.

    Messages go to the console and, if enabled, to a watched log file. Both
    handlers mask credentials. Unless the level is DEBUG, the AWS and HTTP
    client libraries are limited to warnings.

    Parameters
    ----------
    config : LoggingConfig
        Logging configuration.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    logger = logging.getLogger("router_ddns")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file_enabled:
        log_path = _prepare_log_file(config, logger)
        handlers.append(
            logging.handlers.WatchedFileHandler(str(log_path), encoding="utf-8"),
        )

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveFilter())
        logger.addHandler(handler)

    if config.file_enabled:
        logger.info('File logging enabled: "%s".', config.file_path_as_path)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def build_uvicorn_log_config(config: LoggingConfig) -> dict:
    """
    Build the uvicorn log configuration.

    Starts from uvicorn's defaults (colored console output), adds the
    credential filter to every handler and, when file logging is enabled,
    sends the server and access logs to the log file as well.

    Parameters
    ----------
    config : LoggingConfig
        Logging configuration from the application.

    Returns
    -------
    dict
        A uvicorn-compatible ``logging.config.dictConfig`` dictionary.

    Raises
    ------
    SystemExit
        If file logging is enabled but the log file cannot be created.
    """
    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config.setdefault("filters", {})["sensitive"] = {
        "()": f"{__name__}.SensitiveFilter",
    }

    if config.file_enabled:
        log_path = _prepare_log_file(config, logging.getLogger("router_ddns"))
        log_config.setdefault("formatters", {})["file"] = {
            "format": LOG_FORMAT,
            "datefmt": DATE_FORMAT,
        }
        log_config["handlers"]["file"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": str(log_path),
            "encoding": "utf-8",
            "formatter": "file",
        }
        # "uvicorn.error" propagates to "uvicorn"
        log_config["loggers"]["uvicorn"]["handlers"].append("file")
        log_config["loggers"]["uvicorn.access"]["handlers"].append("file")

    for handler in log_config["handlers"].values():
        handler.setdefault("filters", []).append("sensitive")

    return log_config
