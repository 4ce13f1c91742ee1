"""Configuration and logging setup for raxcloud clients."""

import logging
import pathlib
from datetime import timedelta
from typing import Literal

import pydantic
import structlog

from .identity.client import identity_url_for_region
from .identity.credentials import Credential
from .rest import DEFAULT_TIMEOUT

CONFIG_ENV_VAR = "RAXCLOUD_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "./raxcloud.json"


class ClientConfig(pydantic.BaseModel):
    """Configuration for an authenticated raxcloud client."""

    identity_url: str | None = pydantic.Field(
        None,
        description="Identity service base URL; derived from region when unset",
    )
    region: str | None = pydantic.Field(
        None,
        description="Account home region used to pick the identity endpoint",
    )
    username: str = pydantic.Field(description="Account username")
    password: str | None = pydantic.Field(None, description="Account password")
    api_key: str | None = pydantic.Field(None, description="Account API key")
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    token_skew_seconds: float = pydantic.Field(
        300.0,
        description="Seconds before token expiry at which to log in again",
        ge=0,
    )
    debug: bool = pydantic.Field(False, description="Dump HTTP traffic")
    log_level: str = pydantic.Field("INFO", description="Logging level")
    log_format: Literal["logfmt", "json"] = pydantic.Field(
        "logfmt",
        description="Log line rendering",
    )

    @property
    def token_skew(self) -> timedelta:
        return timedelta(seconds=self.token_skew_seconds)

    def credential(self) -> Credential:
        """Build the credential described by this configuration.

        Raises:
            CredentialError: If not exactly one of password and api_key is set.
        """
        return Credential.from_secrets(
            self.username,
            password=self.password,
            api_key=self.api_key,
        )

    def resolved_identity_url(self) -> str:
        return self.identity_url or identity_url_for_region(self.region)


def configure_logging(log_level_name: str, log_format: str = "logfmt") -> None:
    """Configure structlog output for client applications.

    Args:
        log_level_name: Minimum level name; unknown names mean INFO.
        log_format: "logfmt" for key=value lines, "json" for one JSON
            object per line.
    """
    log_level = logging.getLevelName(log_level_name.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.processors.LogfmtRenderer(
            key_order=("timestamp", "level", "msg"),
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ClientConfig:
    """Read and validate a JSON configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the file is not valid JSON or does not
            describe a ClientConfig.
    """
    path = pathlib.Path(config_path)
    if not path.is_file():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    return ClientConfig.model_validate_json(path.read_text(encoding="utf-8"))
