"""Operator configuration read from environment variables."""

import logging
import os

from pydantic import BaseModel, Field, ValidationError, field_validator

from ingress_duplicator.exceptions import ConfigError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


class OperatorConfig(BaseModel):
    """Runtime settings for the operator."""

    log_level: str = Field(default="INFO", description="Root log level")
    worker_limit: int = Field(default=5, ge=1, description="kopf worker threads")
    posting_enabled: bool = Field(
        default=False, description="Post log records as Kubernetes events"
    )
    server_timeout: int = Field(default=60, ge=1, description="Watch timeout (s)")
    manage_crds: bool = Field(default=True, description="Apply CRDs on startup")
    generate_crd_files: bool = Field(
        default=False, description="Also write CRD YAML files on startup"
    )
    request_timeout: float = Field(
        default=30, gt=0, description="Timeout for a single API request (s)"
    )
    retry_delay: float = Field(
        default=10, gt=0, description="Delay before retrying a conflicted reconcile (s)"
    )
    resync_interval: float = Field(
        default=300, gt=0, description="Periodic full reconcile interval (s)"
    )
    namespace_recheck_interval: float = Field(
        default=60,
        ge=0,
        description="Re-check a missing target namespace after this long (s), 0 disables",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value):
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @classmethod
    def from_env(cls, environ=None):
        """Build the configuration from environment variables.

        Raises:
            ConfigError: if a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        values = {}
        for field_name in cls.model_fields:
            raw = env.get(field_name.upper())
            if raw is None or raw == "":
                continue
            if cls.model_fields[field_name].annotation is bool:
                values[field_name] = raw.strip().lower() in _TRUE_VALUES
            else:
                values[field_name] = raw.strip()

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid operator configuration: {e}") from e

    @property
    def namespace_recheck_delay(self):
        """Requeue delay for a missing namespace, or None when disabled."""
        return self.namespace_recheck_interval or None


_config = None


def get_config():
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = OperatorConfig.from_env()
    return _config


def reset_config():
    """Forget the loaded configuration (used by tests and the CLI)."""
    global _config
    _config = None
