"""Configuration for an audit run."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from drupal_audit.aggregator import DEFAULT_MAX_CONCURRENCY
from drupal_audit.errors import ConfigError
from drupal_audit.executor import DEFAULT_TIMEOUT
from drupal_audit.models.base import Model

HTTP_URL = TypeAdapter(HttpUrl)


class AuditConfig(Model):
    """Settings of an audit run.

    Values come from an optional YAML file and are overridden by command-line
    flags.
    """

    project_dir: Path = Field(
        default=Path("."), description="Root of the audited Drupal project"
    )
    output_dir: Path = Field(
        default=Path("reports"), description="Directory receiving run directories"
    )
    registry_path: Path | None = Field(
        default=None, description="Registry YAML (packaged registry when unset)"
    )
    base_dir: Path | None = Field(
        default=None, description="Directory containing the helper scripts/ folder"
    )
    base_url: str | None = Field(
        default=None, description="Public URL of the site for network probes"
    )
    docroot: str | None = Field(
        default=None, description="Document root (auto-detected when unset)"
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Default per-probe timeout"
    )
    max_concurrency: int = Field(
        default=DEFAULT_MAX_CONCURRENCY,
        ge=1,
        description="Probes run concurrently within a section",
    )
    variables: Mapping[str, str] = Field(
        default_factory=dict, description="Extra placeholders for invocations"
    )

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str | None) -> str | None:
        """Validate as an http(s) URL but keep the text as given."""
        if value is not None:
            try:
                HTTP_URL.validate_python(value)
            except ValidationError as e:
                raise ValueError(
                    f"base_url is not a valid http(s) URL: {value}"
                ) from e
        return value


def load_config(
    path: Path | None = None, overrides: Mapping[str, Any] | None = None
) -> AuditConfig:
    """Build the run configuration from a YAML file and overrides.

    Overrides whose value is ``None`` are ignored so unset CLI flags keep the
    file's value.

    Raises:
        ConfigError: If the file is unreadable or the result is invalid

    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        try:
            loaded = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        data.update(loaded or {})

    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return AuditConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
