"""Models for probe descriptors loaded from registry.yaml files."""

import copy
from collections.abc import Mapping, Sequence
from typing import Any, Literal, TypeAlias

from pydantic import Field, JsonValue, model_validator

from drupal_audit.models.base import Model

ResultType: TypeAlias = Literal["json", "text"]

NAME_PATTERN = r"^[a-z0-9][a-z0-9_]*$"

BASE_URL_MISSING = "BASE_URL not provided"


class ProbeDescriptor(Model):
    """Declarative description of a single probe.

    A descriptor is pure data: the executor turns it into a running probe
    through the manifest registered for its ``kind``.
    """

    section: str = Field(
        ..., pattern=NAME_PATTERN, description="Section the result is merged into"
    )
    key: str = Field(
        ..., pattern=NAME_PATTERN, description="Field name within the section"
    )
    result_type: ResultType = Field(
        ..., description="How captured output is interpreted"
    )
    invocation: str = Field(
        ..., min_length=1, description="Command template or request path"
    )
    kind: str = Field(default="shell", description="Probe implementation key")
    default: JsonValue = Field(
        default=None,
        description="Value recorded when the probe yields no usable output",
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Wall-clock budget in seconds"
    )
    nonzero_exit_is_findings: bool = Field(
        default=True,
        description="Whether a non-zero exit with usable output counts as success",
    )
    requires_base_url: bool = Field(
        default=False, description="Whether the probe needs the site base URL"
    )
    options: Mapping[str, Any] = Field(
        default_factory=dict, description="Kind-specific parameters"
    )
    description: str | None = Field(default=None)

    @model_validator(mode="after")
    def _check_default_shape(self) -> "ProbeDescriptor":
        if self.default is None:
            return self
        if self.result_type == "json" and not isinstance(self.default, dict | list):
            raise ValueError(
                f"{self.section}.{self.key}: json probe default must be "
                "an object or an array"
            )
        if self.result_type == "text" and (
            isinstance(self.default, bool)
            or not isinstance(self.default, str | int | float)
        ):
            raise ValueError(
                f"{self.section}.{self.key}: text probe default must be "
                "a string or a number"
            )
        return self

    @property
    def qualified_name(self) -> str:
        """Return ``section.key``."""
        return f"{self.section}.{self.key}"

    def empty_value(self) -> JsonValue:
        """Return a fresh copy of the type-correct empty value."""
        if self.default is not None:
            return copy.deepcopy(self.default)
        return {} if self.result_type == "json" else ""

    def missing_base_url_value(self) -> JsonValue:
        """Return the explicit value recorded when no base URL is configured."""
        if self.result_type == "text":
            return BASE_URL_MISSING
        value = self.empty_value()
        if isinstance(value, dict):
            value["error"] = BASE_URL_MISSING
        return value


class RegistryDocument(Model):
    """Complete registry document loaded from YAML."""

    version: str = Field(..., description="Registry schema version")
    probes: Sequence[ProbeDescriptor] = Field(
        default_factory=list, description="Probes in declaration order"
    )
