"""Exceptions raised by the audit engine."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drupal_audit.models.result import RunArtifact


class AuditError(Exception):
    """Base class for audit errors."""


class ConfigError(AuditError):
    """Raised when the registry or configuration is malformed."""


class ProbeError(AuditError):
    """Base class for probe failures recovered by the executor."""


class ProbeParseError(ProbeError):
    """Raised when a json probe prints something that is not JSON."""


class ProbeExecError(ProbeError):
    """Raised when a probe exits non-zero without usable output."""


class ProbeTimeout(ProbeError):
    """Raised when a probe exceeds its wall-clock budget."""


class RunExhausted(AuditError):
    """Raised when no section of a run produced usable data."""

    def __init__(self, message: str, artifact: "RunArtifact | None" = None) -> None:
        super().__init__(message)
        self.artifact = artifact
