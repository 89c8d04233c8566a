"""Models for probe execution and run results."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, TypeAlias

from pydantic import JsonValue

from drupal_audit.models.registry import ProbeDescriptor

ProbeStatus: TypeAlias = Literal["ok", "empty", "parse_error", "exec_error", "timeout"]

ArtifactState: TypeAlias = Literal["created", "populating", "finalized"]


@dataclass(frozen=True, kw_only=True)
class RawOutput:
    """Captured output of one probe run, before interpretation."""

    stdout: str
    stderr: str = ""
    exit_code: int = 0


@dataclass(frozen=True, kw_only=True)
class ExecutionResult:
    """Outcome of a single probe execution.

    ``value`` is always type-correct: on anything but ``ok`` it holds the
    descriptor's empty value. ``raw_stderr`` is kept for diagnostics and
    never written to the report.
    """

    descriptor: ProbeDescriptor
    status: ProbeStatus
    value: JsonValue
    raw_stderr: str = ""
    exit_code: int | None = None
    duration: float = 0.0
    message: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the probe produced usable output."""
        return self.status == "ok"


@dataclass(frozen=True, kw_only=True)
class SectionResult:
    """Merged results of all probes in one section."""

    section: str
    fields: Mapping[str, JsonValue]
    partial: bool
    statuses: Mapping[str, ProbeStatus] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def usable(self) -> bool:
        """Whether at least one probe in the section returned data."""
        return any(status == "ok" for status in self.statuses.values())

    def to_document(self) -> dict[str, JsonValue]:
        """Return the section file document: fields plus the ``_audit`` block."""
        document: dict[str, JsonValue] = dict(self.fields)
        document["_audit"] = {
            "section": self.section,
            "partial": self.partial,
            "statuses": dict(self.statuses),
        }
        return document


@dataclass(kw_only=True)
class RunArtifact:
    """On-disk report directory for one run."""

    run_id: str
    site: str
    root_path: Path
    state: ArtifactState = "created"
    sections: list[SectionResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def json_dir(self) -> Path:
        """Directory holding one JSON file per section."""
        return self.root_path / "json"

    @property
    def html_dir(self) -> Path:
        """Directory holding the HTML template skeleton."""
        return self.root_path / "html"

    @property
    def usable_sections(self) -> list[SectionResult]:
        """Sections where at least one probe returned data."""
        return [result for result in self.sections if result.usable]

    @property
    def partial_sections(self) -> list[SectionResult]:
        """Sections where at least one probe did not return data."""
        return [result for result in self.sections if result.partial]

    def status_counts(self) -> dict[str, int]:
        """Count attempted, complete and partial sections."""
        partial = len(self.partial_sections)
        return {
            "attempted": len(self.sections),
            "ok": len(self.sections) - partial,
            "partial": partial,
        }
