"""Run coordinator: runs sections in order and persists the report."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from drupal_audit.aggregator import SectionAggregator
from drupal_audit.artifact import ArtifactWriter, make_run_id
from drupal_audit.context import AuditContext
from drupal_audit.errors import ConfigError, RunExhausted
from drupal_audit.models.result import RunArtifact, SectionResult
from drupal_audit.registry import ProbeRegistry

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class RunCoordinator:
    """Coordinates one audit run against a single site.

    Sections run one after another in registry order so the audited site is
    never hit by more than one section's probes at a time. A failing section
    never stops the run; only a run without a single usable section fails.
    """

    registry: ProbeRegistry
    aggregator: SectionAggregator
    writer: ArtifactWriter

    async def run_all(
        self,
        site: str,
        context: AuditContext,
        sections: Sequence[str] | None = None,
    ) -> RunArtifact:
        """Run the requested sections and write the report artifact.

        Args:
            site: Site identifier used in the run directory name
            context: Paths, base URL and variables of the current run
            sections: Sections to run; every registry section when omitted

        Returns:
            Finalized artifact

        Raises:
            ConfigError: If a requested section is not in the registry
            RunExhausted: If no section produced usable data

        """
        selected = self.resolve_sections(sections)
        artifact = self.writer.initialize(make_run_id(site), site)

        for index, section in enumerate(selected, start=1):
            result = await self.run_section(section, context)
            self.writer.write_section(artifact, result)
            log.info(
                "[%d/%d] %s: %s (%.1fs)",
                index,
                len(selected),
                section,
                "partial" if result.partial else "ok",
                result.duration,
            )

        counts = artifact.status_counts()
        log.info(
            "Run %s: %d sections attempted, %d ok, %d partial",
            artifact.run_id,
            counts["attempted"],
            counts["ok"],
            counts["partial"],
        )

        if not artifact.usable_sections:
            raise RunExhausted(
                f"No section produced usable data in run {artifact.run_id}",
                artifact=artifact,
            )

        self.writer.finalize(artifact)
        return artifact

    async def run_section(self, section: str, context: AuditContext) -> SectionResult:
        """Run a single section without writing anything.

        Raises:
            ConfigError: If the section is not in the registry

        """
        if section not in self.registry:
            raise ConfigError(self._unknown_section_message(section))
        return await self.aggregator.run(section, context)

    def resolve_sections(self, sections: Sequence[str] | None) -> Sequence[str]:
        """Return the sections to run, in registry order."""
        if not sections:
            return self.registry.sections()

        unknown = [section for section in sections if section not in self.registry]
        if unknown:
            raise ConfigError(self._unknown_section_message(*unknown))

        requested = set(sections)
        return [
            section for section in self.registry.sections() if section in requested
        ]

    def _unknown_section_message(self, *sections: str) -> str:
        return (
            f"Unknown section(s): {', '.join(sections)}. "
            f"Available sections: {list(self.registry.sections())}"
        )
