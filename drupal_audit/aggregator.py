"""Section aggregator: run a section's probes and merge their results."""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import JsonValue

from drupal_audit.context import AuditContext
from drupal_audit.executor import ProbeExecutor
from drupal_audit.models.registry import ProbeDescriptor
from drupal_audit.models.result import ExecutionResult, ProbeStatus, SectionResult
from drupal_audit.registry import ProbeRegistry

log = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4


@dataclass(frozen=True, kw_only=True)
class SectionAggregator:
    """Runs every probe of a section and merges the results into one object.

    Probes of a section write disjoint keys, so they run concurrently up to
    ``max_concurrency``. The merged object always holds every declared key.
    """

    registry: ProbeRegistry
    executor: ProbeExecutor
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    async def run(self, section: str, context: AuditContext) -> SectionResult:
        """Run all probes of a section.

        Args:
            section: Section name from the registry
            context: Paths, base URL and variables of the current run

        Returns:
            Section result with one field per declared probe

        """
        descriptors = self.registry.descriptors_for(section)
        log.info("Running section %s (%d probe(s))", section, len(descriptors))

        started = time.monotonic()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(descriptor: ProbeDescriptor) -> ExecutionResult:
            async with semaphore:
                return await self.executor.execute(descriptor, context)

        results = await asyncio.gather(
            *(bounded(descriptor) for descriptor in descriptors),
            return_exceptions=True,
        )

        return self._merge(
            section, descriptors, results, duration=time.monotonic() - started
        )

    def _merge(
        self,
        section: str,
        descriptors: Sequence[ProbeDescriptor],
        results: Sequence[ExecutionResult | BaseException],
        duration: float,
    ) -> SectionResult:
        """Merge results in declaration order, substituting empty values."""
        fields: dict[str, JsonValue] = {}
        statuses: dict[str, ProbeStatus] = {}

        for descriptor, result in zip(descriptors, results, strict=True):
            if isinstance(result, ExecutionResult):
                fields[descriptor.key] = result.value
                statuses[descriptor.key] = result.status
            elif isinstance(result, Exception):
                log.error(
                    "Probe %s failed: %s",
                    descriptor.qualified_name,
                    result,
                    exc_info=result,
                )
                fields[descriptor.key] = descriptor.empty_value()
                statuses[descriptor.key] = "exec_error"
            else:
                raise result

        partial = any(status != "ok" for status in statuses.values())
        return SectionResult(
            section=section,
            fields=fields,
            partial=partial,
            statuses=statuses,
            duration=duration,
        )
