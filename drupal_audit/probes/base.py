"""Abstract base class for probe implementations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from drupal_audit.context import AuditContext
from drupal_audit.models.result import RawOutput


@dataclass(frozen=True, kw_only=True)
class Probe(ABC):
    """One independently executable check.

    Implementations only capture output; interpreting it, enforcing the
    timeout and classifying failures is the executor's job. A probe must
    release any resource it holds when its ``run`` coroutine is cancelled.
    """

    @abstractmethod
    async def run(self, context: AuditContext) -> RawOutput:
        """Run the check against the audited site.

        Args:
            context: Paths, base URL and variables of the current run

        Returns:
            Captured stdout, stderr and exit code

        """
