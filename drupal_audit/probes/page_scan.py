"""Native HTTP probe that scans a page of the audited site for patterns."""

import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import aiohttp
from pydantic import Field, field_validator

from drupal_audit.context import AuditContext
from drupal_audit.models.base import Model
from drupal_audit.models.registry import ProbeDescriptor
from drupal_audit.models.result import RawOutput
from drupal_audit.probes.base import Probe
from drupal_audit.probes.manifest import ProbeManifest

log = logging.getLogger(__name__)


class PageScanOptions(Model):
    """Options of a ``page_scan`` probe."""

    patterns: Mapping[str, Sequence[str]] = Field(
        ..., min_length=1, description="Check name to case-insensitive regexes"
    )
    follow_redirects: bool = Field(default=True)
    user_agent: str = Field(default="drupal-audit")

    @field_validator("patterns")
    @classmethod
    def _compile_patterns(
        cls, patterns: Mapping[str, Sequence[str]]
    ) -> Mapping[str, Sequence[str]]:
        for name, group in patterns.items():
            for pattern in group:
                try:
                    re.compile(pattern)
                except re.error as e:
                    raise ValueError(
                        f"Invalid pattern for {name}: {pattern!r}: {e}"
                    ) from e
        return patterns


@dataclass(frozen=True, kw_only=True)
class PageScanProbe(Probe):
    """Fetch ``base_url + path`` and report which pattern groups match.

    The output document lists, per check, whether any pattern matched and
    which ones did, plus a score over all checks. Transport failures are
    reported as a non-zero exit with the error on stderr.
    """

    path: str
    options: PageScanOptions

    @classmethod
    def from_descriptor(cls, descriptor: ProbeDescriptor) -> "PageScanProbe":
        """Create probe from a registry descriptor."""
        return cls(
            path=descriptor.invocation,
            options=PageScanOptions.model_validate(descriptor.options),
        )

    async def run(self, context: AuditContext) -> RawOutput:
        """Download the page and evaluate the configured checks."""
        if not context.base_url:
            return RawOutput(stdout="", stderr="base URL not configured", exit_code=2)

        url = urljoin(context.base_url.rstrip("/") + "/", self.path.lstrip("/"))
        headers = {"User-Agent": self.options.user_agent}

        try:
            async with (
                aiohttp.ClientSession(headers=headers) as session,
                session.get(
                    url, allow_redirects=self.options.follow_redirects
                ) as response,
            ):
                body = await response.text(errors="replace")
                status = response.status
                final_url = str(response.url)
        except aiohttp.ClientError as e:
            log.info("Page scan of %s failed: %s", url, e)
            return RawOutput(stdout="", stderr=str(e), exit_code=1)

        document = {
            "url": url,
            "final_url": final_url,
            "status": status,
            **scan_patterns(body, self.options.patterns),
        }
        return RawOutput(
            stdout=json.dumps(document),
            exit_code=0 if status < 400 else 1,
        )


def scan_patterns(
    body: str, patterns: Mapping[str, Sequence[str]]
) -> dict[str, Any]:
    """Evaluate pattern groups against a page body.

    Returns:
        ``checks`` keyed by group and a ``summary`` with the passed count,
        total and percentage score

    """
    checks: dict[str, Any] = {}
    for name, group in patterns.items():
        matched = [
            pattern
            for pattern in group
            if re.search(pattern, body, re.IGNORECASE | re.MULTILINE)
        ]
        checks[name] = {"found": bool(matched), "matched": matched}

    passed = sum(1 for check in checks.values() if check["found"])
    total = len(checks)
    return {
        "checks": checks,
        "summary": {
            "checks_passed": passed,
            "checks_total": total,
            "score": round(100 * passed / total) if total else 0,
        },
    }


page_scan_manifest = ProbeManifest(probe_factory=PageScanProbe.from_descriptor)
