"""Tests for the page scan probe."""

import pytest
from pydantic import ValidationError

from drupal_audit.context import AuditContext
from drupal_audit.probes.page_scan import PageScanOptions, PageScanProbe, scan_patterns
from drupal_audit.testing.factories import ProbeDescriptorFactory

PAGE = """<html><head><title>Example</title></head>
<body>
<div id="sliding-popup">We use cookies to improve your experience.</div>
<footer><a href="/privacy-policy">Privacy policy</a></footer>
</body></html>
"""


class TestScanPatterns:
    """Tests for scan_patterns."""

    def test_reports_matched_patterns_per_check(self) -> None:
        """Each check lists the patterns found in the body."""
        result = scan_patterns(
            PAGE,
            {
                "cookie_banner": ["sliding-popup", "eu-cookie-compliance", "cookie"],
                "privacy_policy": ["privacy[- ]policy"],
                "terms": ["terms of (use|service)"],
            },
        )

        assert result["checks"] == {
            "cookie_banner": {"found": True, "matched": ["sliding-popup", "cookie"]},
            "privacy_policy": {"found": True, "matched": ["privacy[- ]policy"]},
            "terms": {"found": False, "matched": []},
        }
        assert result["summary"] == {
            "checks_passed": 2,
            "checks_total": 3,
            "score": 67,
        }

    def test_anchors_match_line_starts(self) -> None:
        """Line anchors apply to every line, as in robots.txt files."""
        robots = "User-agent: *\nDisallow: /admin/\nSitemap: https://x.test/s.xml\n"

        result = scan_patterns(
            robots,
            {
                "user_agent": ["^user-agent:"],
                "sitemap": [r"^sitemap:\s*\S+"],
                "crawl_delay": ["^crawl-delay:"],
            },
        )

        assert [c["found"] for c in result["checks"].values()] == [True, True, False]

    def test_empty_patterns_score_zero(self) -> None:
        """No checks means a zero score rather than a division error."""
        assert scan_patterns(PAGE, {})["summary"]["score"] == 0


class TestPageScanOptions:
    """Tests for PageScanOptions."""

    def test_defaults(self) -> None:
        """Redirects are followed with the default user agent."""
        options = PageScanOptions.model_validate({"patterns": {"a": ["b"]}})

        assert options.follow_redirects is True
        assert options.user_agent == "drupal-audit"

    def test_rejects_invalid_regex(self) -> None:
        """Patterns are compiled at load time."""
        with pytest.raises(ValidationError, match="Invalid pattern for cookie"):
            PageScanOptions.model_validate({"patterns": {"cookie": ["(unclosed"]}})

    def test_requires_patterns(self) -> None:
        """At least one check is required."""
        with pytest.raises(ValidationError):
            PageScanOptions.model_validate({"patterns": {}})


def test_from_descriptor() -> None:
    """The invocation is the page path and options are validated."""
    descriptor = ProbeDescriptorFactory.build(
        kind="page_scan",
        invocation="/robots.txt",
        options={"patterns": {"sitemap": ["^sitemap:"]}, "user_agent": "bot"},
    )

    probe = PageScanProbe.from_descriptor(descriptor)

    assert probe.path == "/robots.txt"
    assert probe.options.user_agent == "bot"


async def test_run_without_base_url_fails(context: AuditContext) -> None:
    """Without a base URL the probe reports failure without any request."""
    probe = PageScanProbe(
        path="/", options=PageScanOptions(patterns={"cookie_banner": ["cookie"]})
    )

    output = await probe.run(context)

    assert output.exit_code == 2
    assert output.stdout == ""
