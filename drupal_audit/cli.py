"""CLI entry point for the Drupal site audit."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from drupal_audit.aggregator import SectionAggregator
from drupal_audit.artifact import ArtifactWriter
from drupal_audit.config import AuditConfig, load_config
from drupal_audit.context import AuditContext, detect_docroot
from drupal_audit.coordinator import RunCoordinator
from drupal_audit.errors import ConfigError, RunExhausted
from drupal_audit.executor import ProbeExecutor
from drupal_audit.models.result import SectionResult
from drupal_audit.registry import ProbeRegistry

STATUS_SYMBOLS = {
    "ok": "✓",
    "partial": "!",
    "empty": "∅",
    "parse_error": "✗",
    "exec_error": "✗",
    "timeout": "⏱",
}


def log_results_summary(
    log: logging.Logger, section_results: Sequence[SectionResult]
) -> None:
    """Log a per-section summary listing probes that did not return data."""
    log.info("=" * 80)
    log.info("Audit Results Summary:")
    log.info("=" * 80)

    for result in section_results:
        status = "partial" if result.partial else "ok"
        ok_count = sum(1 for s in result.statuses.values() if s == "ok")
        log.info(
            "%s %s: %s (%d/%d probes, %.2fs)",
            STATUS_SYMBOLS[status],
            result.section,
            status,
            ok_count,
            len(result.statuses),
            result.duration,
        )
        for key, probe_status in result.statuses.items():
            if probe_status != "ok":
                log.info("  %s %s: %s", STATUS_SYMBOLS[probe_status], key, probe_status)


def build_context(config: AuditConfig) -> AuditContext:
    """Resolve paths and the document root into a probe context."""
    project_dir = config.project_dir.resolve()
    return AuditContext(
        project_dir=project_dir,
        docroot=config.docroot or detect_docroot(project_dir),
        base_url=config.base_url,
        base_dir=config.base_dir.resolve() if config.base_dir else None,
        extra=config.variables,
    )


async def run(
    site: str,
    config: AuditConfig,
    sections: Sequence[str] = (),
) -> int:
    """Run the audit and return exit code."""
    log = logging.getLogger("drupal_audit")

    try:
        registry = ProbeRegistry.load(config.registry_path)
        registry.validate_kinds()
    except ConfigError as e:
        log.error("%s", e)
        return 1

    context = build_context(config)
    log.info(
        "Auditing %s (project=%s, docroot=%s, base_url=%s)",
        site,
        context.project_dir,
        context.docroot,
        context.base_url or "-",
    )

    writer = ArtifactWriter(config.output_dir)
    coordinator = RunCoordinator(
        registry=registry,
        aggregator=SectionAggregator(
            registry=registry,
            executor=ProbeExecutor(default_timeout=config.timeout),
            max_concurrency=config.max_concurrency,
        ),
        writer=writer,
    )

    try:
        artifact = await coordinator.run_all(site, context, sections or None)
    except ConfigError as e:
        log.error("%s", e)
        return 1
    except FileExistsError as e:
        log.error("Run directory already exists: %s", e.filename)
        return 1
    except RunExhausted as e:
        if e.artifact is not None:
            log_results_summary(log, e.artifact.sections)
        log.error("%s", e)
        return 1

    writer.update_latest_link(artifact)
    log_results_summary(log, artifact.sections)

    print(artifact.root_path)
    return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Audit a Drupal site and write a JSON/HTML report directory"
    )
    parser.add_argument("site", help="Site identifier used in the run directory name")
    parser.add_argument(
        "--base-url",
        help="Public URL of the site (enables performance, accessibility and "
        "legal compliance probes)",
    )
    parser.add_argument(
        "--section",
        action="append",
        dest="sections",
        default=[],
        help="Run only this section (repeatable)",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--registry", type=Path, help="Probe registry YAML file")
    parser.add_argument("--project-dir", type=Path, help="Drupal project root")
    parser.add_argument(
        "--output-dir", type=Path, help="Directory receiving run directories"
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        help="Directory whose scripts/ folder replaces the packaged helper scripts",
    )
    parser.add_argument("--docroot", help="Document root (auto-detected by default)")
    parser.add_argument("--timeout", type=float, help="Default per-probe timeout")
    parser.add_argument(
        "--max-concurrency", type=int, help="Concurrent probes within a section"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(
            args.config,
            {
                "base_url": args.base_url,
                "registry_path": args.registry,
                "project_dir": args.project_dir,
                "output_dir": args.output_dir,
                "base_dir": args.base_dir,
                "docroot": args.docroot,
                "timeout": args.timeout,
                "max_concurrency": args.max_concurrency,
            },
        )
    except ConfigError as e:
        logging.getLogger("drupal_audit").error("%s", e)
        sys.exit(1)

    exit_code = asyncio.run(run(site=args.site, config=config, sections=args.sections))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
