"""Report artifact writer: the per-run output directory."""

import json
import logging
import os
import re
import stat
from datetime import datetime
from importlib.resources import as_file, files
from pathlib import Path
from string import Template
from typing import Any

from drupal_audit.models.result import RunArtifact, SectionResult

log = logging.getLogger(__name__)

RUN_ID_TIME_FORMAT = "%Y%m%d-%H%M%S"
UNSAFE_SITE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
LATEST_LINK = "latest"
RUN_MANIFEST = "run.json"
PLACEHOLDER_TEMPLATE = "_placeholder.html"
READ_ONLY = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH


def make_run_id(site: str, now: datetime | None = None) -> str:
    """Build a run identifier from the site name and a second-resolution time."""
    safe_site = UNSAFE_SITE_CHARS.sub("-", site).strip("-.") or "site"
    return f"{safe_site}-{(now or datetime.now()).strftime(RUN_ID_TIME_FORMAT)}"


def write_json_atomic(path: Path, document: Any) -> None:
    """Write a JSON document so readers never observe a partial file."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n")
    os.replace(tmp_path, path)


class ArtifactWriter:
    """Creates, populates and finalizes run directories under ``output_dir``.

    Layout of a finalized run::

        <run_id>/
          json/<section>.json
          html/index.html
          html/includes/<section>.html
          run.json
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def initialize(self, run_id: str, site: str) -> RunArtifact:
        """Create the directory skeleton before any section runs.

        Raises:
            FileExistsError: If a run with the same identifier already exists

        """
        root = self.output_dir / run_id
        self.output_dir.mkdir(parents=True, exist_ok=True)
        root.mkdir()
        artifact = RunArtifact(run_id=run_id, site=site, root_path=root)
        artifact.json_dir.mkdir()
        artifact.html_dir.mkdir()
        log.info("Created run directory %s", root)
        return artifact

    def write_section(self, artifact: RunArtifact, result: SectionResult) -> Path:
        """Persist a section result as ``json/<section>.json``."""
        if artifact.state == "finalized":
            raise RuntimeError(f"Run {artifact.run_id} is already finalized")

        path = artifact.json_dir / f"{result.section}.json"
        write_json_atomic(path, result.to_document())
        artifact.sections.append(result)
        artifact.state = "populating"
        return path

    def finalize(self, artifact: RunArtifact) -> Path:
        """Copy the HTML skeleton, write the run manifest and lock the JSON.

        Returns:
            The artifact root path

        """
        self._copy_templates(artifact)
        artifact.finished_at = datetime.now()
        write_json_atomic(artifact.root_path / RUN_MANIFEST, self.manifest(artifact))

        for path in artifact.json_dir.glob("*.json"):
            path.chmod(READ_ONLY)

        artifact.state = "finalized"
        log.info("Finalized run %s", artifact.run_id)
        return artifact.root_path

    def update_latest_link(self, artifact: RunArtifact) -> Path | None:
        """Point ``<output_dir>/latest`` at the given run.

        The link is a convenience: when it cannot be replaced (for example a
        real ``latest`` directory is in the way) a warning is logged and
        ``None`` is returned, leaving the finalized run untouched.
        """
        link = self.output_dir / LATEST_LINK
        tmp_link = self.output_dir / f".{LATEST_LINK}.tmp"
        try:
            tmp_link.unlink(missing_ok=True)
            tmp_link.symlink_to(artifact.run_id, target_is_directory=True)
            os.replace(tmp_link, link)
        except OSError as e:
            log.warning("Could not update %s: %s", link, e)
            tmp_link.unlink(missing_ok=True)
            return None
        return link

    def manifest(self, artifact: RunArtifact) -> dict[str, Any]:
        """Return the run summary written to ``run.json``."""
        return {
            "run_id": artifact.run_id,
            "site": artifact.site,
            "started_at": artifact.started_at.isoformat(timespec="seconds"),
            "finished_at": (
                artifact.finished_at.isoformat(timespec="seconds")
                if artifact.finished_at
                else None
            ),
            "summary": artifact.status_counts(),
            "sections": [
                {
                    "section": result.section,
                    "file": f"json/{result.section}.json",
                    "status": "partial" if result.partial else "ok",
                    "probes": len(result.statuses),
                    "failed_probes": sorted(
                        key for key, status in result.statuses.items() if status != "ok"
                    ),
                }
                for result in artifact.sections
            ],
        }

    def _copy_templates(self, artifact: RunArtifact) -> None:
        includes_dir = artifact.html_dir / "includes"
        includes_dir.mkdir(exist_ok=True)

        with as_file(files("drupal_audit").joinpath("templates")) as templates:
            (artifact.html_dir / "index.html").write_text(
                (templates / "index.html").read_text()
            )
            placeholder = Template((templates / PLACEHOLDER_TEMPLATE).read_text())

        for result in artifact.sections:
            include = includes_dir / f"{result.section}.html"
            include.write_text(
                placeholder.safe_substitute(
                    section=result.section,
                    title=result.section.replace("_", " ").title(),
                )
            )
