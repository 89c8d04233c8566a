"""Runtime context shared by every probe in a run."""

import logging
import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

DOCROOT_CANDIDATES: Sequence[str] = ("web", "docroot", "htdocs", "public")
DOCROOT_MARKER = "index.php"
DOCROOT_FALLBACK = "web"

PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")
SHELL_SAFE = re.compile(r"[A-Za-z0-9_./:@%+=,-]+")

PACKAGED_SCRIPTS_DIR = Path(__file__).parent / "scripts"


@dataclass(frozen=True, kw_only=True)
class AuditContext:
    """Environment a probe invocation is materialized against.

    Replaces the exported shell variables of a plain script run: every value a
    probe may reference is carried here and handed to the probe explicitly.
    """

    project_dir: Path
    docroot: str = DOCROOT_FALLBACK
    base_url: str | None = None
    base_dir: Path | None = None
    extra: Mapping[str, str] = field(default_factory=dict)

    @property
    def scripts_dir(self) -> Path:
        """Directory holding helper scripts referenced by the registry.

        A ``scripts/`` folder under ``base_dir`` replaces the packaged scripts.
        """
        if self.base_dir is not None:
            return self.base_dir / "scripts"
        return PACKAGED_SCRIPTS_DIR

    def variables(self) -> dict[str, str]:
        """Return the placeholder values available to invocation templates."""
        variables = {
            "PROJECT_DIR": str(self.project_dir),
            "DOCROOT": self.docroot,
            "BASE_URL": self.base_url or "",
            "SCRIPTS_DIR": str(self.scripts_dir),
        }
        if self.base_dir is not None:
            variables["BASE_DIR"] = str(self.base_dir)
        variables.update(self.extra)
        return variables

    def environment(self) -> dict[str, str]:
        """Return the process environment for probe subprocesses."""
        env = dict(os.environ)
        env.update(self.variables())
        return env

    def materialize(self, template: str) -> str:
        """Substitute ``${NAME}`` and ``${NAME:-fallback}`` placeholders.

        Unknown names without a fallback are left for the shell to expand.
        An empty value falls back the same way the shell does for ``:-``.

        Values containing shell syntax (spaces, quotes, ``$``, ``;`` and so
        on) are not pasted into the command. The placeholder is kept and bash
        expands it from the exported environment, where the value stays data.
        """
        variables = self.variables()

        def replace(match: re.Match[str]) -> str:
            name, fallback = match.group(1), match.group(2)
            value = variables.get(name)
            if value and not SHELL_SAFE.fullmatch(value):
                return "${" + name + "}"
            if value:
                return value
            if fallback is not None:
                return fallback
            return match.group(0) if value is None else value

        return PLACEHOLDER.sub(replace, template)


def detect_docroot(
    project_dir: Path, candidates: Sequence[str] = DOCROOT_CANDIDATES
) -> str:
    """Find the directory holding Drupal's front controller.

    Checks the conventional document roots in order of preference, then the
    project root itself, and falls back to ``web``.
    """
    for candidate in candidates:
        if (project_dir / candidate / DOCROOT_MARKER).is_file():
            log.debug("Detected document root: %s", candidate)
            return candidate

    if (project_dir / DOCROOT_MARKER).is_file():
        log.debug("Detected document root at project root")
        return "."

    log.warning(
        "No %s found under %s, assuming document root '%s'",
        DOCROOT_MARKER,
        project_dir,
        DOCROOT_FALLBACK,
    )
    return DOCROOT_FALLBACK
