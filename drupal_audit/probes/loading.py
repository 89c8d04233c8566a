"""Loading of probe kinds from entry points."""

from functools import cache
from importlib.metadata import entry_points

from drupal_audit.probes.manifest import ProbeManifest

ENTRY_POINT_GROUP = "drupal_audit.probes"


class ProbeKindNotFoundError(Exception):
    """Raised when a probe kind is not found."""


@cache
def load_probe_manifest(kind: str) -> ProbeManifest:
    """Load the manifest of a probe kind.

    Manifests are cached, since the executor resolves the kind of every probe
    it runs.

    Args:
        kind: The probe kind as registered in pyproject.toml
              (e.g., "shell", "page_scan")

    Raises:
        ProbeKindNotFoundError: If no probe kind with the given key is found

    """
    matches = entry_points(group=ENTRY_POINT_GROUP, name=kind)
    if not matches:
        available = sorted(entry_points(group=ENTRY_POINT_GROUP).names)
        raise ProbeKindNotFoundError(
            f"Probe kind '{kind}' not found. Available kinds: {available}"
        )

    manifest: ProbeManifest = next(iter(matches)).load()
    return manifest
