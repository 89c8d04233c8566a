"""Probe kind manifest definition for the plugin system."""

from collections.abc import Callable
from dataclasses import dataclass

from drupal_audit.models.registry import ProbeDescriptor
from drupal_audit.probes.base import Probe


@dataclass(frozen=True, kw_only=True)
class ProbeManifest:
    """Manifest describing a probe kind.

    The factory turns a descriptor into a ready-to-run probe and raises
    ``ValueError`` (pydantic ``ValidationError`` included) when the
    descriptor's options do not suit the kind.
    """

    probe_factory: Callable[[ProbeDescriptor], Probe]
