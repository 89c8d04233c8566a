"""Probe registry: ordered probe descriptors grouped by section."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from importlib.resources import files
from pathlib import Path
from typing import Self

import yaml
from pydantic import ValidationError

from drupal_audit.errors import ConfigError
from drupal_audit.models.registry import ProbeDescriptor, RegistryDocument
from drupal_audit.probes.loading import ProbeKindNotFoundError, load_probe_manifest

log = logging.getLogger(__name__)


def default_registry_path() -> Path:
    """Return the path of the registry shipped with the package."""
    return Path(str(files("drupal_audit").joinpath("data", "registry.yaml")))


class ProbeRegistry:
    """Immutable, ordered collection of probe descriptors.

    Sections keep the order in which they first appear; descriptors keep
    declaration order within their section.
    """

    def __init__(self, descriptors: Iterable[ProbeDescriptor]) -> None:
        by_section: dict[str, list[ProbeDescriptor]] = {}
        seen: set[tuple[str, str]] = set()

        for descriptor in descriptors:
            identity = (descriptor.section, descriptor.key)
            if identity in seen:
                raise ConfigError(
                    f"Duplicate probe '{descriptor.qualified_name}' in registry"
                )
            seen.add(identity)
            by_section.setdefault(descriptor.section, []).append(descriptor)

        self._sections: Mapping[str, Sequence[ProbeDescriptor]] = {
            section: tuple(items) for section, items in by_section.items()
        }

    @classmethod
    def from_descriptors(cls, descriptors: Iterable[ProbeDescriptor]) -> Self:
        """Build a registry from in-memory descriptors."""
        return cls(descriptors)

    @classmethod
    def load(cls, path: Path | None = None) -> Self:
        """Load a registry from a YAML file.

        Args:
            path: Registry file; the packaged registry when omitted

        Raises:
            ConfigError: If the file is missing, is not valid YAML, is empty,
                does not match the schema or declares a probe twice

        """
        path = path or default_registry_path()
        if not path.is_file():
            raise ConfigError(f"Registry file not found: {path}")

        try:
            data = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            raise ConfigError(f"Empty registry file: {path}")

        try:
            document = RegistryDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid registry schema in {path}: {e}") from e

        registry = cls(document.probes)
        log.debug(
            "Loaded %d probe(s) in %d section(s) from %s",
            len(document.probes),
            len(registry.sections()),
            path,
        )
        return registry

    def sections(self) -> Sequence[str]:
        """Return section names in registry order."""
        return tuple(self._sections)

    def descriptors_for(self, section: str) -> Sequence[ProbeDescriptor]:
        """Return the descriptors of a section in declaration order.

        Raises:
            KeyError: If the section is not in the registry

        """
        return self._sections[section]

    def all(self) -> Sequence[ProbeDescriptor]:
        """Return every descriptor, grouped by section in registry order."""
        return tuple(
            descriptor
            for descriptors in self._sections.values()
            for descriptor in descriptors
        )

    def validate_kinds(self) -> None:
        """Check that every descriptor can be turned into a probe.

        Raises:
            ConfigError: If a probe kind is unknown or rejects its options

        """
        for descriptor in self.all():
            try:
                manifest = load_probe_manifest(descriptor.kind)
                manifest.probe_factory(descriptor)
            except (ProbeKindNotFoundError, ValueError) as e:
                raise ConfigError(
                    f"Invalid probe '{descriptor.qualified_name}': {e}"
                ) from e

    def __contains__(self, section: object) -> bool:
        return section in self._sections

    def __len__(self) -> int:
        return sum(len(descriptors) for descriptors in self._sections.values())
