"""Shared fixtures."""

from pathlib import Path

import pytest

from drupal_audit.context import AuditContext


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create an empty Drupal project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def context(project_dir: Path) -> AuditContext:
    """Context without a base URL."""
    return AuditContext(project_dir=project_dir, docroot="web")


@pytest.fixture
def site_context(project_dir: Path) -> AuditContext:
    """Context with a base URL."""
    return AuditContext(
        project_dir=project_dir, docroot="web", base_url="https://example.com"
    )
