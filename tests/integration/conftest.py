"""Fixtures for integration tests."""

from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any, TypeAlias

import pytest
import yaml
from aiohttp import web
from aiohttp.test_utils import TestServer

HOMEPAGE = """<!DOCTYPE html>
<html lang="en">
<head><title>Example Drupal site</title></head>
<body>
<div id="sliding-popup" class="eu-cookie-compliance-banner">
  This website uses cookies.
</div>
<footer><a href="/privacy-policy">Privacy policy</a></footer>
</body>
</html>
"""

ROBOTS = """User-agent: *
Disallow: /admin/
Disallow: /user/login
Sitemap: https://example.com/sitemap.xml
"""

WriteRegistryFn: TypeAlias = Callable[[list[dict[str, Any]]], Path]


@pytest.fixture
def write_registry(tmp_path: Path) -> WriteRegistryFn:
    """Return a function to write registry files."""

    def _write(probes: list[dict[str, Any]]) -> Path:
        path = tmp_path / "registry.yaml"
        path.write_text(yaml.safe_dump({"version": "1.0", "probes": probes}))
        return path

    return _write


@pytest.fixture
async def site_server() -> AsyncIterator[TestServer]:
    """Serve a small Drupal-like site on a local port."""

    async def homepage(request: web.Request) -> web.Response:
        return web.Response(text=HOMEPAGE, content_type="text/html")

    async def robots(request: web.Request) -> web.Response:
        return web.Response(text=ROBOTS)

    async def moved(request: web.Request) -> web.Response:
        raise web.HTTPFound("/")

    app = web.Application()
    app.router.add_get("/", homepage)
    app.router.add_get("/robots.txt", robots)
    app.router.add_get("/home", moved)

    async with TestServer(app) as server:
        yield server


@pytest.fixture
def base_url(site_server: TestServer) -> str:
    """Base URL of the local site."""
    return str(site_server.make_url("/"))
