"""Shared pytest fixtures for the swarmdeck test suite.

Provides reusable fixtures for:
- A ``Config`` whose directories all live under ``tmp_path``
- In-memory and on-disk artifact stores
- Scaffolders and project managers wired to those stores
- The ``myapp`` sample project
- A mock for ``run_checked`` / ``run_command`` so no ``docker`` is needed
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from swarmdeck.config import Config
from swarmdeck.manager import ProjectManager
from swarmdeck.scaffolder import (
    FileSystemStore,
    MemoryStore,
    ProjectScaffolder,
    ProjectSpec,
    ServiceSpec,
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with projects, Nginx and backup directories under tmp_path."""
    return Config(
        projects_dir=tmp_path / "projects",
        nginx_conf_dir=tmp_path / "nginx" / "conf.d",
        backups_dir=tmp_path / "backups" / "projects",
    )


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------

@pytest.fixture
def project_spec() -> ProjectSpec:
    return ProjectSpec(name="myapp", domain="myapp.example.com", default_port=3000)


@pytest.fixture
def api_service() -> ServiceSpec:
    """Service without its own domain; served on the project domain."""
    return ServiceSpec(name="api", port=3001, domain="")


@pytest.fixture
def admin_service() -> ServiceSpec:
    return ServiceSpec(name="admin", port=3003, domain="admin.myapp.example.com")


# ---------------------------------------------------------------------------
# Stores & scaffolders
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def scaffolder(config: Config, memory_store: MemoryStore) -> ProjectScaffolder:
    """Scaffolder that writes to memory only."""
    return ProjectScaffolder(config, store=memory_store)


@pytest.fixture
def fs_scaffolder(config: Config) -> ProjectScaffolder:
    """Scaffolder that writes below ``config.projects_dir``."""
    return ProjectScaffolder(config, store=FileSystemStore(config.projects_dir))


@pytest.fixture
async def scaffolded_project(
    scaffolder: ProjectScaffolder,
    project_spec: ProjectSpec,
    api_service: ServiceSpec,
    admin_service: ServiceSpec,
) -> ProjectSpec:
    """The ``myapp`` project with ``api`` and ``admin`` services, in memory."""
    await scaffolder.scaffold(project_spec)
    await scaffolder.install_service(project_spec.name, api_service)
    await scaffolder.install_service(project_spec.name, admin_service)
    return project_spec


@pytest.fixture
def nginx_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def manager(
    config: Config, scaffolder: ProjectScaffolder, nginx_store: MemoryStore
) -> ProjectManager:
    return ProjectManager(config, scaffolder=scaffolder, nginx_store=nginx_store)


# ---------------------------------------------------------------------------
# Mock docker
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_run_checked():
    """Patch ``run_checked`` in the manager; every command succeeds with no output."""
    with patch("swarmdeck.manager.run_checked", new=AsyncMock(return_value="")) as mock:
        yield mock


@pytest.fixture
def mock_run_command():
    """Patch ``run_command`` in the manager; every command succeeds."""
    with patch(
        "swarmdeck.manager.run_command",
        new=AsyncMock(return_value=(0, "ID  NAME  REPLICAS\nabc  myapp_api_api  2/2", "")),
    ) as mock:
        yield mock
