"""Tests for project scaffolding (swarmdeck.scaffolder.project_gen).

Covers:
- create_project artifacts and the 503 default vhost
- add_service artifacts and executable flags
- scaffold / install_service through a MemoryStore and the filesystem
- project.json round trip, list_projects, list_services, service_domains
- Domain conflict warnings
- Invalid specs leave the store untouched
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from swarmdeck.errors import InvalidSpec, UsageError
from swarmdeck.scaffolder import MemoryStore, ProjectScaffolder, ProjectSpec, ServiceSpec
from swarmdeck.scaffolder.project_gen import (
    MANAGE_SCRIPT,
    PROJECT_DIRS,
    PROJECT_METADATA,
    PROJECT_NGINX_CONF,
    README,
)


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Pure generation
# ---------------------------------------------------------------------------


class TestCreateProject:
    def test_artifacts(self, scaffolder, project_spec):
        artifacts = scaffolder.create_project(project_spec)
        assert [a.relative_path for a in artifacts] == [
            PROJECT_NGINX_CONF,
            MANAGE_SCRIPT,
            README,
            PROJECT_METADATA,
        ]

    def test_only_manage_script_is_executable(self, scaffolder, project_spec):
        flags = {a.relative_path: a.executable for a in scaffolder.create_project(project_spec)}
        assert flags == {
            PROJECT_NGINX_CONF: False,
            MANAGE_SCRIPT: True,
            README: False,
            PROJECT_METADATA: False,
        }

    def test_vhost_answers_503(self, scaffolder, project_spec):
        conf = scaffolder.create_project(project_spec)[0].content
        assert "server_name myapp.example.com;" in conf
        assert 'return 503 "Service temporarily unavailable\\n";' in conf
        assert 'return 200 "healthy\\n";' in conf

    def test_vhost_includes_service_configs_first(self, scaffolder, project_spec, config):
        conf = scaffolder.create_project(project_spec)[0].content
        include = f"include {config.nginx_conf_dir}/myapp/*.conf;"
        assert include in conf
        assert conf.index(include) < conf.index("server {")

    def test_vhost_declares_rate_limit_zone(self, scaffolder, project_spec):
        conf = scaffolder.create_project(project_spec)[0].content
        assert "zone=myapp_api:10m rate=10r/s;" in conf
        assert "limit_req zone=myapp_api burst=20 nodelay;" in conf

    def test_manage_script_delegates_to_cli(self, scaffolder, project_spec, config):
        script = scaffolder.create_project(project_spec)[1].content
        assert script.startswith("#!/bin/bash\n")
        assert f"--projects-dir {config.projects_dir}" in script
        assert 'project myapp "$@"' in script

    def test_readme_mentions_project(self, scaffolder, project_spec):
        readme = scaffolder.create_project(project_spec)[2].content
        assert readme.startswith("# Project: myapp\n")
        assert "myapp.example.com" in readme

    def test_metadata_is_project_spec(self, scaffolder, project_spec):
        metadata = scaffolder.create_project(project_spec)[3].content
        assert json.loads(metadata) == {
            "name": "myapp",
            "domain": "myapp.example.com",
            "default_port": 3000,
        }

    @pytest.mark.parametrize(
        "spec",
        [
            ProjectSpec(name="", domain="myapp.example.com"),
            ProjectSpec(name="MyApp", domain="myapp.example.com"),
            ProjectSpec(name="myapp", domain=""),
            ProjectSpec(name="myapp", domain="myapp.example.com", default_port=0),
        ],
    )
    def test_invalid_specs(self, scaffolder, spec):
        with pytest.raises(InvalidSpec):
            scaffolder.create_project(spec)


class TestAddService:
    def test_artifacts(self, scaffolder, project_spec, api_service):
        artifacts = scaffolder.add_service(project_spec, api_service)
        assert [(a.relative_path, a.executable) for a in artifacts] == [
            ("nginx/api.conf", False),
            ("services/api.yml", False),
            ("deploy-api.sh", True),
        ]

    def test_is_pure(self, scaffolder, project_spec, api_service):
        assert scaffolder.add_service(project_spec, api_service) == scaffolder.add_service(
            project_spec, api_service
        )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestScaffold:
    async def test_writes_project_files(self, scaffolder, memory_store, project_spec):
        await scaffolder.scaffold(project_spec)

        for path in (PROJECT_NGINX_CONF, MANAGE_SCRIPT, README, PROJECT_METADATA):
            assert f"myapp/{path}" in memory_store.files
        assert memory_store.executables == {"myapp/manage-project.sh"}

    async def test_creates_project_directories(self, scaffolder, memory_store, project_spec):
        await scaffolder.scaffold(project_spec)
        for directory in PROJECT_DIRS:
            assert await memory_store.exists(f"myapp/{directory}")

    async def test_invalid_spec_writes_nothing(self, scaffolder, memory_store):
        with pytest.raises(InvalidSpec):
            await scaffolder.scaffold(ProjectSpec(name="myapp", domain="not a domain"))
        assert memory_store.files == {}
        assert memory_store.directories == set()

    async def test_load_project_round_trip(self, scaffolder, project_spec):
        await scaffolder.scaffold(project_spec)
        assert await scaffolder.load_project("myapp") == project_spec

    async def test_load_missing_project(self, scaffolder):
        with pytest.raises(UsageError, match="not found"):
            await scaffolder.load_project("ghost")

    async def test_rescaffold_overwrites(self, scaffolder, project_spec):
        await scaffolder.scaffold(project_spec)
        moved = ProjectSpec(name="myapp", domain="new.example.com", default_port=3000)
        await scaffolder.scaffold(moved)
        assert (await scaffolder.load_project("myapp")).domain == "new.example.com"


class TestInstallService:
    async def test_myapp_scenario(self, scaffolder, memory_store, scaffolded_project):
        files = memory_store.files
        assert "server api:3001;" in files["myapp/nginx/api.conf"]
        assert "server_name myapp.example.com;" in files["myapp/nginx/api.conf"]
        assert "server admin:3003;" in files["myapp/nginx/admin.conf"]
        assert "server_name admin.myapp.example.com;" in files["myapp/nginx/admin.conf"]
        assert "myapp/deploy-api.sh" in memory_store.executables
        assert "myapp/deploy-admin.sh" in memory_store.executables

    async def test_list_services(self, scaffolder, scaffolded_project):
        assert await scaffolder.list_services("myapp") == ["admin", "api"]

    async def test_adding_twice_lists_once(self, scaffolder, project_spec, api_service):
        await scaffolder.scaffold(project_spec)
        await scaffolder.install_service("myapp", api_service)
        await scaffolder.install_service("myapp", ServiceSpec(name="api", port=4000))

        assert await scaffolder.list_services("myapp") == ["api"]
        manifest = await scaffolder.store.read("myapp/services/api.yml")
        assert "PORT=4000" in manifest

    async def test_service_domains(self, scaffolder, scaffolded_project):
        assert await scaffolder.service_domains("myapp") == {
            "admin": "admin.myapp.example.com",
            "api": "myapp.example.com",
        }

    async def test_missing_project(self, scaffolder, api_service):
        with pytest.raises(UsageError, match="not found"):
            await scaffolder.install_service("ghost", api_service)

    async def test_invalid_service_writes_nothing(self, scaffolder, memory_store, project_spec):
        await scaffolder.scaffold(project_spec)
        before = dict(memory_store.files)

        with pytest.raises(InvalidSpec):
            await scaffolder.install_service("myapp", ServiceSpec(name="api", port=70000))

        assert memory_store.files == before

    async def test_service_cannot_replace_project_vhost(
        self, scaffolder, memory_store, project_spec
    ):
        await scaffolder.scaffold(project_spec)
        vhost = memory_store.files["myapp/nginx/nginx.conf"]

        with pytest.raises(InvalidSpec, match="reserved"):
            await scaffolder.install_service("myapp", ServiceSpec(name="nginx", port=8080))

        assert memory_store.files["myapp/nginx/nginx.conf"] == vhost
        assert "limit_req_zone" in vhost
        assert await scaffolder.list_services("myapp") == []

    async def test_domain_conflict_warns(self, scaffolder, scaffolded_project, capsys):
        capsys.readouterr()
        await scaffolder.install_service("myapp", ServiceSpec(name="web", port=3002))

        # Rich wraps long lines to the console width.
        out = " ".join(capsys.readouterr().out.split())
        assert "'api'" in out
        assert "already serves myapp.example.com" in out
        assert await scaffolder.list_services("myapp") == ["admin", "api", "web"]

    async def test_reinstall_same_service_does_not_warn(
        self, scaffolder, scaffolded_project, api_service, capsys
    ):
        capsys.readouterr()
        await scaffolder.install_service("myapp", api_service)
        assert "already serves" not in capsys.readouterr().out


class TestListProjects:
    async def test_empty(self, scaffolder):
        assert await scaffolder.list_projects() == []

    async def test_only_directories_with_manage_script(self, scaffolder, memory_store):
        await scaffolder.scaffold(ProjectSpec(name="beta", domain="beta.example.com"))
        await scaffolder.scaffold(ProjectSpec(name="alpha", domain="alpha.example.com"))
        await memory_store.write("scratch/notes.txt", "not a project")

        assert await scaffolder.list_projects() == ["alpha", "beta"]

    async def test_project_exists(self, scaffolder, project_spec):
        assert not await scaffolder.project_exists("myapp")
        await scaffolder.scaffold(project_spec)
        assert await scaffolder.project_exists("myapp")


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


class TestFileSystemScaffold:
    async def test_on_disk_layout(self, fs_scaffolder, config, project_spec, api_service):
        await fs_scaffolder.scaffold(project_spec)
        await fs_scaffolder.install_service("myapp", api_service)

        root: Path = config.projects_dir / "myapp"
        for directory in PROJECT_DIRS:
            assert (root / directory).is_dir()
        assert (root / "nginx" / "nginx.conf").is_file()
        assert (root / "nginx" / "api.conf").is_file()
        assert (root / "services" / "api.yml").is_file()
        assert os.access(root / "manage-project.sh", os.X_OK)
        assert os.access(root / "deploy-api.sh", os.X_OK)
        assert not os.access(root / "README.md", os.X_OK)

    async def test_default_store_is_projects_dir(self, config, project_spec):
        scaffolder = ProjectScaffolder(config)
        await scaffolder.scaffold(project_spec)
        assert (config.projects_dir / "myapp" / "project.json").is_file()

    async def test_memory_store_is_not_replaced(self, config):
        store = MemoryStore()
        assert ProjectScaffolder(config, store=store).store is store
