"""Deployment and lifecycle management for scaffolded projects.

Drives the ``docker`` CLI to deploy, inspect and remove the Swarm stacks of
a project, installs the project's Nginx configuration into the directory
Nginx includes, and reloads Nginx by force-updating its Swarm service.

Commands run strictly one after another.  The first failing command raises
``ExternalToolError`` and aborts the operation; nothing already done is
rolled back.
"""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from swarmdeck.config import Config
from swarmdeck.errors import UsageError
from swarmdeck.scaffolder.project_gen import MANAGE_SCRIPT, PROJECT_NGINX_CONF, ProjectScaffolder
from swarmdeck.scaffolder.service_gen import compose_path, nginx_conf_path, stack_name
from swarmdeck.scaffolder.store import ArtifactStore, FileSystemStore
from swarmdeck.utils import (
    console,
    print_success,
    run_checked,
    run_command,
    wait_for_health,
)


@dataclass
class ProjectSummary:
    """One row of ``projects list``."""

    name: str
    directory: Path
    manage_script: Path
    services: list[str] = field(default_factory=list)


@dataclass
class ProjectStatus:
    """Result of ``project status``."""

    name: str
    services: dict[str, str] = field(default_factory=dict)
    nginx_configs: list[str] = field(default_factory=list)


NOT_DEPLOYED = "Not deployed"


def stack_service_name(project_name: str, service_name: str) -> str:
    """Swarm name of *service_name* inside its project-scoped stack."""
    return f"{stack_name(project_name, service_name)}_{service_name}"


class ProjectManager:
    """Deploys, inspects and removes projects created by ``ProjectScaffolder``.

    Each service is deployed as its own stack, ``<project>_<service>``, so
    two projects may both have a service called ``api``.
    """

    def __init__(
        self,
        config: Config | None = None,
        scaffolder: ProjectScaffolder | None = None,
        nginx_store: ArtifactStore | None = None,
    ) -> None:
        self.config = config or Config()
        self.scaffolder = scaffolder or ProjectScaffolder(self.config)
        self.nginx_store = (
            nginx_store if nginx_store is not None else FileSystemStore(self.config.nginx_conf_dir)
        )

    @property
    def store(self) -> ArtifactStore:
        return self.scaffolder.store

    # -- Single project ----------------------------------------------------

    async def deploy(self, project_name: str) -> list[str]:
        """Install Nginx configs, deploy every service stack, reload Nginx.

        Returns:
            The names of the services deployed.
        """
        project = await self.scaffolder.load_project(project_name)
        services = await self.scaffolder.list_services(project.name)

        await self._install_nginx_configs(project.name, services)

        project_dir = self.config.project_path(project.name)
        for service in services:
            console.print(f"Deploying [bold]{service}[/bold]...")
            await run_checked(
                "docker", "stack", "deploy",
                "-c", str(project_dir / compose_path(service)),
                stack_name(project.name, service),
                timeout=self.config.command_timeout,
            )

        await self.reload_nginx()
        print_success(f"Project {project.name} deployed ({len(services)} services)")
        return services

    async def remove(self, project_name: str) -> list[str]:
        """Remove every service stack and the project's Nginx configs.

        The project directory itself is left in place.

        Returns:
            The names of the services removed.
        """
        project = await self.scaffolder.load_project(project_name)
        services = await self.scaffolder.list_services(project.name)

        for service in services:
            console.print(f"Removing [bold]{service}[/bold]...")
            await run_checked(
                "docker", "stack", "rm", stack_name(project.name, service),
                timeout=self.config.command_timeout,
            )

        await self.nginx_store.remove(project.name)
        await self.nginx_store.remove(f"{project.name}.conf")

        await self.reload_nginx()
        print_success(f"Project {project.name} removed")
        return services

    async def status(self, project_name: str) -> ProjectStatus:
        """Collect ``docker stack services`` output for every service.

        A stack that cannot be inspected is reported as not deployed rather
        than raising.
        """
        project = await self.scaffolder.load_project(project_name)
        result = ProjectStatus(name=project.name)

        for service in await self.scaffolder.list_services(project.name):
            returncode, stdout, _ = await run_command(
                ["docker", "stack", "services", stack_name(project.name, service)],
                timeout=self.config.command_timeout,
            )
            result.services[service] = stdout if returncode == 0 else NOT_DEPLOYED

        result.nginx_configs = await self.nginx_store.list(project.name, "*.conf")
        return result

    async def logs(self, project_name: str, service_name: str) -> str:
        """Return ``docker service logs`` output for one service."""
        project = await self.scaffolder.load_project(project_name)
        if service_name not in await self.scaffolder.list_services(project.name):
            raise UsageError(
                f"Service {service_name!r} not found in project {project.name!r}"
            )
        return await run_checked(
            "docker", "service", "logs", stack_service_name(project.name, service_name),
            timeout=self.config.command_timeout,
        )

    async def health(self, project_name: str, timeout: int = 10) -> dict[str, bool]:
        """Probe each service's ``/health`` through Nginx.

        Requests go to ``config.nginx_url`` with the service domain as
        ``Host`` header, so no DNS record is needed.
        """
        project = await self.scaffolder.load_project(project_name)
        url = f"{self.config.nginx_url.rstrip('/')}/health"
        results: dict[str, bool] = {}
        for service, domain in (await self.scaffolder.service_domains(project.name)).items():
            results[service] = await wait_for_health(url, timeout=timeout, host=domain)
        return results

    async def reload_nginx(self) -> None:
        """Force-update the Nginx Swarm service so it re-reads its configs."""
        await run_checked(
            "docker", "service", "update", "--force", self.config.nginx_service,
            timeout=self.config.command_timeout,
        )

    # -- All projects ------------------------------------------------------

    async def list_projects(self) -> list[ProjectSummary]:
        summaries: list[ProjectSummary] = []
        for name in await self.scaffolder.list_projects():
            directory = self.config.project_path(name)
            summaries.append(
                ProjectSummary(
                    name=name,
                    directory=directory,
                    manage_script=directory / MANAGE_SCRIPT,
                    services=await self.scaffolder.list_services(name),
                )
            )
        return summaries

    async def deploy_all(self) -> dict[str, list[str]]:
        """Deploy every project in turn, stopping at the first failure."""
        deployed: dict[str, list[str]] = {}
        for name in await self.scaffolder.list_projects():
            deployed[name] = await self.deploy(name)
        return deployed

    async def status_all(self) -> list[ProjectStatus]:
        return [
            await self.status(name)
            for name in await self.scaffolder.list_projects()
        ]

    async def remove_project(self, project_name: str, purge: bool = False) -> None:
        """Remove a project's stacks and, with *purge*, its directory."""
        if not await self.scaffolder.project_exists(project_name):
            raise UsageError(f"Project {project_name!r} not found")
        await self.remove(project_name)
        if purge:
            await self.store.remove(project_name)
            print_success(f"Project directory {self.config.project_path(project_name)} removed")

    async def backup(self, now: datetime | None = None) -> Path:
        """Copy the whole projects directory to a timestamped backup.

        Returns:
            The backup directory, e.g. ``/opt/backups/projects/20260101_120000``.
            A second backup within the same second gets a ``_1``, ``_2``...
            suffix.
        """
        source = self.config.projects_dir
        if not source.is_dir():
            raise UsageError(f"No projects directory found at {source}")
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        backup_dir = self.config.backups_dir / stamp
        suffix = 1
        while backup_dir.exists():
            backup_dir = self.config.backups_dir / f"{stamp}_{suffix}"
            suffix += 1
        await asyncio.to_thread(shutil.copytree, source, backup_dir / source.name)
        print_success(f"Projects backed up to {backup_dir}")
        return backup_dir

    async def restore(self, backup_path: str | Path) -> Path:
        """Copy a backup back over the projects directory.

        Accepts either a directory produced by ``backup`` or the projects
        directory inside it.  Existing files with the same path are
        overwritten; other files are kept.
        """
        path = Path(backup_path)
        if not path.is_dir():
            raise UsageError(f"Backup path {path} not found")
        nested = path / self.config.projects_dir.name
        source = nested if nested.is_dir() else path
        await asyncio.to_thread(
            shutil.copytree, source, self.config.projects_dir, dirs_exist_ok=True
        )
        print_success(f"Projects restored from {source}")
        return self.config.projects_dir

    def available_backups(self) -> list[Path]:
        backups_dir = self.config.backups_dir
        if not backups_dir.is_dir():
            return []
        return sorted(p for p in backups_dir.iterdir() if p.is_dir())

    # -- Internal ----------------------------------------------------------

    async def _install_nginx_configs(self, project_name: str, services: list[str]) -> None:
        """Copy the project vhost and service configs into the Nginx include tree."""
        vhost = await self.store.read(f"{project_name}/{PROJECT_NGINX_CONF}")
        await self.nginx_store.write(f"{project_name}.conf", vhost)
        await self.nginx_store.mkdir(project_name)
        for service in services:
            content = await self.store.read(f"{project_name}/{nginx_conf_path(service)}")
            await self.nginx_store.write(f"{project_name}/{service}.conf", content)
