"""Project scaffolding.

Takes a ``ProjectSpec`` and produces the project bundle: a project-level
Nginx vhost, a management script, a README and a ``project.json`` metadata
file.  Services are added one at a time through the shared
``ServiceConfigGenerator``.  The ``create_project`` / ``add_service`` methods
are pure; ``scaffold`` / ``install_service`` persist the result through an
``ArtifactStore`` rooted at the projects directory.
"""

from __future__ import annotations

from typing import Any

from swarmdeck.config import Config
from swarmdeck.errors import UsageError
from swarmdeck.scaffolder.models import GeneratedArtifact, ProjectSpec, ServiceSpec
from swarmdeck.scaffolder.service_gen import (
    ServiceConfigGenerator,
    compose_path,
    deploy_script_path,
    nginx_conf_path,
    rate_limit_zone,
    service_domain,
)
from swarmdeck.scaffolder.store import ArtifactStore, FileSystemStore
from swarmdeck.scaffolder.templates import TemplateRenderer
from swarmdeck.utils import print_warning, validate_domain, validate_identifier, validate_port


# Directories every project owns, relative to the project root.
PROJECT_DIRS: tuple[str, ...] = ("nginx", "services", "ssl", "logs")

PROJECT_NGINX_CONF = "nginx/nginx.conf"
MANAGE_SCRIPT = "manage-project.sh"
README = "README.md"
PROJECT_METADATA = "project.json"


class ProjectScaffolder:
    """Creates projects and adds services to them.

    Given a ``Config`` and an ``ArtifactStore`` (defaulting to the
    filesystem under ``config.projects_dir``), lays out:
    - ``nginx/nginx.conf``: default vhost answering 503 until a service exists
    - ``nginx/<service>.conf``: one server block per service
    - ``services/<service>.yml``: one Swarm stack manifest per service
    - ``deploy-<service>.sh``: per-service deploy script
    - ``manage-project.sh``, ``README.md``, ``project.json``
    """

    def __init__(
        self,
        config: Config | None = None,
        store: ArtifactStore | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config or Config()
        self.store = store if store is not None else FileSystemStore(self.config.projects_dir)
        self.renderer = renderer or TemplateRenderer()
        self.service_gen = ServiceConfigGenerator(self.config, self.renderer)

    # -- Pure generation ---------------------------------------------------

    def create_project(self, spec: ProjectSpec) -> list[GeneratedArtifact]:
        """Generate the project-level files for *spec*.

        Raises:
            InvalidSpec: If the project name, domain, or default port is invalid.
        """
        self._validate_project(spec)
        context = self._build_context(spec)
        return [
            GeneratedArtifact(
                relative_path=PROJECT_NGINX_CONF,
                content=self.renderer.render("nginx/project.conf.j2", context),
            ),
            GeneratedArtifact(
                relative_path=MANAGE_SCRIPT,
                content=self.renderer.render("scripts/manage-project.sh.j2", context),
                executable=True,
            ),
            GeneratedArtifact(
                relative_path=README,
                content=self.renderer.render("README.md.j2", context),
            ),
            GeneratedArtifact(
                relative_path=PROJECT_METADATA,
                content=spec.model_dump_json(indent=2) + "\n",
            ),
        ]

    def add_service(
        self, project: ProjectSpec, service: ServiceSpec
    ) -> list[GeneratedArtifact]:
        """Generate the files for *service* inside *project*.

        Paths are relative to the project root.
        """
        self._validate_project(project)
        bundle = self.service_gen.generate(service, project.domain, project.name)
        return [
            GeneratedArtifact(
                relative_path=nginx_conf_path(service.name),
                content=bundle.nginx_config,
            ),
            GeneratedArtifact(
                relative_path=compose_path(service.name),
                content=bundle.compose_manifest,
            ),
            GeneratedArtifact(
                relative_path=deploy_script_path(service.name),
                content=bundle.deploy_script,
                executable=True,
            ),
        ]

    # -- Persistence -------------------------------------------------------

    async def scaffold(self, spec: ProjectSpec) -> list[str]:
        """Generate and write a project, overwriting any previous files.

        Every artifact is rendered before the first write, so an invalid
        spec leaves the store untouched.

        Returns:
            The paths written, as reported by the store.
        """
        artifacts = self.create_project(spec)
        for directory in PROJECT_DIRS:
            await self.store.mkdir(f"{spec.name}/{directory}")
        return await self._write_all(spec.name, artifacts)

    async def install_service(
        self, project_name: str, service: ServiceSpec
    ) -> list[str]:
        """Generate and write *service* into an existing project.

        Raises:
            UsageError: If the project does not exist.
            InvalidSpec: If the service spec is invalid.
        """
        project = await self.load_project(project_name)
        artifacts = self.add_service(project, service)
        await self._warn_on_domain_conflict(project, service)
        return await self._write_all(project.name, artifacts)

    async def load_project(self, project_name: str) -> ProjectSpec:
        """Read a project's ``project.json`` back into a ``ProjectSpec``."""
        validate_identifier(project_name, "project name")
        metadata = f"{project_name}/{PROJECT_METADATA}"
        if not await self.store.exists(metadata):
            raise UsageError(f"Project {project_name!r} not found")
        return ProjectSpec.model_validate_json(await self.store.read(metadata))

    async def project_exists(self, project_name: str) -> bool:
        return await self.store.exists(f"{project_name}/{PROJECT_METADATA}")

    async def list_projects(self) -> list[str]:
        """Names of every project that has a management script."""
        projects: list[str] = []
        for name in await self.store.list(""):
            if await self.store.exists(f"{name}/{MANAGE_SCRIPT}"):
                projects.append(name)
        return projects

    async def list_services(self, project_name: str) -> list[str]:
        """Service names of *project_name*, reconstructed from its manifests."""
        names = await self.store.list(f"{project_name}/services", "*.yml")
        return sorted(name[: -len(".yml")] for name in names)

    async def service_domains(self, project_name: str) -> dict[str, str]:
        """Map each service of *project_name* to the domain it is served on."""
        domains: dict[str, str] = {}
        for name in await self.list_services(project_name):
            conf = f"{project_name}/{nginx_conf_path(name)}"
            if await self.store.exists(conf):
                domain = service_domain(await self.store.read(conf))
                if domain:
                    domains[name] = domain
        return domains

    # -- Internal ----------------------------------------------------------

    async def _write_all(
        self, project_name: str, artifacts: list[GeneratedArtifact]
    ) -> list[str]:
        written: list[str] = []
        for artifact in artifacts:
            path = await self.store.write(
                f"{project_name}/{artifact.relative_path}",
                artifact.content,
                executable=artifact.executable,
            )
            written.append(path)
        return written

    async def _warn_on_domain_conflict(
        self, project: ProjectSpec, service: ServiceSpec
    ) -> None:
        """Warn when another service of the project already claims the same domain."""
        domain = service.effective_domain(project.domain)
        for other, other_domain in (await self.service_domains(project.name)).items():
            if other != service.name and other_domain == domain:
                print_warning(
                    f"Service {other!r} in project {project.name!r} "
                    f"already serves {domain}; Nginx will use the first one loaded"
                )

    def _validate_project(self, spec: ProjectSpec) -> None:
        validate_identifier(spec.name, "project name")
        validate_domain(spec.domain, "project domain")
        validate_port(spec.default_port, "default port")

    def _build_context(self, spec: ProjectSpec) -> dict[str, Any]:
        """Build the Jinja2 template context from the project spec."""
        return {
            "project_name": spec.name,
            "domain": spec.domain,
            "default_port": spec.default_port,
            "project_dir": str(self.config.project_path(spec.name)),
            "projects_dir": str(self.config.projects_dir),
            "nginx_conf_dir": str(self.config.nginx_conf_dir),
            "service_conf_dir": str(self.config.project_nginx_conf_path(spec.name)),
            "rate_limit_zone": rate_limit_zone(spec.name),
        }
