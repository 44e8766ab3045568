"""Per-service configuration generation.

Produces the three files every service gets: an Nginx server block routing
a domain to the service's Swarm DNS name, a Compose stack manifest, and a
deploy script.  Generation is a pure function of its inputs; the same
``ServiceSpec`` always renders to byte-identical output.
"""

from __future__ import annotations

import re
from typing import Any

import yaml

from swarmdeck.config import Config
from swarmdeck.errors import InvalidSpec
from swarmdeck.scaffolder.models import ServiceBundle, ServiceSpec
from swarmdeck.scaffolder.templates import TemplateRenderer
from swarmdeck.utils import validate_domain, validate_identifier, validate_port

DEFAULT_PROJECT = "default"

# ``nginx/nginx.conf`` is the project vhost.
RESERVED_SERVICE_NAMES: frozenset[str] = frozenset({"nginx"})

_SERVER_NAME_RE = re.compile(r"^\s*server_name\s+([^;\s]+);", re.MULTILINE)


def rate_limit_zone(project_name: str) -> str:
    """Name of the ``limit_req_zone`` shared by a project's services."""
    return f"{project_name.replace('-', '_')}_api"


def stack_name(project_name: str, service_name: str) -> str:
    """Swarm stack a service is deployed as, scoped by its project."""
    return f"{project_name}_{service_name}"


def nginx_conf_path(service_name: str) -> str:
    """Service Nginx config path, relative to the project root."""
    return f"nginx/{service_name}.conf"


def compose_path(service_name: str) -> str:
    """Service Compose manifest path, relative to the project root."""
    return f"services/{service_name}.yml"


def deploy_script_path(service_name: str) -> str:
    """Service deploy script path, relative to the project root."""
    return f"deploy-{service_name}.sh"


def service_domain(nginx_config: str) -> str | None:
    """Return the ``server_name`` of a generated service config, if any."""
    match = _SERVER_NAME_RE.search(nginx_config)
    return match.group(1) if match else None


class ServiceConfigGenerator:
    """Generates the Nginx config, Compose manifest and deploy script for a service."""

    def __init__(
        self,
        config: Config | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config or Config()
        self.renderer = renderer or TemplateRenderer()

    def generate(
        self,
        spec: ServiceSpec,
        project_default_domain: str,
        project_name: str = DEFAULT_PROJECT,
    ) -> ServiceBundle:
        """Render every file for *spec*.

        Args:
            spec: The service to generate.
            project_default_domain: Domain used when ``spec.domain`` is unset.
            project_name: Project the service belongs to; scopes the Nginx
                include directory, rate-limit zone, upstream and stack names.

        Returns:
            A ``ServiceBundle`` with the three rendered files.

        Raises:
            InvalidSpec: If the name is invalid or reserved, or the port or
                effective domain is invalid.
        """
        validate_identifier(spec.name, "service name")
        if spec.name in RESERVED_SERVICE_NAMES:
            raise InvalidSpec("service name", spec.name, "is reserved")
        validate_port(spec.port, "service port")
        validate_identifier(project_name, "project name")
        domain = validate_domain(
            spec.effective_domain(project_default_domain), "service domain"
        )

        context = self._build_context(spec, domain, project_name)
        return ServiceBundle(
            nginx_config=self.renderer.render("nginx/service.conf.j2", context),
            compose_manifest=self.render_compose(spec),
            deploy_script=self.renderer.render("scripts/deploy-service.sh.j2", context),
        )

    # -- Compose -----------------------------------------------------------

    def compose_document(self, spec: ServiceSpec) -> dict[str, Any]:
        """Build the Compose manifest for *spec* as a plain mapping."""
        defaults = self.config.services
        volume = f"{spec.name}-data"
        return {
            "version": "3.8",
            "networks": {
                defaults.network: {"external": True},
            },
            "services": {
                spec.name: {
                    "image": defaults.image_for(spec.name),
                    "deploy": {
                        "replicas": defaults.replicas,
                        "restart_policy": {
                            "condition": "on-failure",
                            "delay": defaults.restart_delay,
                            "max_attempts": defaults.restart_max_attempts,
                            "window": defaults.restart_window,
                        },
                        "update_config": {
                            "parallelism": defaults.update_parallelism,
                            "delay": defaults.update_delay,
                            "order": "start-first",
                        },
                    },
                    "environment": [
                        "NODE_ENV=production",
                        f"PORT={spec.port}",
                    ],
                    "networks": [defaults.network],
                    "healthcheck": {
                        "test": [
                            "CMD",
                            "curl",
                            "-f",
                            f"http://localhost:{spec.port}/health",
                        ],
                        "interval": defaults.health_interval,
                        "timeout": defaults.health_timeout,
                        "retries": defaults.health_retries,
                        "start_period": defaults.health_start_period,
                    },
                    "volumes": [f"{volume}:/app/data"],
                },
            },
            "volumes": {
                volume: {"driver": "local"},
            },
        }

    def render_compose(self, spec: ServiceSpec) -> str:
        """Render the Compose manifest for *spec* as YAML text."""
        header = f"# Service: {spec.name}\n# Port: {spec.port}\n"
        body = yaml.safe_dump(
            self.compose_document(spec),
            sort_keys=False,
            default_flow_style=False,
        )
        return header + body

    # -- Context building --------------------------------------------------

    def _build_context(
        self, spec: ServiceSpec, domain: str, project_name: str
    ) -> dict[str, Any]:
        """Build the Jinja2 template context for one service."""
        project_dir = self.config.project_path(project_name)
        return {
            "service_name": spec.name,
            "port": spec.port,
            "domain": domain,
            "project_name": project_name,
            "rate_limit_zone": rate_limit_zone(project_name),
            "stack_name": stack_name(project_name, spec.name),
            "compose_file": str(project_dir / compose_path(spec.name)),
            "nginx_conf_file": str(project_dir / nginx_conf_path(spec.name)),
            "service_conf_dir": str(self.config.project_nginx_conf_path(project_name)),
            "nginx_service": self.config.nginx_service,
        }
