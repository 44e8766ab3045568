"""swarmdeck configuration.

Centralised, typed configuration for project scaffolding and deployment.
All settings use Pydantic v2 models so they can be validated at
construction time and serialised to/from JSON or environment variables
without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class ServiceDefaults(BaseModel):
    """Values baked into every generated Compose service definition."""

    replicas: int = Field(default=2, ge=1)
    image_template: str = Field(
        default="your-{name}-image:latest",
        description="Image reference; ``{name}`` is replaced by the service name",
    )
    network: str = Field(default="nginx-proxy")
    restart_delay: str = Field(default="5s")
    restart_max_attempts: int = Field(default=3, ge=0)
    restart_window: str = Field(default="120s")
    update_parallelism: int = Field(default=1, ge=1)
    update_delay: str = Field(default="10s")
    health_interval: str = Field(default="30s")
    health_timeout: str = Field(default="10s")
    health_retries: int = Field(default=3, ge=1)
    health_start_period: str = Field(default="40s")

    def image_for(self, service_name: str) -> str:
        """Return the image reference for *service_name*."""
        return self.image_template.format(name=service_name)


class Config(BaseModel):
    """Global swarmdeck configuration.

    Instances are typically created once by the CLI entry point and then
    passed to the scaffolder and the project manager.
    """

    projects_dir: Path = Field(default=Path("/opt/projects"))
    nginx_conf_dir: Path = Field(default=Path("/etc/nginx/conf.d"))
    backups_dir: Path = Field(default=Path("/opt/backups/projects"))
    nginx_service: str = Field(
        default="nginx_nginx",
        description="Swarm service force-updated to reload Nginx",
    )
    command_timeout: int = Field(default=300, ge=1, description="Per-command timeout in seconds")
    nginx_url: str = Field(
        default="http://127.0.0.1",
        description="Base URL of the Nginx proxy, used for health checks",
    )
    default_port: int = Field(default=3000, ge=1, le=65535)
    services: ServiceDefaults = Field(default_factory=ServiceDefaults)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def project_path(self, project_name: str) -> Path:
        """Root directory of *project_name*."""
        return self.projects_dir / project_name

    def project_nginx_conf_path(self, project_name: str) -> Path:
        """Directory Nginx includes for *project_name*."""
        return self.nginx_conf_dir / project_name

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            SWARMDECK_PROJECTS_DIR, SWARMDECK_NGINX_CONF_DIR,
            SWARMDECK_BACKUPS_DIR, SWARMDECK_NGINX_SERVICE,
            SWARMDECK_REPLICAS, SWARMDECK_COMMAND_TIMEOUT, SWARMDECK_NGINX_URL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SWARMDECK_PROJECTS_DIR"):
            kwargs["projects_dir"] = Path(os.environ["SWARMDECK_PROJECTS_DIR"])
        if os.environ.get("SWARMDECK_NGINX_CONF_DIR"):
            kwargs["nginx_conf_dir"] = Path(os.environ["SWARMDECK_NGINX_CONF_DIR"])
        if os.environ.get("SWARMDECK_BACKUPS_DIR"):
            kwargs["backups_dir"] = Path(os.environ["SWARMDECK_BACKUPS_DIR"])
        if os.environ.get("SWARMDECK_NGINX_SERVICE"):
            kwargs["nginx_service"] = os.environ["SWARMDECK_NGINX_SERVICE"]
        if os.environ.get("SWARMDECK_NGINX_URL"):
            kwargs["nginx_url"] = os.environ["SWARMDECK_NGINX_URL"]
        if os.environ.get("SWARMDECK_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["SWARMDECK_COMMAND_TIMEOUT"])

        service_kwargs: dict[str, Any] = {}
        if os.environ.get("SWARMDECK_REPLICAS"):
            service_kwargs["replicas"] = int(os.environ["SWARMDECK_REPLICAS"])

        return cls(services=ServiceDefaults(**service_kwargs), **kwargs)
