"""Pydantic models describing projects, services, and generated files."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServiceSpec(BaseModel):
    """A service to route through Nginx and deploy as a Swarm stack."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Service name, unique within a project")
    port: int = Field(..., description="Container port the service listens on")
    domain: str | None = Field(
        default=None,
        description="Domain to serve; falls back to the project domain when unset",
    )

    @field_validator("domain", mode="before")
    @classmethod
    def _blank_domain_is_none(cls, value: str | None) -> str | None:
        if value is not None and not str(value).strip():
            return None
        return value

    def effective_domain(self, project_domain: str) -> str:
        """Return the domain this service answers on."""
        return self.domain or project_domain


class ProjectSpec(BaseModel):
    """A named group of services sharing a default domain."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Project name, used as directory and DNS label")
    domain: str = Field(..., description="Default domain for the project's services")
    default_port: int = Field(default=3000)


class GeneratedArtifact(BaseModel):
    """A single generated file, relative to the project root."""

    model_config = ConfigDict(frozen=True)

    relative_path: str
    content: str
    executable: bool = False


class ServiceBundle(BaseModel):
    """Everything generated for one service."""

    model_config = ConfigDict(frozen=True)

    nginx_config: str
    compose_manifest: str
    deploy_script: str
