"""swarmdeck scaffolder -- generates project and service configuration.

Renders Nginx reverse-proxy configs, Swarm stack manifests and helper
scripts from a ``ProjectSpec`` and any number of ``ServiceSpec``s.

Quick usage::

    from swarmdeck.scaffolder import ProjectScaffolder, ProjectSpec, ServiceSpec

    scaffolder = ProjectScaffolder()
    project = ProjectSpec(name="myapp", domain="myapp.example.com", default_port=3000)
    await scaffolder.scaffold(project)
    await scaffolder.install_service("myapp", ServiceSpec(name="api", port=3001))
"""

from swarmdeck.scaffolder.models import (
    GeneratedArtifact,
    ProjectSpec,
    ServiceBundle,
    ServiceSpec,
)
from swarmdeck.scaffolder.project_gen import ProjectScaffolder
from swarmdeck.scaffolder.service_gen import ServiceConfigGenerator
from swarmdeck.scaffolder.store import ArtifactStore, FileSystemStore, MemoryStore
from swarmdeck.scaffolder.templates import TemplateRenderer

__all__ = [
    "ArtifactStore",
    "FileSystemStore",
    "GeneratedArtifact",
    "MemoryStore",
    "ProjectScaffolder",
    "ProjectSpec",
    "ServiceBundle",
    "ServiceConfigGenerator",
    "ServiceSpec",
    "TemplateRenderer",
]
