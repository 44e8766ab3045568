"""swarmdeck -- Nginx and Docker Swarm project scaffolding."""

__version__ = "0.1.0"
