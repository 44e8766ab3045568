"""Command-line interface.

Usage::

    swarmdeck create-project myapp myapp.example.com 3000
    swarmdeck project myapp add-service api 3001
    swarmdeck project myapp add-service admin 3003 admin.myapp.example.com
    swarmdeck project myapp deploy
    swarmdeck projects list
    swarmdeck add-service api 3001 api.example.com --project default

Every command validates its arguments before touching the filesystem or
running ``docker``.  Missing or invalid arguments exit with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import NoReturn

from rich.markup import escape
from rich.table import Table

from swarmdeck.config import Config
from swarmdeck.errors import SwarmdeckError, UsageError
from swarmdeck.manager import ProjectManager, ProjectStatus
from swarmdeck.scaffolder import ProjectSpec, ServiceSpec
from swarmdeck.scaffolder.service_gen import DEFAULT_PROJECT
from swarmdeck.utils import (
    console,
    parse_port,
    print_error,
    print_header,
    print_success,
    print_summary_table,
)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        print_error(f"Error: {message}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="swarmdeck",
        description="Scaffold and deploy Nginx + Docker Swarm projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  swarmdeck create-project myapp myapp.example.com 3000\n"
            "  swarmdeck project myapp add-service api 3001\n"
            "  swarmdeck project myapp deploy\n"
            "  swarmdeck projects list\n"
        ),
    )
    parser.add_argument("--config", default=None, help="JSON config file (default: environment)")
    parser.add_argument("--projects-dir", default=None, help="Root directory of all projects")
    parser.add_argument("--nginx-conf-dir", default=None, help="Directory Nginx includes configs from")
    parser.add_argument("--backups-dir", default=None, help="Directory for project backups")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    create = commands.add_parser("create-project", help="Create a new project")
    create.add_argument("name")
    create.add_argument("domain")
    create.add_argument("default_port", nargs="?", default=None)

    standalone = commands.add_parser(
        "add-service", help="Add a service, creating its project if needed"
    )
    standalone.add_argument("name")
    standalone.add_argument("port")
    standalone.add_argument("domain")
    standalone.add_argument("--project", default=DEFAULT_PROJECT)

    project = commands.add_parser("project", help="Manage one project")
    project.add_argument("project")
    actions = project.add_subparsers(dest="action", metavar="ACTION", required=True)
    add = actions.add_parser("add-service", help="Add a service to the project")
    add.add_argument("name")
    add.add_argument("port")
    add.add_argument("domain", nargs="?", default=None)
    actions.add_parser("deploy", help="Deploy all project services")
    actions.add_parser("remove", help="Remove all project services")
    actions.add_parser("status", help="Show project status")
    logs = actions.add_parser("logs", help="Show service logs")
    logs.add_argument("name")
    health = actions.add_parser("health", help="Probe each service's /health through Nginx")
    health.add_argument("--timeout", type=int, default=10)

    projects = commands.add_parser("projects", help="Manage all projects")
    global_actions = projects.add_subparsers(dest="action", metavar="ACTION", required=True)
    g_create = global_actions.add_parser("create", help="Create new project")
    g_create.add_argument("name")
    g_create.add_argument("domain")
    g_create.add_argument("default_port", nargs="?", default=None)
    global_actions.add_parser("list", help="List all projects")
    global_actions.add_parser("deploy-all", help="Deploy all projects")
    global_actions.add_parser("status-all", help="Show status of all projects")
    g_remove = global_actions.add_parser("remove", help="Remove project")
    g_remove.add_argument("name")
    g_remove.add_argument(
        "--purge", action="store_true", help="Also delete the project directory"
    )
    global_actions.add_parser("backup", help="Backup all projects")
    g_restore = global_actions.add_parser("restore", help="Restore from backup")
    g_restore.add_argument("path", nargs="?", default=None)

    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Build the effective ``Config`` from ``--config``/environment plus CLI overrides."""
    try:
        config = Config.load(Path(args.config)) if args.config else Config.from_env()
    except (OSError, ValueError) as exc:
        raise UsageError(f"Invalid configuration: {exc}") from exc
    overrides: dict[str, Path] = {}
    if args.projects_dir:
        overrides["projects_dir"] = Path(args.projects_dir)
    if args.nginx_conf_dir:
        overrides["nginx_conf_dir"] = Path(args.nginx_conf_dir)
    if args.backups_dir:
        overrides["backups_dir"] = Path(args.backups_dir)
    return config.model_copy(update=overrides) if overrides else config


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _create_project(
    manager: ProjectManager, name: str, domain: str, raw_port: str | None
) -> None:
    config = manager.config
    port = parse_port(raw_port, "default port") if raw_port else config.default_port
    spec = ProjectSpec(name=name, domain=domain, default_port=port)
    await manager.scaffolder.scaffold(spec)

    project_dir = config.project_path(name)
    print_success(f"Project {name} created")
    print_summary_table(
        {
            "Directory": str(project_dir),
            "Domain": domain,
            "Default port": str(port),
            "Manage": str(project_dir / "manage-project.sh"),
        },
        title=f"Project {name}",
    )


async def _add_service(
    manager: ProjectManager,
    project_name: str,
    service: ServiceSpec,
) -> None:
    written = await manager.scaffolder.install_service(project_name, service)
    print_success(f"Service {service.name} added to project {project_name}")
    for path in written:
        console.print(f"  {escape(path)}")


async def _standalone_add_service(manager: ProjectManager, args: argparse.Namespace) -> None:
    service = ServiceSpec(
        name=args.name, port=parse_port(args.port, "service port"), domain=args.domain
    )
    scaffolder = manager.scaffolder
    if not await scaffolder.project_exists(args.project):
        project = ProjectSpec(name=args.project, domain=args.domain, default_port=service.port)
        # Fails on an invalid service before anything is written.
        scaffolder.add_service(project, service)
        await scaffolder.scaffold(project)
    await _add_service(manager, args.project, service)


def _print_status(status: ProjectStatus) -> None:
    print_header(f"Project {status.name} status")
    if not status.services:
        console.print("No services")
    for service, output in status.services.items():
        console.print(f"[bold]{service}[/bold]:")
        console.print(escape(output))
    console.print()
    console.print("Nginx configuration:")
    if status.nginx_configs:
        for conf in status.nginx_configs:
            console.print(f"  {escape(conf)}")
    else:
        console.print("  No configuration found")


async def _project_command(manager: ProjectManager, args: argparse.Namespace) -> None:
    if args.action == "add-service":
        service = ServiceSpec(
            name=args.name, port=parse_port(args.port, "service port"), domain=args.domain
        )
        await _add_service(manager, args.project, service)
    elif args.action == "deploy":
        await manager.deploy(args.project)
    elif args.action == "remove":
        await manager.remove(args.project)
    elif args.action == "status":
        _print_status(await manager.status(args.project))
    elif args.action == "logs":
        console.print(escape(await manager.logs(args.project, args.name)))
    elif args.action == "health":
        results = await manager.health(args.project, timeout=args.timeout)
        print_summary_table(
            {service: "healthy" if ok else "unhealthy" for service, ok in results.items()},
            title=f"Project {args.project} health",
        )
        if not all(results.values()):
            raise SwarmdeckError("One or more services are unhealthy")


async def _projects_command(manager: ProjectManager, args: argparse.Namespace) -> None:
    if args.action == "create":
        await _create_project(manager, args.name, args.domain, args.default_port)
    elif args.action == "list":
        summaries = await manager.list_projects()
        if not summaries:
            console.print("No projects found.")
            return
        table = Table(title="Projects", show_header=True, header_style="bold cyan")
        table.add_column("Project", no_wrap=True)
        table.add_column("Directory", style="dim")
        table.add_column("Services", justify="right")
        for summary in summaries:
            table.add_row(summary.name, str(summary.directory), str(len(summary.services)))
        console.print(table)
    elif args.action == "deploy-all":
        await manager.deploy_all()
        print_success("All projects deployed")
    elif args.action == "status-all":
        for status in await manager.status_all():
            _print_status(status)
    elif args.action == "remove":
        await manager.remove_project(args.name, purge=args.purge)
    elif args.action == "backup":
        await manager.backup()
    elif args.action == "restore":
        if args.path is None:
            backups = manager.available_backups()
            listing = "\n".join(f"  {p}" for p in backups) or "  No backups found"
            raise UsageError(
                "Usage: swarmdeck projects restore <backup-path>\n"
                f"Available backups:\n{listing}"
            )
        await manager.restore(args.path)


async def run(args: argparse.Namespace, config: Config) -> None:
    """Execute the parsed command."""
    manager = ProjectManager(config)
    if args.command == "create-project":
        await _create_project(manager, args.name, args.domain, args.default_port)
    elif args.command == "add-service":
        await _standalone_add_service(manager, args)
    elif args.command == "project":
        await _project_command(manager, args)
    elif args.command == "projects":
        await _projects_command(manager, args)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``swarmdeck`` and ``python -m swarmdeck``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
        asyncio.run(run(args, config))
    except SwarmdeckError as exc:
        print_error(f"Error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
