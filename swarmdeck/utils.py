"""Shared utility functions for swarmdeck.

Provides async command execution, identifier validation, health-check
polling and Rich-based console reporting.  Validation helpers raise
``InvalidSpec`` with a clear message so callers can fail before anything
is written or executed.
"""

from __future__ import annotations

import asyncio
import os
import re
import shlex
import time
from pathlib import Path

import httpx
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from swarmdeck.errors import ExternalToolError, InvalidSpec

console = Console()
err_console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a command asynchronously and capture its output.

    Args:
        cmd: Argument list; no shell is involved.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A timed-out command
        reports a return code of ``-1``.
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
        )
    except FileNotFoundError:
        return (127, "", f"Command not found: {cmd[0]}")

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (-1, "", f"Command timed out after {timeout}s: {shlex.join(cmd)}")

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


async def run_checked(*args: str, timeout: int = 120) -> str:
    """Run a command and return its stdout.

    Raises:
        ExternalToolError: If the command exits non-zero, times out, or
            cannot be found.
    """
    cmd = list(args)
    cmd_str = shlex.join(cmd)
    returncode, stdout, stderr = await run_command(cmd, timeout=timeout)
    if returncode != 0:
        raise ExternalToolError(
            f"Command failed (exit {returncode}): {cmd_str}\n{stderr}".rstrip(),
            command=cmd_str,
            returncode=returncode,
            stderr=stderr,
        )
    return stdout


# ---------------------------------------------------------------------------
# Identifier validation
# ---------------------------------------------------------------------------

# Lowercase DNS label: usable as a directory name, Compose service name,
# Swarm stack name and Nginx upstream prefix.
_IDENTIFIER_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")


def validate_identifier(value: str, field: str = "name") -> str:
    """Return *value* unchanged if it is a lowercase DNS label.

    Examples::

        validate_identifier("api")        -> "api"
        validate_identifier("my-app-2")   -> "my-app-2"
        validate_identifier("My App")     -> raises InvalidSpec
    """
    if not value:
        raise InvalidSpec(field, value, "must not be empty")
    if not _IDENTIFIER_RE.match(value):
        raise InvalidSpec(
            field,
            value,
            "must be 1-63 lowercase letters, digits or hyphens, "
            "not starting or ending with a hyphen",
        )
    return value


def validate_domain(value: str, field: str = "domain") -> str:
    """Return *value* unchanged if it is a dot-separated list of DNS labels."""
    if not value:
        raise InvalidSpec(field, value, "must not be empty")
    if len(value) > 253:
        raise InvalidSpec(field, value, "must be at most 253 characters")
    for label in value.split("."):
        if not _IDENTIFIER_RE.match(label):
            raise InvalidSpec(field, value, f"label {label!r} is not a valid DNS label")
    return value


def validate_port(port: int, field: str = "port") -> int:
    """Return *port* unchanged if it lies in 1-65535."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidSpec(field, port, "must be an integer")
    if not 1 <= port <= 65535:
        raise InvalidSpec(field, port, "must be between 1 and 65535")
    return port


def parse_port(raw: str, field: str = "port") -> int:
    """Parse a command-line port argument."""
    try:
        port = int(raw)
    except (TypeError, ValueError):
        raise InvalidSpec(field, raw, "must be an integer") from None
    return validate_port(port, field)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_header(title: str, color: str = "bright_cyan") -> None:
    """Print a full-width rule with *title*."""
    console.print()
    console.print(Rule(f"[bold {color}] {title} [/bold {color}]", style=color))
    console.print()


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message to standard error."""
    err_console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")


# ---------------------------------------------------------------------------
# Health-check polling
# ---------------------------------------------------------------------------


async def wait_for_health(
    url: str,
    timeout: int = 60,
    interval: int = 2,
    host: str | None = None,
) -> bool:
    """Poll a health endpoint until it responds with HTTP 200 or timeout.

    Args:
        url: Fully-qualified URL (e.g. ``http://127.0.0.1/health``).
        timeout: Maximum seconds to wait.
        interval: Seconds between probes.
        host: Optional ``Host`` header, to reach a virtual host through a
            proxy without DNS.

    Returns:
        ``True`` if a 200 response was received within the timeout window,
        ``False`` otherwise.
    """
    deadline = time.monotonic() + timeout
    headers = {"Host": host} if host else None

    async with httpx.AsyncClient(timeout=httpx.Timeout(5.0, connect=3.0)) as client:
        while True:
            try:
                response = await client.get(url, headers=headers)
                if response.status_code == 200:
                    return True
            except httpx.HTTPError:
                pass

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(interval, remaining))

    return False
