"""Jinja2 template rendering for project scaffolding.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``swarmdeck/scaffolder/templates/`` directory and renders them with
project- or service-specific context data.  Rendering is pure: nothing is
written to disk here, persistence is the job of an ``ArtifactStore``.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for Nginx configs, scripts and docs.

    The renderer discovers ``.j2`` template files under a configurable
    template directory.  Undefined variables are an error so a typo in a
    template never silently produces an empty directive.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["shell_quote"] = _shell_quote_filter
        self.env.filters["upstream_name"] = _upstream_name_filter

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"nginx/service.conf.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _shell_quote_filter(value: Any) -> str:
    """Quote a value for safe interpolation into a POSIX shell script."""
    return shlex.quote(str(value))


def _upstream_name_filter(value: str, project_name: str) -> str:
    """Name of the Nginx upstream block for service *value* in *project_name*."""
    return f"{project_name}_{value}_backend".replace("-", "_")
