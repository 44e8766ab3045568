"""Tests for Jinja2 template rendering (swarmdeck.scaffolder.templates)."""

from __future__ import annotations

from pathlib import Path

import pytest
from jinja2 import UndefinedError

from swarmdeck.scaffolder.templates import (
    TemplateRenderer,
    _shell_quote_filter,
    _upstream_name_filter,
)


pytestmark = pytest.mark.unit


class TestBundledTemplates:
    @pytest.mark.parametrize(
        "template",
        [
            "README.md.j2",
            "nginx/project.conf.j2",
            "nginx/service.conf.j2",
            "scripts/deploy-service.sh.j2",
            "scripts/manage-project.sh.j2",
        ],
    )
    def test_ships_template(self, template):
        assert (TemplateRenderer().template_dir / template).is_file()


class TestRender:
    def test_custom_template_dir(self, tmp_path: Path):
        (tmp_path / "hello.txt.j2").write_text("hello {{ name }}\n", encoding="utf-8")
        renderer = TemplateRenderer(tmp_path)
        assert renderer.render("hello.txt.j2", {"name": "myapp"}) == "hello myapp\n"

    def test_undefined_variable_is_an_error(self, tmp_path: Path):
        (tmp_path / "t.j2").write_text("{{ missing }}", encoding="utf-8")
        with pytest.raises(UndefinedError):
            TemplateRenderer(tmp_path).render("t.j2", {})

    def test_filters_available_in_templates(self, tmp_path: Path):
        (tmp_path / "t.j2").write_text(
            "{{ name | upstream_name(project) }} {{ path | shell_quote }}", encoding="utf-8"
        )
        out = TemplateRenderer(tmp_path).render(
            "t.j2", {"name": "my-api", "project": "shop", "path": "/opt/my projects"}
        )
        assert out == "shop_my_api_backend '/opt/my projects'"


class TestFilters:
    def test_upstream_name(self):
        assert _upstream_name_filter("api", "myapp") == "myapp_api_backend"
        assert _upstream_name_filter("admin-ui", "web-shop") == "web_shop_admin_ui_backend"

    def test_upstream_name_differs_per_project(self):
        assert _upstream_name_filter("api", "blog") != _upstream_name_filter("api", "myapp")

    def test_shell_quote_plain(self):
        assert _shell_quote_filter("/opt/projects/myapp") == "/opt/projects/myapp"

    def test_shell_quote_special(self):
        assert _shell_quote_filter("a b;c") == "'a b;c'"
