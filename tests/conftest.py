"""Shared fixtures for the site builder tests."""

from pathlib import Path

import jinja2
import pytest

from site_pages import load_template

PAGE_TEMPLATE = """<!doctype html>
<html>
<head><title>{{ title }}</title><link rel="stylesheet" href="{{ link_prefix }}static/style.css"></head>
<body>
<p class="stinger">{{ stinger }}</p>
<main>{{ content }}</main>
</body>
</html>
"""


def write_doc(path: Path, title: str = "Hello", stinger: str = "A greeting", body: str = "## Hi") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f'---\ntitle: "{title}"\nstinger: "{stinger}"\n---\n{body}\n', encoding="utf-8")
    return path


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Directory holding a minimal page template."""
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "template.html").write_text(PAGE_TEMPLATE, encoding="utf-8")
    return templates


@pytest.fixture
def page_template(template_dir: Path) -> jinja2.Template:
    return load_template(template_dir, "template.html")


@pytest.fixture
def site_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Empty (content, public) directory pair."""
    content = tmp_path / "content"
    content.mkdir()
    return content, tmp_path / "public"
