"""
Per-document page pipeline for the static site builder.

Turns one Markdown document with YAML front matter into one HTML page:
- Front matter is split off and validated (title + stinger are required)
- The Markdown body is converted to an HTML fragment
- The output path mirrors the input tree, with a "../" prefix per level of
  nesting so pages can reference root-level assets
- Everything is bound into a shared Jinja2 page template and written out

The template is loaded once by the caller and passed in; nothing here keeps
module-level state, so documents can be processed from several threads.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import frontmatter
import jinja2
import markdown
import yaml
from markupsafe import Markup
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, field_validator

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["extra", "fenced_code", "tables"]
PARENT_DIR_TOKEN = "../"


# -- errors --
class SiteBuildError(Exception):
    """Base class for everything the builder reports."""


class ExtractionError(SiteBuildError):
    """The front matter of a document could not be extracted."""


class MissingMetadata(ExtractionError):
    pass


class InvalidMetadataSchema(ExtractionError):
    pass


class PathOutsideRoot(SiteBuildError):
    def __init__(self, source_path: Path, input_root: Path):
        super().__init__(f"{source_path} is not under input root {input_root}")
        self.source_path = source_path
        self.input_root = input_root


class TemplateLoadError(SiteBuildError):
    pass


class TemplateRenderError(SiteBuildError):
    pass


class PipelineError(SiteBuildError):
    """A stage failed for one document; the cause is chained."""

    def __init__(self, source_path: Path, stage: str, cause: BaseException):
        super().__init__(f"{source_path}: {stage} failed: {cause}")
        self.source_path = source_path
        self.stage = stage
        self.cause = cause

    @property
    def fatal(self) -> bool:
        """True when the failure would repeat for every other document too."""
        return isinstance(self.cause, (PathOutsideRoot, TemplateRenderError))


# -- data structures --
@dataclass(frozen=True)
class Document:
    source_path: Path
    raw_text: str


class FrontMatter(BaseModel):
    """Required page metadata. Extra keys in the block are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: StrictStr
    stinger: StrictStr

    @field_validator("title", "stinger")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


@dataclass(frozen=True)
class PathInfo:
    destination_path: Path
    link_prefix: str


# -- metadata extraction --
def extract(raw_text: str) -> Tuple[FrontMatter, str]:
    """Split a document into validated front matter and its Markdown body.

    Raises MissingMetadata when there is no (complete, non-empty) front matter
    block at the top of the text, and InvalidMetadataSchema when the block does
    not load as a mapping with non-empty string `title` and `stinger` values.
    """
    text = raw_text.lstrip("\ufeff")
    handler = frontmatter.YAMLHandler()
    if not handler.detect(text):
        raise MissingMetadata("no front matter block at the top of the document")
    try:
        block, body = handler.split(text)
    except ValueError as exc:
        raise MissingMetadata("front matter block is not terminated") from exc

    try:
        data = handler.load(block)
    except yaml.YAMLError as exc:
        raise InvalidMetadataSchema(f"front matter is not valid YAML: {exc}") from exc
    if data is None:
        raise MissingMetadata("front matter block is empty")
    if not isinstance(data, dict):
        raise InvalidMetadataSchema(
            f"front matter must be a mapping, got {type(data).__name__}"
        )

    try:
        meta = FrontMatter.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])} ({err['msg']})" for err in exc.errors()
        )
        raise InvalidMetadataSchema(f"invalid front matter: {fields}") from exc
    return meta, body


# -- markdown conversion --
def render_body(body: str) -> str:
    """Convert a Markdown body to an HTML fragment ending in a newline."""
    # Markdown instances carry per-conversion state; never share one.
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
    html = md.convert(body)
    return html + "\n" if html else ""


# -- output paths --
def link_depth(relative: Path) -> int:
    """Directory levels between the input root and the document's parent."""
    return len(relative.parts) - 1


def link_prefix(depth: int) -> str:
    return PARENT_DIR_TOKEN * depth


def _normalized(path: Path) -> Path:
    return Path(os.path.normpath(path))


def resolve(source_path: Path, input_root: Path, output_root: Path, output_ext: str = ".html") -> PathInfo:
    """Map a source document to its output page and link prefix."""
    source = _normalized(Path(source_path))
    root = _normalized(Path(input_root))
    try:
        relative = source.relative_to(root)
    except ValueError as exc:
        raise PathOutsideRoot(source, root) from exc
    if not relative.parts:
        raise PathOutsideRoot(source, root)

    suffix = output_ext if output_ext.startswith(".") else f".{output_ext}"
    destination = (Path(output_root) / relative).with_suffix(suffix)
    return PathInfo(destination_path=destination, link_prefix=link_prefix(link_depth(relative)))


# -- templates --
def load_template(template_dir: Path, name: str = "template.html") -> jinja2.Template:
    """Load the shared page template once, before any document is processed."""
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(template_dir)),
        autoescape=jinja2.select_autoescape(["html", "htm"]),
        undefined=jinja2.StrictUndefined,
    )
    try:
        return env.get_template(name)
    except jinja2.TemplateNotFound as exc:
        raise TemplateLoadError(f"template {name!r} not found in {template_dir}") from exc
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateLoadError(f"template {name!r} is malformed: {exc}") from exc


def compose(front_matter: FrontMatter, body_html: str, prefix: str, template: jinja2.Template) -> str:
    """Render the full page from front matter, body fragment and link prefix."""
    context = {
        "title": front_matter.title,
        "stinger": front_matter.stinger,
        "content": Markup(body_html),
        "link_prefix": prefix,
    }
    try:
        return template.render(**context)
    except jinja2.TemplateError as exc:
        raise TemplateRenderError(f"failed to render template {template.name!r}: {exc}") from exc


# -- per-document pipeline --
def read_document(path: Path) -> Document:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PipelineError(Path(path), "read", exc) from exc
    return Document(source_path=Path(path), raw_text=text)


def _write_page(destination: Path, page_html: str) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    # write beside the target and swap in, so a failed write leaves no half page
    partial = destination.with_name(f".{destination.name}.partial")
    try:
        partial.write_text(page_html, encoding="utf-8")
        os.replace(partial, destination)
    finally:
        if partial.exists():
            partial.unlink()


def process(
    document: Document,
    input_root: Path,
    output_root: Path,
    template: jinja2.Template,
    output_ext: str = ".html",
) -> Path:
    """Run one document through every stage and write its page.

    Returns the destination path. Any failure is raised as PipelineError
    naming the document and the stage; nothing is written in that case.
    """
    logger.info("Processing: %s", document.source_path)
    stage = "extract"
    try:
        meta, body = extract(document.raw_text)
        body_html = render_body(body)
        stage = "resolve"
        info = resolve(document.source_path, input_root, output_root, output_ext)
        stage = "compose"
        page_html = compose(meta, body_html, info.link_prefix, template)
        stage = "write"
        _write_page(info.destination_path, page_html)
    except (SiteBuildError, OSError) as exc:
        raise PipelineError(document.source_path, stage, exc) from exc
    return info.destination_path
