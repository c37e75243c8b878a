#!/usr/bin/env python3
"""
Simple static site generator for a folder of Markdown documents.

Features:
- Converts all .md files under the input directory to .html in the output directory
- Preserves directory structure; each page gets a "../" link prefix per nesting level
- Every document must start with YAML front matter providing `title` and `stinger`
- Pages are rendered through one shared Jinja2 template (templates/template.html)
- The static/ directory is copied verbatim into the output directory

Usage:
  python build_static_site.py --input-dir content --out-dir public

Notes:
- The output directory is removed and recreated on every run
- The template receives exactly: title, stinger, content, link_prefix
"""

from __future__ import annotations

import argparse
import logging
import os
import shutil
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import jinja2

from site_pages import (
    PipelineError,
    SiteBuildError,
    load_template,
    process,
    read_document,
)

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

DEFAULT_INPUT_DIR = Path("content")
DEFAULT_OUTPUT_DIR = Path("public")
STATIC_DIR = Path("static")
TEMPLATES_DIR = Path("templates")
PAGE_TEMPLATE = "template.html"
SOURCE_EXT = ".md"
OUTPUT_EXT = ".html"


# -- helpers: output directory --
def _handle_remove_readonly(func, path, exc_info):  # Windows: clear read-only then retry
    os.chmod(path, stat.S_IWRITE)
    func(path)


def prepare_output_dir(input_root: Path, output_root: Path) -> None:
    """Remove and recreate output_root, refusing to touch the input tree."""
    if output_root == input_root or output_root in input_root.parents:
        raise SystemExit(f"Output directory {output_root} would delete input directory {input_root}")
    if output_root.exists():
        shutil.rmtree(output_root, onerror=_handle_remove_readonly)
    output_root.mkdir(parents=True, exist_ok=True)


# -- helpers: asset copying --
def copy_static_assets(static_dir: Path, output_root: Path) -> None:
    """Copy the static directory, as a directory, into the output root."""
    if not static_dir.is_dir():
        logger.info("No static directory at %s, skipping", static_dir)
        return
    shutil.copytree(static_dir, output_root / static_dir.name, dirs_exist_ok=True)


# -- helpers: scanning --
def discover_documents(input_root: Path) -> Iterator[Path]:
    for path in sorted(input_root.rglob(f"*{SOURCE_EXT}")):
        if path.is_file() and path.suffix == SOURCE_EXT:
            yield path


# -- write all pages --
def _build_one(path: Path, input_root: Path, output_root: Path, template: jinja2.Template) -> Path:
    return process(read_document(path), input_root, output_root, template, OUTPUT_EXT)


def write_pages(
    source_paths: List[Path],
    input_root: Path,
    output_root: Path,
    template: jinja2.Template,
    jobs: int = 1,
    keep_going: bool = False,
) -> Tuple[List[Path], List[PipelineError]]:
    """Build every page, returning (written pages, skipped failures).

    The first failure is re-raised unless keep_going is set; failures that
    would repeat for every document (see PipelineError.fatal) always are.
    """
    written: List[Path] = []
    failures: List[PipelineError] = []
    with ThreadPoolExecutor(max_workers=max(1, jobs)) as pool:
        futures = [pool.submit(_build_one, path, input_root, output_root, template) for path in source_paths]
        for future in futures:
            try:
                written.append(future.result())
            except PipelineError as exc:
                if exc.fatal or not keep_going:
                    for pending in futures:
                        pending.cancel()
                    raise
                logger.error("Skipping %s", exc)
                failures.append(exc)
    return written, failures


# -- CLI --
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a static site from a folder of Markdown files.")
    parser.add_argument(
        "-i",
        "--input-dir",
        type=Path,
        default=DEFAULT_INPUT_DIR,
        help="Path to the directory containing Markdown files (default: content)",
    )
    parser.add_argument(
        "-o",
        "--out-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Output folder for the generated site (default: public)",
    )
    parser.add_argument(
        "--static-dir",
        type=Path,
        default=STATIC_DIR,
        help="Directory copied verbatim into the output folder (default: static)",
    )
    parser.add_argument(
        "--templates-dir",
        type=Path,
        default=TEMPLATES_DIR,
        help=f"Directory holding {PAGE_TEMPLATE} (default: templates)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=1,
        help="Number of documents to process in parallel (default: 1)",
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Skip documents that fail instead of stopping at the first one",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report warnings and errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)
    if args.jobs < 1:
        parser.error("--jobs must be at least 1")
    return args


def main(argv: Optional[List[str]] = None) -> None:
    # parse CLI args
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO, format="%(message)s")
    input_root: Path = args.input_dir.expanduser().resolve()
    output_root: Path = args.out_dir.expanduser().resolve()

    if not input_root.exists() or not input_root.is_dir():
        raise SystemExit(f"Input directory not found: {input_root}")

    try:
        # prepare output directory (clean create), then static assets
        prepare_output_dir(input_root, output_root)
        copy_static_assets(args.static_dir, output_root)

        # the template is loaded once and shared read-only by every page
        template = load_template(args.templates_dir, PAGE_TEMPLATE)

        source_paths = list(discover_documents(input_root))
        written, failures = write_pages(
            source_paths,
            input_root,
            output_root,
            template,
            jobs=args.jobs,
            keep_going=args.keep_going,
        )
    except (SiteBuildError, OSError) as exc:
        raise SystemExit(f"Error: {exc}") from exc

    if failures:
        raise SystemExit(f"Error: {len(failures)} of {len(source_paths)} documents failed")

    print(f"Site generated at: {output_root} ({len(written)} pages)")


if __name__ == "__main__":
    main()
