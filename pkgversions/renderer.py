"""
renderer.py

Responsibility: Publish a version map for the documentation build.

Two outputs:
- A Jinja2 template rendered with the map (e.g. a markdown reference page)
- A JSON data file the site generator can load directly

Both are written through a temporary file and swapped into place, so a reader never sees a
half-written output. This module intentionally does NOT know how the map was produced.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined


class RenderError(RuntimeError):
    pass


def _build_context(versions: Mapping[str, str]) -> dict[str, Any]:
    # Templates see both the raw mapping and a name-sorted list for stable tables.
    return {
        "package_versions": dict(versions),
        "packages": [{"name": name, "version": versions[name]} for name in sorted(versions)],
    }


def _atomic_write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise RenderError(f"Failed writing output file: {path} ({e})") from e
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise RenderError(f"Failed writing output file: {path} ({e})") from e
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def render_versions(
    *,
    template_path: str | Path,
    destination_path: str | Path,
    versions: Mapping[str, str],
) -> Path:
    """
    Render `template_path` with the version map into `destination_path`.
    """
    tpl_path = Path(template_path).resolve()
    dst_path = Path(destination_path).resolve()

    if not tpl_path.is_file():
        raise RenderError(f"Template file not found: {tpl_path}")

    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )

    try:
        template = env.from_string(tpl_path.read_text(encoding="utf-8"))
        out = template.render(**_build_context(versions))
    except Exception as e:  # noqa: BLE001 - surface as RenderError
        raise RenderError(f"Failed rendering template file: {tpl_path}") from e

    _atomic_write_text(dst_path, out)
    return dst_path


def write_versions_json(destination_path: str | Path, versions: Mapping[str, str]) -> Path:
    """Write the map as indented JSON with sorted keys."""
    dst_path = Path(destination_path).resolve()
    _atomic_write_text(dst_path, json.dumps(dict(versions), indent=2, sort_keys=True) + "\n")
    return dst_path
