"""
pkgversions package

This package aggregates per-package `name` / `version` declarations into a single
name -> version map for a documentation build.

Key responsibilities are split across modules:
- `config_parser.py`: decode one config file (TOML/YAML) and extract a typed `PackageEntry`
- `sources.py`: filesystem capability (glob, read, change polling) injected into the aggregator
- `aggregator.py`: full-rebuild aggregation, last-known-good publishing, change handling
- `renderer.py`: publish the map as a rendered Jinja2 template or a JSON data file
- `cli.py`: CLI entrypoint (`resolve` once, or `watch` and republish on change)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
