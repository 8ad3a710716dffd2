"""
config_parser.py

Responsibility: Turn the text of one package configuration file into a typed `PackageEntry`.

Two steps, kept separate so either can be swapped or tested on its own:
1) Decode text -> `ConfigRecord` (TOML via `tomllib`, YAML via PyYAML), chosen by file suffix.
2) Extract and validate `name` / `version` -> `PackageEntry`.

Every failure raises a subclass of `AggregationError` that names the offending path.
"""

from __future__ import annotations

import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

import yaml

ConfigRecord = Mapping[str, Any]
ConfigParser = Callable[[str, str], ConfigRecord]


class AggregationError(RuntimeError):
    """Base error for a failed aggregation pass; always tied to one file."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.reason = message


class FileReadError(AggregationError):
    pass


class ParseError(AggregationError):
    pass


class MissingFieldError(ParseError):
    pass


@dataclass(frozen=True)
class PackageEntry:
    """One `(name, version)` pair declared by a package configuration file."""

    name: str
    version: str


def _parse_toml(text: str) -> Any:
    return tomllib.loads(text)


def _parse_yaml(text: str) -> Any:
    return yaml.safe_load(text) or {}


_DECODERS: dict[str, Callable[[str], Any]] = {
    ".toml": _parse_toml,
    ".yaml": _parse_yaml,
    ".yml": _parse_yaml,
}

_DECODE_ERRORS = (tomllib.TOMLDecodeError, yaml.YAMLError)


def parse_config_text(text: str, path: str) -> ConfigRecord:
    """
    Decode configuration text into a record, using `path` only to pick the syntax
    and to label errors.
    """
    suffix = PurePosixPath(path).suffix.lower()
    decoder = _DECODERS.get(suffix)
    if decoder is None:
        raise ParseError(path, f"unsupported configuration format {suffix or '(no suffix)'!r}")

    try:
        data = decoder(text)
    except _DECODE_ERRORS as e:
        raise ParseError(path, f"invalid {suffix[1:].upper()}: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(path, "configuration must be a mapping/table at the top level.")
    return data


def extract_entry(record: ConfigRecord, path: str) -> PackageEntry:
    """
    Validate the `name` and `version` fields of a parsed record.

    - name: non-empty string
    - version: non-empty string, or an int/float (rendered with `str()`)
    """
    name_raw = record.get("name")
    if name_raw is None:
        raise MissingFieldError(path, "missing required field `name`.")
    if not isinstance(name_raw, str):
        raise MissingFieldError(path, f"`name` must be a string, got {type(name_raw).__name__}.")
    name = name_raw.strip()
    if not name:
        raise MissingFieldError(path, "`name` must not be empty.")

    version_raw = record.get("version")
    if version_raw is None:
        raise MissingFieldError(path, "missing required field `version`.")
    # bool is an int subclass; `version = true` is never meant as a version.
    if isinstance(version_raw, bool) or not isinstance(version_raw, (str, int, float)):
        raise MissingFieldError(path, f"`version` must be a string or number, got {type(version_raw).__name__}.")
    version = str(version_raw).strip()
    if not version:
        raise MissingFieldError(path, "`version` must not be empty.")

    return PackageEntry(name=name, version=version)
