from __future__ import annotations

import argparse
import json
from pathlib import Path

import pytest

from pkgversions import cli
from pkgversions.cli import CLIError, _poll_interval, main
from tests.fakes import MemoryFileSource, toml_config

SAMPLE_TEMPLATE = Path(__file__).resolve().parents[1] / "templates" / "package-versions.md.j2"


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    for rel, name, version in [("a", "alpha", "1.2.0"), ("b", "beta", "0.9.3")]:
        pkg = tmp_path / "packages" / rel
        pkg.mkdir(parents=True)
        (pkg / "config.toml").write_text(toml_config(name, version), encoding="utf-8")
    return tmp_path


def test_resolve_prints_json(tree: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["resolve", "--root", str(tree)]) == 0
    assert json.loads(capsys.readouterr().out) == {"alpha": "1.2.0", "beta": "0.9.3"}


def test_resolve_reads_pattern_and_root_from_env(
    tree: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("PKGVERSIONS_ROOT", str(tree))
    monkeypatch.setenv("PKGVERSIONS_PATTERN", "packages/a/*.toml")
    assert main(["resolve"]) == 0
    assert json.loads(capsys.readouterr().out) == {"alpha": "1.2.0"}


def test_resolve_writes_json_output(tree: Path) -> None:
    output = tree / "docs" / "versions.json"
    assert main(["resolve", "--root", str(tree), "--output", str(output)]) == 0
    assert json.loads(output.read_text(encoding="utf-8")) == {"alpha": "1.2.0", "beta": "0.9.3"}


def test_resolve_renders_template(tree: Path) -> None:
    output = tree / "docs" / "versions.md"
    rc = main(["resolve", "--root", str(tree), "--template", str(SAMPLE_TEMPLATE), "--output", str(output)])
    assert rc == 0
    assert "| `beta` | 0.9.3 |" in output.read_text(encoding="utf-8")


def test_resolve_fails_on_malformed_file(tree: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tree / "packages" / "b" / "config.toml").write_text('name = "beta"\n', encoding="utf-8")
    output = tree / "versions.json"

    assert main(["resolve", "--root", str(tree), "--output", str(output)]) == 1

    err = capsys.readouterr().err
    assert "error: packages/b/config.toml: missing required field `version`." in err
    assert not output.exists()


def test_template_requires_output(tree: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["resolve", "--root", str(tree), "--template", str(SAMPLE_TEMPLATE)]) == 1
    assert "--output is required" in capsys.readouterr().err


def test_watch_requires_output(tree: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["watch", "--root", str(tree)]) == 1
    assert "--output is required" in capsys.readouterr().err


def test_missing_root_is_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["resolve", "--root", str(tmp_path / "nope")]) == 1
    assert "Root directory does not exist" in capsys.readouterr().err


def test_poll_interval_from_flag_and_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _poll_interval(argparse.Namespace(poll_interval="0.5")) == 0.5
    monkeypatch.setenv("PKGVERSIONS_POLL_INTERVAL", "2")
    assert _poll_interval(argparse.Namespace(poll_interval=None)) == 2.0
    monkeypatch.delenv("PKGVERSIONS_POLL_INTERVAL")
    assert _poll_interval(argparse.Namespace(poll_interval=None)) == 1.0


@pytest.mark.parametrize("raw", ["soon", "0", "-1"])
def test_poll_interval_rejects_bad_values(raw: str) -> None:
    with pytest.raises(CLIError):
        _poll_interval(argparse.Namespace(poll_interval=raw))


def test_resolve_reports_unwritable_output(tree: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tree / "blocker").write_text("", encoding="utf-8")
    assert main(["resolve", "--root", str(tree), "--output", str(tree / "blocker" / "v.json")]) == 1
    assert "error: Failed writing output file" in capsys.readouterr().err


def _use_source(monkeypatch: pytest.MonkeyPatch, source: MemoryFileSource) -> None:
    monkeypatch.setattr("pkgversions.cli.LocalFileSource", lambda root: source)


def test_watch_republishes_output_on_change(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = MemoryFileSource({"packages/a/config.toml": toml_config("alpha", "1.2.0")})

    def add_beta(src: MemoryFileSource) -> set[str]:
        src.files["packages/b/config.toml"] = toml_config("beta", "0.9.3")
        return {"packages/b/config.toml"}

    source.steps = [add_beta]
    _use_source(monkeypatch, source)
    output = tree / "versions.json"
    written: list[dict[str, str]] = []
    original_write = cli.write_versions_json

    def recording_write(path: str, versions: dict[str, str]) -> Path:
        written.append(dict(versions))
        return original_write(path, versions)

    monkeypatch.setattr("pkgversions.cli.write_versions_json", recording_write)

    assert main(["watch", "--root", str(tree), "--output", str(output), "--poll-interval", "0.01"]) == 0
    assert written == [{"alpha": "1.2.0"}, {"alpha": "1.2.0", "beta": "0.9.3"}]
    assert json.loads(output.read_text(encoding="utf-8")) == {"alpha": "1.2.0", "beta": "0.9.3"}


def test_watch_leaves_output_untouched_after_failed_pass(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = MemoryFileSource({"packages/a/config.toml": toml_config("alpha", "1.2.0")})

    def break_alpha(src: MemoryFileSource) -> set[str]:
        src.files["packages/a/config.toml"] = 'name = "alpha"\n'
        return {"packages/a/config.toml"}

    source.steps = [break_alpha]
    _use_source(monkeypatch, source)
    output = tree / "versions.json"

    assert main(["watch", "--root", str(tree), "--output", str(output), "--poll-interval", "0.01"]) == 0
    assert json.loads(output.read_text(encoding="utf-8")) == {"alpha": "1.2.0"}


def test_watch_keeps_running_when_output_is_unwritable(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = MemoryFileSource({"packages/a/config.toml": toml_config("alpha", "1.2.0")})

    def bump_alpha(src: MemoryFileSource) -> set[str]:
        src.files["packages/a/config.toml"] = toml_config("alpha", "1.3.0")
        return {"packages/a/config.toml"}

    source.steps = [bump_alpha]
    _use_source(monkeypatch, source)
    (tree / "blocker").write_text("", encoding="utf-8")
    output = tree / "blocker" / "versions.json"

    assert main(["watch", "--root", str(tree), "--output", str(output), "--poll-interval", "0.01"]) == 0
    assert source.glob_calls == 2
    assert not output.exists()
