"""Tests for the copyrc command line, run against a local upstream."""

import json
import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest

from copyrc.cli import build_parser, main
from copyrc.naming import LOCK_FILE_NAME


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run from an empty work dir with no global config or env overrides."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in ("COPYRC_CONFIG", "COPYRC_CONCURRENCY", "COPYRC_API_URL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(work)
    with patch("copyrc.cli.setup_logging"):
        yield work


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    root = tmp_path / "upstream"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "util.go").write_bytes(b"package util\n")
    (root / "pkg" / "notes.txt").write_bytes(b"notes\n")
    return root


def _args(upstream: Path, *extra: str) -> list[str]:
    return [
        "--repo",
        str(upstream),
        "--path",
        "pkg",
        "--destination",
        "internal/util",
        *extra,
    ]


class TestParser:
    """Tests for build_parser()."""

    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--clean", "--status"])

    def test_repeatable_globs(self):
        args = build_parser().parse_args(
            ["--ignore", "*.md", "--ignore", "*.txt", "--async"]
        )
        assert args.ignore == ["*.md", "*.txt"]
        assert args.async_ is True


class TestMain:
    """Tests for main() exit codes and output."""

    def test_sync_then_up_to_date(self, upstream, isolated, capsys):
        assert main(_args(upstream)) == 0
        dest = isolated / "internal" / "util"
        assert (dest / "notes.copy.txt").read_bytes() == b"notes\n"
        assert (dest / "util.copy.go").read_text().startswith(
            "// Generated by copyrc. DO NOT EDIT.\n"
        )
        assert (dest / LOCK_FILE_NAME).exists()
        assert "New:" in capsys.readouterr().out

        assert main(_args(upstream, "--json")) == 0
        reports = json.loads(capsys.readouterr().out)
        assert reports[0]["up_to_date"] is True

    def test_status_shows_customized(self, upstream, isolated, capsys):
        main(_args(upstream, "--skip-header-comments"))
        dest = isolated / "internal" / "util"
        (dest / "util.copy.go").write_bytes(b"package util // mine\n")
        capsys.readouterr()

        assert (
            main(_args(upstream, "--skip-header-comments", "--status")) == 0
        )
        assert "[   custom] util.copy.go" in capsys.readouterr().out

    def test_remote_status_fails_when_stale(self, upstream, capsys):
        main(_args(upstream))
        (upstream / "pkg" / "util.go").write_bytes(b"package util2\n")

        assert main(_args(upstream, "--remote-status")) == 1

    def test_async_prune(self, upstream, isolated):
        main(_args(upstream))
        (upstream / "pkg" / "notes.txt").unlink()

        assert main(_args(upstream, "--async", "--prune")) == 0
        assert not (isolated / "internal" / "util" / "notes.copy.txt").exists()

    def test_corrupt_lock_fails(self, upstream, isolated):
        dest = isolated / "internal" / "util"
        dest.mkdir(parents=True)
        (dest / LOCK_FILE_NAME).write_text("{", encoding="utf-8")
        assert main(_args(upstream)) == 1

    def test_config_file(self, upstream, tmp_path, capsys):
        project = tmp_path / "project"
        project.mkdir()
        config = project / ".copyrc.yaml"
        config.write_text(
            textwrap.dedent(
                f"""\
                copies:
                  - source:
                      repo: {upstream}
                      path: pkg
                    destination:
                      path: vendor/util
                    options:
                      file_patterns: ["*.go"]
                """
            )
        )

        assert main(["--config", str(config)]) == 0
        assert (project / "vendor" / "util" / "util.copy.go").exists()
        assert not (project / "vendor" / "util" / "notes.copy.txt").exists()


class TestConfigErrors:
    """Configuration problems exit with status 2."""

    def test_repo_without_destination(self, upstream, capsys):
        assert main(["--repo", str(upstream)]) == 2
        assert "--destination" in capsys.readouterr().err

    def test_nothing_configured(self, capsys):
        assert main([]) == 2
        assert "Nothing to do" in capsys.readouterr().err

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("copies: [\n")
        assert main(["--config", str(config)]) == 2

    def test_schema_violation(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("copies:\n  - source: {repo: x}\n")
        assert main(["--config", str(config)]) == 2

    def test_bad_concurrency(self, upstream):
        assert main(_args(upstream, "--concurrency", "0")) == 2
