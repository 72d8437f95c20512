"""Tests for mdlive._cli: argument parsing and mode dispatch."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from mdlive._cli import _build_parser, main


class TestBuildParser:
    """_build_parser: CLI argument parsing."""

    def test_defaults_unset(self) -> None:
        args = _build_parser().parse_args([])
        assert args.markdown is None
        assert args.template is None
        assert args.output is None
        assert args.watch is None
        assert args.serve is None
        assert args.port is None
        assert args.root == "."
        assert args.verbose is False

    def test_single_dash_flags(self) -> None:
        args = _build_parser().parse_args([
            "-markdown", "notes.md",
            "-template", "layout.html",
            "-output", "notes.html",
            "-serve",
            "-port", "9000",
        ])
        assert args.markdown == "notes.md"
        assert args.template == "layout.html"
        assert args.output == "notes.html"
        assert args.serve is True
        assert args.port == 9000

    def test_double_dash_flags(self) -> None:
        args = _build_parser().parse_args(["--markdown", "notes.md", "--watch"])
        assert args.markdown == "notes.md"
        assert args.watch is True

    def test_bool_flags_take_explicit_value(self) -> None:
        args = _build_parser().parse_args(["-watch=false", "-serve=true"])
        assert args.watch is False
        assert args.serve is True

    @pytest.mark.parametrize("value", ["1", "t", "TRUE", "True"])
    def test_true_spellings(self, value: str) -> None:
        assert _build_parser().parse_args([f"--watch={value}"]).watch is True

    def test_invalid_bool_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["-serve=maybe"])

    def test_bare_bool_before_next_flag(self) -> None:
        args = _build_parser().parse_args(["-serve", "-port", "9000"])
        assert args.serve is True
        assert args.port == 9000

    def test_port_must_be_integer(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["-port", "http"])

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "mdlive 0.1.0" in capsys.readouterr().out


class TestMainDispatch:
    """main() picks serve, then watch, then build."""

    @pytest.mark.parametrize(
        ("argv", "mode"),
        [
            ([], "build"),
            (["-watch"], "watch"),
            (["-serve"], "serve"),
            (["-watch", "-serve"], "serve"),
            (["-watch=false"], "build"),
            (["-serve=true"], "serve"),
            (["-watch=true", "-serve=false"], "watch"),
        ],
    )
    def test_mode_selection(self, argv: list[str], mode: str, tmp_path: Path) -> None:
        called: list[str] = []

        def fake(name: str):
            def run(root: object = ".", **overrides: object) -> bool:
                called.append(name)
                return True
            return run

        with (
            patch("mdlive.app.build", fake("build")),
            patch("mdlive.app.watch", fake("watch")),
            patch("mdlive.app.serve", fake("serve")),
        ):
            assert main([*argv, "--root", str(tmp_path)]) == 0
        assert called == [mode]

    def test_config_file_selects_mode(self, tmp_path: Path) -> None:
        (tmp_path / "mdlive.yaml").write_text("watch: true\n")
        with patch("mdlive.app.watch", return_value=True) as watch:
            assert main(["--root", str(tmp_path)]) == 0
        watch.assert_called_once()

    def test_explicit_false_overrides_config_file(self, tmp_path: Path) -> None:
        (tmp_path / "mdlive.yaml").write_text("watch: true\n")
        with (
            patch("mdlive.app.watch", return_value=True) as watch,
            patch("mdlive.app.build", return_value=True) as build,
        ):
            assert main(["-watch=false", "--root", str(tmp_path)]) == 0
        watch.assert_not_called()
        build.assert_called_once()


class TestMainBuild:
    """main() end to end in build mode."""

    def test_build_writes_output(self, tmp_sources: Path) -> None:
        output = tmp_sources / "output.html"
        code = main([
            "-markdown", str(tmp_sources / "post.md"),
            "-template", str(tmp_sources / "template.html"),
            "-output", str(output),
            "--root", str(tmp_sources),
        ])
        assert code == 0
        assert "<p>Hello</p>" in output.read_text(encoding="utf-8")

    def test_build_logs_success(self, tmp_sources: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main([
            "-markdown", str(tmp_sources / "post.md"),
            "-template", str(tmp_sources / "template.html"),
            "-output", str(tmp_sources / "output.html"),
            "--root", str(tmp_sources),
        ])
        out = capsys.readouterr().out
        assert 'msg="the template was successfully rendered"' in out
        assert "input=" in out

    def test_build_failure_exit_code(self, tmp_sources: Path) -> None:
        code = main([
            "-markdown", str(tmp_sources / "missing.md"),
            "-template", str(tmp_sources / "template.html"),
            "-output", str(tmp_sources / "output.html"),
            "--root", str(tmp_sources),
        ])
        assert code == 1

    def test_config_error_exit_code(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = main(["-markdown", "", "--root", str(tmp_path)])
        assert code == 1
        assert "the markdown path must be present" in capsys.readouterr().out
