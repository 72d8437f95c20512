"""mdlive CLI: build, watch, or serve a markdown document.

Entry point for the ``mdlive`` command-line interface.  Flags are accepted
with one or two dashes (``-watch`` and ``--watch``).
"""

from __future__ import annotations

import argparse
import logging


_TRUE = frozenset({"1", "t", "true"})
_FALSE = frozenset({"0", "f", "false"})


def _parse_bool(value: str) -> bool:
    """Parse a flag value the way Go's flag package does (``-watch=false``)."""
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    msg = f"invalid boolean value {value!r}"
    raise argparse.ArgumentTypeError(msg)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the mdlive CLI."""
    parser = argparse.ArgumentParser(
        prog="mdlive",
        description="Render a markdown document into an HTML template, with live reload.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    # Single generation.  Unset flags stay None so a config file can fill them in.
    parser.add_argument(
        "-markdown", "--markdown", default=None,
        help="the input markdown post file (default: post.md)",
    )
    parser.add_argument(
        "-template", "--template", default=None,
        help="the template file for the markdown document (default: template.html)",
    )
    parser.add_argument(
        "-output", "--output", default=None,
        help="the output html file (default: output.html)",
    )

    # Live reload
    parser.add_argument(
        "-watch", "--watch", nargs="?", const=True, default=None, type=_parse_bool,
        metavar="BOOL",
        help="watch for changes and reload the template",
    )
    parser.add_argument(
        "-serve", "--serve", nargs="?", const=True, default=None, type=_parse_bool,
        metavar="BOOL",
        help="enable server with live reload",
    )
    parser.add_argument(
        "-port", "--port", type=int, default=None,
        help="port for the server (default: 8080)",
    )
    parser.add_argument("--host", default=None, help="bind address for the server (default: 127.0.0.1)")

    parser.add_argument(
        "--root", default=".",
        help="directory containing mdlive.yaml or mdlive.toml (default: .)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from mdlive import __version__

    return __version__


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from mdlive._errors import MdliveError
    from mdlive.app import run
    from mdlive.log import configure_logging, get_logger, log_event

    configure_logging(verbose=args.verbose)

    overrides: dict[str, object] = {
        "markdown": args.markdown,
        "template": args.template,
        "output": args.output,
        "watch": args.watch,
        "serve": args.serve,
        "host": args.host,
        "port": args.port,
    }

    try:
        ok = run(root=args.root, **overrides)
    except MdliveError as exc:
        log_event(get_logger("cli"), logging.ERROR, str(exc))
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
