"""Startup banner: mode-aware status output on stderr.

Detects ``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdlive._types import MdliveMode
    from mdlive.config import MdliveConfig


# NO_COLOR (https://no-color.org) and TERM=dumb turn styling off.
_COLOR = (
    not os.environ.get("NO_COLOR")
    and os.environ.get("TERM") != "dumb"
    and sys.stderr is not None
    and sys.stderr.isatty()
)


def _sgr(code: str) -> str:
    return f"\033[{code}m" if _COLOR else ""


_RESET, _BOLD, _DIM = _sgr("0"), _sgr("1"), _sgr("2")
_GREEN, _YELLOW, _CYAN = _sgr("32"), _sgr("33"), _sgr("36")

_MODE_COLORS: dict[str, str] = {
    "build": _YELLOW,
    "watch": _GREEN,
    "serve": _CYAN,
}


def _mode_badge(mode: str) -> str:
    return f"{_MODE_COLORS.get(mode, _DIM)}[{mode}]{_RESET}"


def _clickable_url(url: str) -> str:
    """Wrap *url* in an OSC 8 hyperlink escape if the terminal supports it."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{_BOLD}{_CYAN}{url}{_RESET}\033]8;;\033\\"


def format_banner(config: MdliveConfig, mode: MdliveMode) -> str:
    """Return the banner text for *mode*."""
    from mdlive import __version__
    from mdlive.reload_script import EVENTS_ENDPOINT

    lines: list[str] = [
        "",
        f"  {_BOLD}mdlive{_RESET} {_DIM}v{__version__}{_RESET}  {_mode_badge(mode)}",
        f"  {_DIM}{'─' * 43}{_RESET}",
        f"  {_DIM}├─{_RESET} markdown: {_DIM}{config.markdown}{_RESET}",
        f"  {_DIM}├─{_RESET} template: {_DIM}{config.template}{_RESET}",
    ]

    if mode == "serve":
        lines.append(f"  {_DIM}├─{_RESET} output:   {_DIM}{config.output}{_RESET}")
        lines.append(
            f"  {_DIM}└─{_RESET} {_GREEN}live{_RESET} "
            f"reload on {_DIM}{EVENTS_ENDPOINT}{_RESET}"
        )
        lines.append("")
        lines.append(f"  {_clickable_url(config.url)}")
    else:
        lines.append(f"  {_DIM}└─{_RESET} output:   {_DIM}{config.output}{_RESET}")

    if mode in ("watch", "serve"):
        lines.append("")
        lines.append(f"  {_DIM}Watching for changes...{_RESET}")

    lines.append("")
    return "\n".join(lines)


def print_banner(config: MdliveConfig, mode: MdliveMode) -> None:
    """Print the mdlive startup banner to stderr."""
    print(format_banner(config, mode), file=sys.stderr)
