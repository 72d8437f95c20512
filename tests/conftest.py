"""Shared test fixtures for mdlive."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from mdlive.builder import BuildRequest

TEMPLATE = "<html><body>{{ content }}</body></html>"


@pytest.fixture(autouse=True)
def _reset_mdlive_logger():
    """Undo ``configure_logging`` so caplog keeps seeing mdlive records."""
    yield
    logger = logging.getLogger("mdlive")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def tmp_sources(tmp_path: Path) -> Path:
    """Create a minimal source tree: post.md and template.html.

    Returns the directory containing both files.
    """
    (tmp_path / "post.md").write_text("Hello", encoding="utf-8")
    (tmp_path / "template.html").write_text(TEMPLATE, encoding="utf-8")
    return tmp_path


@pytest.fixture
def build_request(tmp_sources: Path) -> BuildRequest:
    """A BuildRequest over ``tmp_sources`` writing ``output.html`` beside them."""
    return BuildRequest(
        markdown=tmp_sources / "post.md",
        template=tmp_sources / "template.html",
        output=tmp_sources / "output.html",
    )
