"""Builder: markdown + template -> rendered HTML file.

A single stateless operation.  The markdown source is rendered with
Patitas, the template is compiled with Kida, and the rendered fragment is
bound to the template's one placeholder, ``content``, as trusted markup::

    <html><body>{{ content }}</body></html>

The whole page is rendered in memory before the output file is opened, so
a failing build never clobbers the previous output.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cache
from pathlib import Path
from typing import TYPE_CHECKING

from mdlive._errors import (
    ConfigError,
    ReadError,
    RenderError,
    RenderExecError,
    TemplateParseError,
    WriteError,
)

if TYPE_CHECKING:
    from kida import Environment
    from patitas import Markdown

    from mdlive.config import MdliveConfig

# Name of the single template variable the rendered markdown is bound to.
CONTENT_KEY = "content"


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """The three filesystem locations one build works on.

    Attributes:
        markdown: Markdown source document.
        template: HTML template with a ``{{ content }}`` placeholder.
        output: Destination for the rendered page.

    """

    markdown: Path
    template: Path
    output: Path

    def __post_init__(self) -> None:
        for name in ("markdown", "template", "output"):
            value = getattr(self, name)
            if not str(value).strip() or str(value) == ".":
                msg = f"the {name} path must be present"
                raise ConfigError(msg)

    @classmethod
    def from_config(cls, config: MdliveConfig) -> BuildRequest:
        """Create the request described by *config*."""
        return cls(markdown=config.markdown, template=config.template, output=config.output)

    @property
    def sources(self) -> tuple[Path, Path]:
        """The two watched inputs."""
        return (self.markdown, self.template)


@cache
def _markdown_renderer() -> Markdown:
    from patitas import Markdown

    return Markdown(plugins=["table"])


@cache
def _template_env() -> Environment:
    from kida import Environment

    return Environment(autoescape=True)


def render_markdown(source: str) -> str:
    """Render markdown *source* to an HTML fragment.

    Raises:
        RenderError: If Patitas rejects the source.

    """
    from patitas.errors import PatitasError

    try:
        return _markdown_renderer()(source)
    except PatitasError as exc:
        msg = f"error converting markdown into html: {exc}"
        raise RenderError(msg) from exc


def build_document(request: BuildRequest) -> None:
    """Render ``request.markdown`` into ``request.template`` and write ``request.output``.

    Raises:
        ReadError: The markdown file cannot be read.
        RenderError: The markdown renderer failed.
        TemplateParseError: The template file is missing or does not compile.
        RenderExecError: The template has no ``content`` placeholder or fails to render.
        WriteError: The output file cannot be written.

    """
    from kida import Markup, TemplateError
    from kida.lexer import LexerError

    try:
        markdown_source = request.markdown.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"there was an error reading the markdown content: {exc}"
        raise ReadError(msg, request.markdown) from exc

    fragment = render_markdown(markdown_source)

    try:
        template_source = request.template.read_text(encoding="utf-8")
        template = _template_env().from_string(template_source, name=request.template.name)
    except (OSError, UnicodeDecodeError, TemplateError, LexerError) as exc:
        msg = f"error parsing template file: {exc}"
        raise TemplateParseError(msg, request.template) from exc

    if CONTENT_KEY not in template.required_context():
        msg = f"template has no {{{{ {CONTENT_KEY} }}}} placeholder"
        raise RenderExecError(msg, request.template)

    try:
        rendered = template.render(**{CONTENT_KEY: Markup(fragment)})
    except TemplateError as exc:
        msg = f"error rendering template with markdown: {exc}"
        raise RenderExecError(msg, request.template) from exc

    try:
        request.output.write_text(rendered, encoding="utf-8", newline="")
    except OSError as exc:
        msg = f"error creating output file: {exc}"
        raise WriteError(msg, request.output) from exc
