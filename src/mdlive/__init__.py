"""mdlive: render a markdown document into an HTML template, with live reload.

Quick start::

    import mdlive

    mdlive.build(markdown="post.md", template="template.html", output="output.html")

Three modes::

    mdlive.build()        # Render once
    mdlive.watch()        # Re-render whenever post.md or template.html changes
    mdlive.serve()        # Re-render and reload connected browsers

The template holds a single ``{{ content }}`` placeholder that receives the
rendered markdown.

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "MdliveConfig",
    "__version__",
    "build",
    "serve",
    "watch",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import mdlive`` fast: the server stack is only loaded by ``serve``.
    """
    if name == "MdliveConfig":
        from mdlive.config import MdliveConfig

        return MdliveConfig

    if name == "build":
        from mdlive.app import build

        return build

    if name == "watch":
        from mdlive.app import watch

        return watch

    if name == "serve":
        from mdlive.app import serve

        return serve

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
