"""mdlive error hierarchy.

All mdlive-specific errors inherit from MdliveError for easy catching.
Builder failures carry the path they concern.
"""

from pathlib import Path


class MdliveError(Exception):
    """Base error for all mdlive operations."""


class ConfigError(MdliveError):
    """Invalid or missing configuration."""


class BuildError(MdliveError):
    """A build step failed.  Recoverable: the next change retries the build."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ReadError(BuildError):
    """The markdown source could not be read."""


class RenderError(BuildError):
    """The markdown renderer rejected the source."""


class TemplateParseError(BuildError):
    """The template file is missing or malformed."""


class WriteError(BuildError):
    """The output file could not be written."""


class RenderExecError(BuildError):
    """The template has no content placeholder or failed to execute."""


class WatchError(MdliveError):
    """Error reported by the filesystem watcher."""


class WatchSetupError(WatchError):
    """The watcher could not be created."""


class WatchAddError(WatchError):
    """A source file could not be added to the watcher."""


class UpgradeError(MdliveError):
    """A live-reload connection could not be established."""
