"""mdlive configuration.

MdliveConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path

from mdlive._errors import ConfigError


@dataclass(frozen=True, slots=True)
class MdliveConfig:
    """Configuration for one mdlive run.

    Attributes:
        markdown: The markdown source document.
        template: The HTML template containing the ``{{ content }}`` placeholder.
        output: The rendered HTML file, overwritten on every successful build.
        watch: Rebuild whenever the markdown or template changes.
        serve: Run the live-reload server (implies watching).
        host: Bind address for serve mode.
        port: Bind port for serve mode.
        static_dir: Directory served for every path other than ``/``.
        settle_delay: Seconds to wait after a rename/remove before rebuilding.
        debounce_ms: watchfiles debounce window in milliseconds.
        step_ms: watchfiles polling step in milliseconds.
        write_timeout: Seconds a single client write may take during a
            broadcast before the client is dropped.  ``None`` disables it.
        client_queue_size: Pending reload events buffered per client.
        reconnect_delay_ms: Delay before the browser reloads after losing
            the live-reload connection.

    """

    markdown: Path = field(default_factory=lambda: Path("post.md"))
    template: Path = field(default_factory=lambda: Path("template.html"))
    output: Path = field(default_factory=lambda: Path("output.html"))
    watch: bool = False
    serve: bool = False
    host: str = "127.0.0.1"
    port: int = 8080
    static_dir: Path = field(default_factory=lambda: Path("."))
    settle_delay: float = 0.1
    debounce_ms: int = 50
    step_ms: int = 50
    write_timeout: float | None = 5.0
    client_queue_size: int = 16
    reconnect_delay_ms: int = 2000

    def validate(self) -> None:
        """Check the configuration before any work is done.

        Raises:
            ConfigError: If a source path is empty or a numeric limit is out of range.

        """
        for name in ("markdown", "template", "output"):
            value = getattr(self, name)
            if not str(value).strip() or str(value) == ".":
                msg = f"the {name} path must be present"
                raise ConfigError(msg)
        if not 0 < self.port < 65536:
            msg = f"port must be between 1 and 65535, got {self.port}"
            raise ConfigError(msg)
        if self.client_queue_size < 1:
            msg = f"client_queue_size must be positive, got {self.client_queue_size}"
            raise ConfigError(msg)
        if self.settle_delay < 0:
            msg = f"settle_delay must not be negative, got {self.settle_delay}"
            raise ConfigError(msg)

    @property
    def url(self) -> str:
        """Address the live-reload server listens on."""
        return f"http://{self.host}:{self.port}"
