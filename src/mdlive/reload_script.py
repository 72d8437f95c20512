"""Live-reload script injection for the served page.

Injects a small script into HTML responses that connects the browser to
the live-reload event stream.  The injected script:

1. Opens an ``EventSource`` on ``/__mdlive/events``
2. Reloads the page when a ``reload`` message arrives
3. When the connection drops, closes it and reloads after a fixed delay
   so the page reconnects once the server is back
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chirp.http.request import Request
    from chirp.middleware.protocol import AnyResponse, Next

# Path of the live-reload event stream
EVENTS_ENDPOINT = "/__mdlive/events"

# Marker attribute identifying the injected tag
SCRIPT_MARKER = "data-mdlive-reload"

_RELOAD_SCRIPT = """\
<script data-mdlive-reload>
(function() {
  var src = new EventSource('%(endpoint)s');
  src.onmessage = function(e) {
    if (e.data === 'reload') {
      location.reload();
    }
  };
  src.onerror = function() {
    console.log('Live reload connection closed. Reloading page to try reconnecting...');
    src.close();
    setTimeout(function() { location.reload(); }, %(delay)d);
  };
})();
</script>
"""


def reload_script(reconnect_delay_ms: int = 2000) -> str:
    """Return the script tag injected into served pages."""
    return _RELOAD_SCRIPT % {"endpoint": EVENTS_ENDPOINT, "delay": reconnect_delay_ms}


def inject_reload_script(html: str, reconnect_delay_ms: int = 2000) -> str:
    """Insert the reload script before ``</body>`` (or ``</html>``, or at the end)."""
    script = reload_script(reconnect_delay_ms)
    if "</body>" in html:
        return html.replace("</body>", script + "</body>", 1)
    if "</html>" in html:
        return html.replace("</html>", script + "</html>", 1)
    return html + script


def reload_middleware(
    reconnect_delay_ms: int = 2000,
    *,
    paths: frozenset[str] = frozenset({"/"}),
) -> Callable[[Request, Next], Awaitable[AnyResponse]]:
    """Build a Chirp middleware that injects the reload script into HTML responses.

    Only requests for one of *paths* are touched, and only responses with a
    ``text/html`` content type and a body; static HTML files, streams and
    error pages in other content types pass through.

    """

    async def middleware(request: Request, next: Next) -> AnyResponse:
        response = await next(request)

        if request.path not in paths:
            return response

        # Only inject into regular (non-streaming, non-SSE, non-file) HTML responses
        if not hasattr(response, "body") or not hasattr(response, "content_type"):
            return response

        if "text/html" not in response.content_type:
            return response

        body = response.body
        if isinstance(body, bytes):
            body = body.decode("utf-8")

        return replace(response, body=inject_reload_script(body, reconnect_delay_ms))

    return middleware
