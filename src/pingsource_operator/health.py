"""Health check endpoints for the operator."""

from __future__ import annotations

import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Response

_ready = threading.Event()


def set_ready(ready: bool = True) -> None:
    """Mark the operator as ready (or not) to reconcile PingSources."""
    if ready:
        _ready.set()
    else:
        _ready.clear()


def _readiness_response() -> Response:
    if _ready.is_set():
        return Response('{"status":"ready"}', mimetype="application/json", status=200)
    return Response('{"status":"not ready"}', mimetype="application/json", status=503)


def health_check_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
    """WSGI application for health check endpoints.

    When mounted via DispatcherMiddleware, the path prefix is stripped,
    so '/healthz' becomes '/' when passed to this function.
    """
    path = environ.get("PATH_INFO", "")
    script_name = environ.get("SCRIPT_NAME", "")

    if path == "/readyz" or script_name == "/readyz":
        response = _readiness_response()
    elif path in ("/", "/healthz") or script_name == "/healthz":
        response = Response('{"status":"ok"}', mimetype="application/json", status=200)
    else:
        response = Response('{"error":"not found"}', mimetype="application/json", status=404)

    return response(environ, start_response)


def create_combined_wsgi_app() -> Any:
    """Create a WSGI app that combines metrics and health check endpoints.

    Returns:
        Combined WSGI application
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
        """WSGI app that routes /healthz and /readyz, delegates /metrics to prometheus."""
        path = environ.get("PATH_INFO", "")

        if path in ("/healthz", "/readyz"):
            return health_check_app(environ, start_response)
        return metrics_app(environ, start_response)

    return combined_app


def start_health_server(port: int) -> threading.Thread:
    """Serve metrics and health endpoints from a background thread."""
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread
