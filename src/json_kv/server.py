"""HTTP front end: GET /<path> answers with the JSON at that path."""

import logging
import socketserver
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional

from .io.query_output import StreamOutput
from .json_store import JSONStore
from .types import ProcessingError, QueryKind

logger = logging.getLogger(__name__)


class _ResponseOutput(StreamOutput):
    """Sends the 200 headers just before the first body byte."""

    def __init__(self, handler: BaseHTTPRequestHandler):
        super().__init__(handler.wfile, flush=False, logger=logger)
        self.handler = handler
        self.headers_sent = False

    def write(self, data: bytes) -> None:
        if not self.headers_sent and not self.is_cancelled():
            self.headers_sent = True
            try:
                self.handler.send_response(200)
                self.handler.send_header("Content-Type", "application/json; charset=utf-8")
                self.handler.end_headers()
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.debug(f"Client went away before headers: {e}")
                self.cancel()
                return
        super().write(data)


class _Handler(BaseHTTPRequestHandler):
    store: JSONStore  # injected via make_handler()
    protocol_version = "HTTP/1.0"

    def do_GET(self) -> None:
        parsed = urllib.parse.urlsplit(self.path)
        path = urllib.parse.unquote(parsed.path).rstrip("/")

        validation = self.store.error_handler.validate_query_path(path, self.store.config.separator)
        if not validation.is_valid:
            self.send_error(400, "; ".join(e.message for e in validation.errors))
            return

        output = _ResponseOutput(self)
        try:
            result = self.store.reconstructor.query_path(path, output)
        except ProcessingError as e:
            self.store.error_handler.handle_processing_error(e)
            if not output.headers_sent:
                self.send_error(500, str(e))
            return

        if result.kind is QueryKind.CANCELLED:
            logger.info(f"Query {path!r} cancelled by client after {result.records_scanned} records")

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class _ThreadingHTTPServer(socketserver.ThreadingMixIn, HTTPServer):
    daemon_threads = True


def make_handler(store: JSONStore) -> type:
    class _Bound(_Handler):
        pass
    _Bound.store = store
    return _Bound


def make_server(store: JSONStore, host: str = "", port: int = 8080) -> HTTPServer:
    """Build a threading HTTP server bound to host:port (port 0 picks one)."""
    return _ThreadingHTTPServer((host, port), make_handler(store))


def serve(store: JSONStore, host: str = "", port: int = 8080,
          server: Optional[HTTPServer] = None) -> None:
    """Serve queries until interrupted."""
    server = server or make_server(store, host, port)
    logger.info(f"Listening on {host or '*'}:{server.server_address[1]}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
