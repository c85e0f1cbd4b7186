import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from .errors import BadRequest, NotFound, RelayError
from .protocol import OPERATIONS

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 8 * 1024 * 1024

RequestHandler = Callable[[str, Dict[str, Any]], Dict[str, Any]]


class HttpIO:
    """
    Thin JSON-over-HTTP layer. Each path names one relay operation;
    GET parameters come from the query string, POST parameters from the
    JSON body.
    """

    def __init__(
        self,
        host: str,
        port: int,
        request_handler: RequestHandler,
        log: Optional[logging.Logger] = None,
    ):
        self.host = host
        self.port = port
        self.request_handler = request_handler
        self.logger = log or logger
        self.server: Optional[ThreadingHTTPServer] = None
        self.serve_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------

    def start(self) -> None:
        """Bind and start serving in a background thread."""
        try:
            self.server = ThreadingHTTPServer((self.host, self.port), self._make_handler())
            self.server.daemon_threads = True
            # port 0 means "pick one"; report the real one
            self.port = self.server.server_address[1]

            self.serve_thread = threading.Thread(
                target=self.server.serve_forever, daemon=True
            )
            self.serve_thread.start()

            self.logger.info("HttpIO started on %s:%d", self.host, self.port)
        except Exception as e:
            self.logger.error("Failed to start HttpIO: %s", e)
            raise

    def stop(self) -> None:
        """Stop serving and release the socket."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
        if self.serve_thread:
            self.serve_thread.join(timeout=1.0)
        self.logger.info("HttpIO stopped")

    # ------------------------------------------------------------------

    def dispatch(self, method: str, path: str, body: bytes) -> tuple:
        """Run one request; returns (status, response dict)."""
        try:
            url = urlsplit(path)
            operation = url.path.strip("/").rsplit("/", 1)[-1]
            expected = OPERATIONS.get(operation)
            if expected is None:
                raise NotFound(f"Unknown path {url.path}")
            if method != expected:
                return 405, {"error": "MethodNotAllowed", "message": f"Use {expected}"}

            if method == "GET":
                payload = {k: v[0] for k, v in parse_qs(url.query).items()}
            else:
                payload = self._decode_body(body)

            return 200, self.request_handler(operation, payload)
        except RelayError as e:
            return e.status, e.to_dict()
        except Exception as e:
            self.logger.error("Error handling %s %s: %s", method, path, e)
            return 500, {"error": "InternalServerError", "message": str(e)}

    @staticmethod
    def _decode_body(body: bytes) -> Any:
        if not body:
            return {}
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BadRequest(f"Malformed JSON body: {e}") from e

    def _make_handler(self):
        io = self

        class _Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                self._respond(*io.dispatch("GET", self.path, b""))

            def do_POST(self):
                try:
                    length = int(self.headers.get("Content-Length") or 0)
                except ValueError:
                    length = -1
                if length < 0:
                    self._respond(400, BadRequest("Invalid Content-Length").to_dict())
                    return
                if length > MAX_BODY_BYTES:
                    self._respond(413, {"error": "PayloadTooLarge", "message": ""})
                    return
                self._respond(*io.dispatch("POST", self.path, self.rfile.read(length)))

            def _respond(self, status: int, body: Dict[str, Any]) -> None:
                data = json.dumps(body).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

            def log_message(self, format, *args):
                io.logger.debug("%s - %s", self.address_string(), format % args)

        return _Handler
