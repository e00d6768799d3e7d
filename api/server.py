"""Local HTTP server: wires configuration, store, auto-save and routes together."""

import signal
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

import httpx
from dotenv import load_dotenv

from anything import config
from anything.autosave import AutoSaver
from anything.config import ConfigError
from anything.logger import configure_file_logging, get_logger
from anything.store import SnapshotError, Store
from api.app import App, Request

log = get_logger("api.server")

MAX_BODY_BYTES = 1 << 20


def make_handler(app: App) -> type[BaseHTTPRequestHandler]:
    """Build a request handler class that forwards to app."""

    class AppHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            self._dispatch()

        def do_POST(self):
            self._dispatch()

        def _dispatch(self):
            parsed = urlparse(self.path)
            try:
                length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                length = -1
            if length < 0:
                self._send({"statusCode": 400, "headers": {}, "body": "Invalid Content-Length"})
                return
            if length > MAX_BODY_BYTES:
                self._send({"statusCode": 413, "headers": {}, "body": "Request body too large"})
                return
            body = self.rfile.read(length) if length else b""

            request = Request(
                method=self.command,
                path=parsed.path,
                query=parse_qs(parsed.query, keep_blank_values=True),
                headers={k.lower(): v for k, v in self.headers.items()},
                body=body,
            )
            self._send(app(request))

        def _send(self, response: dict):
            body = response["body"]
            if isinstance(body, str):
                body = body.encode("utf-8")
            self.send_response(response["statusCode"])
            for name, value in response["headers"].items():
                self.send_header(name, value)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            log.debug(f"{self.address_string()} {format % args}")

    return AppHandler


def health_check(url: str, interval: float, stop: threading.Event, client: httpx.Client | None = None) -> None:
    """Periodically request the status endpoint until stop is set."""
    own_client = client is None
    client = client or httpx.Client(timeout=10.0)
    try:
        while not stop.wait(interval):
            try:
                response = client.get(url)
            except httpx.HTTPError as e:
                log.error(f"Error making health check request: {e}")
                continue
            if response.status_code == 200:
                log.info("Server is healthy")
            else:
                log.error(f"Server is not healthy: status code {response.status_code}")
    finally:
        if own_client:
            client.close()
    log.info("Stopping health check mechanism")


def main() -> int:
    load_dotenv()
    configure_file_logging()

    try:
        settings = config.load_settings()
    except ConfigError as e:
        log.error(f"Invalid configuration: {e}")
        return 1

    store = Store(
        people=settings.people,
        periods=settings.periods,
        entries=settings.entries,
        group_order=settings.group_order,
        tz=settings.timezone,
    )
    configured_entries = store.entries()

    saver = AutoSaver(settings.db_path, settings.persist_interval, store)
    try:
        saver.start()
    except (SnapshotError, OSError) as e:
        log.error(f"Cannot load snapshot from {settings.db_path}: {e}")
        return 1
    if not store.entries():
        store.update_entries(configured_entries)
    store.on_change = saver.delay

    server = ThreadingHTTPServer(("", settings.port), make_handler(App(store)))

    stop_health_check = threading.Event()
    checker = threading.Thread(
        target=health_check,
        args=(f"http://localhost:{settings.port}/status", settings.health_check_interval, stop_health_check),
        daemon=True,
    )
    checker.start()

    def shutdown(signum, frame):
        log.info("Shutting down server")
        stop_health_check.set()
        saver.close()
        # shutdown() blocks until serve_forever returns, so run it elsewhere.
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    log.info(f"Starting server on :{settings.port}")
    try:
        server.serve_forever()
    finally:
        server.server_close()
        saver.close()
    log.info("Server shut down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
