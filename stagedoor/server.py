"""HTTP server for Stagedoor.

Serves a build output directory through the AssetResponder:
- Every request is answered by the responder on a dedicated asyncio loop.
- HEAD gets the GET headers without a body; Content-Length is sent on every
  response except 204.
- A request that outlives the configured timeout is cancelled and gets a 500.
- The output directory is watched; a redeploy re-indexes it and publishes a
  new responder, store and normalizer together, in one assignment.

Key functions:
- build_responder: Responder for a store, following the server configuration.

Key classes:
- AssetServer: Main class for running the server.
- _AssetRequestHandler: HTTP request handler delegating to the responder.
- _ChangeHandler: File system event handler triggering store reloads.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from . import __version__
from .config import load_config, resolve_output_dir
from .paths import ManifestPathNormalizer, request_path_from_target
from .policies import apply_security_headers
from .responder import AssetResponder, Response, error_response
from .stores import DirectoryAssetStore


def build_responder(store: DirectoryAssetStore, config: dict[str, Any]) -> AssetResponder:
    """Build the responder for a store the way the server configures it.

    With ``strict_directories`` the responder consults the store's keys to
    tell directories from files; otherwise it keeps the dot heuristic.

    Args:
        store: Indexed build output.
        config: Loaded configuration.

    Returns:
        Responder bound to the store.
    """
    normalizer = None
    if config.get("strict_directories"):
        normalizer = ManifestPathNormalizer(store.keys())
    return AssetResponder(
        store,
        normalizer=normalizer,
        not_found_key=str(config.get("not_found_path") or "/404.html"),
    )


def bad_request_response() -> Response:
    return Response(
        status=400,
        headers=apply_security_headers({}),
        body=b"Bad Request",
    )


class _AssetRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler that hands every request to the live responder.

    Attributes:
        app: Object whose ``responder`` attribute answers requests; read once
            per request so a redeploy never splits one.
        loop: Event loop the responder coroutines run on.
        request_timeout: Seconds to wait for the responder before giving up.
    """

    server_version = f"stagedoor/{__version__}"
    protocol_version = "HTTP/1.1"
    app = None
    loop: asyncio.AbstractEventLoop | None = None
    request_timeout: float = 10.0

    def do_GET(self):
        self._handle("GET")

    def do_HEAD(self):
        self._handle("HEAD", send_body=False)

    def do_OPTIONS(self):
        self._handle("OPTIONS")

    def do_POST(self):
        self._handle("POST")

    def do_PUT(self):
        self._handle("PUT")

    def do_PATCH(self):
        self._handle("PATCH")

    def do_DELETE(self):
        self._handle("DELETE")

    def _handle(self, method: str, send_body: bool = True) -> None:
        if not self._discard_body():
            # The rest of the stream cannot be framed; answer and hang up.
            self.close_connection = True
            self._send(bad_request_response(), send_body)
            return
        request_path = request_path_from_target(self.path)
        response = self._dispatch(request_path, method)
        self._send(response, send_body)

    def _discard_body(self) -> bool:
        """Read and drop any request body. False when its length is unusable."""
        raw = self.headers.get("Content-Length")
        if raw is None:
            return True
        try:
            length = int(raw)
        except ValueError:
            return False
        if length < 0:
            return False
        if length:
            self.rfile.read(length)
        return True

    def _dispatch(self, request_path: str, method: str) -> Response:
        responder = self.app.responder
        future = asyncio.run_coroutine_threadsafe(
            responder.respond(request_path, method), self.loop
        )
        try:
            return future.result(timeout=self.request_timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            print(f"Timed out serving {request_path!r} after {self.request_timeout}s")
            return error_response()

    def _send(self, response: Response, send_body: bool) -> None:
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        if response.status != 204:
            self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        if send_body and response.body:
            self.wfile.write(response.body)


class AssetServer:
    """Static asset server over a build output directory.

    Attributes:
        project_root: Root directory of the project.
        config: Server configuration.
        output_dir: Build output directory being served.
        host: Interface to bind.
        http_port: Port for the HTTP server.
        watch: Whether to reload the store when the output directory changes.
        responder: Live responder; replaced whole on every redeploy.
        _observer: File system observer for redeploys.
        _loop: Event loop running responder coroutines.
        _pending_reload: Timer retrying a reload that the debounce or a
            running reload turned away.
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        host: str | None = None,
        output_dir: Path | None = None,
        watch: bool | None = None,
    ):
        """Initialize the server.

        Args:
            project_root: Root directory of the project.
            http_port: Optional override for the HTTP port.
            host: Optional override for the bind address.
            output_dir: Optional override for the build output directory.
            watch: Optional override for redeploy watching.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = output_dir or resolve_output_dir(project_root, self.config)
        self.host = host if host is not None else str(self.config.get("host") or "")
        self.http_port = int(http_port or self.config.get("port", 8787))
        self.watch = bool(self.config.get("watch", True)) if watch is None else watch
        self.request_timeout = float(self.config.get("request_timeout", 10))
        self.responder = build_responder(DirectoryAssetStore(self.output_dir), self.config)
        self._observer: Observer | None = None
        self._httpd: ThreadingHTTPServer | None = None
        self._loop = asyncio.new_event_loop()
        self._loop_thread: threading.Thread | None = None
        self._reload_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._pending_reload: threading.Timer | None = None
        self._last_reload_at = 0.0
        self._last_signature: tuple | None = self._compute_signature()
        self._debounce_seconds = 0.05

    @property
    def store(self) -> DirectoryAssetStore:
        return self.responder.store

    def handler_class(self) -> type[_AssetRequestHandler]:
        """Return a request handler class bound to this server."""
        return type(
            "_AssetRequestHandlerBound",
            (_AssetRequestHandler,),
            {
                "app": self,
                "loop": self._loop,
                "request_timeout": self.request_timeout,
            },
        )

    def start(self) -> None:  # pragma: no cover - integration path
        self._start_loop()
        self._httpd = ThreadingHTTPServer((self.host, self.http_port), self.handler_class())
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        print(f"Serving {self.output_dir} at http://{self.host or 'localhost'}:{self.http_port}")
        if self.watch:
            self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        with self._timer_lock:
            if self._pending_reload is not None:
                self._pending_reload.cancel()
                self._pending_reload = None
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._httpd:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        if self._loop.is_closed():
            return
        if self._loop_thread is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._loop_thread.join()
            self._loop_thread = None
        self._loop.close()

    def _start_loop(self) -> None:
        self._loop_thread = threading.Thread(target=self._run_loop, daemon=True)
        self._loop_thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.output_dir), recursive=True)
        observer.start()
        self._observer = observer

    def reload(self) -> bool:
        """Re-index the output directory and publish a new responder for it.

        A call turned away by the debounce window or by a reload already in
        progress schedules a retry, so the last change of a burst always
        goes live.

        Returns:
            True when a new store went live.
        """
        now = time.time()
        if (now - self._last_reload_at) < self._debounce_seconds:
            self._schedule_reload()
            return False
        if not self._reload_lock.acquire(blocking=False):
            self._schedule_reload()
            return False
        try:
            signature = self._compute_signature()
            if signature == self._last_signature:
                return False
            try:
                fresh = DirectoryAssetStore(self.output_dir)
            except FileNotFoundError:
                print(f"Output directory {self.output_dir} is missing; keeping previous assets.")
                return False
            self.responder = build_responder(fresh, self.config)
            self._last_signature = signature
            print(f"Change detected; serving {len(fresh)} assets.")
            return True
        finally:
            self._last_reload_at = time.time()
            self._reload_lock.release()

    def _schedule_reload(self) -> None:
        with self._timer_lock:
            if self._pending_reload is not None:
                self._pending_reload.cancel()
            timer = threading.Timer(self._debounce_seconds, self.reload)
            timer.daemon = True
            self._pending_reload = timer
            timer.start()

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        if not self.output_dir.exists():
            return None
        for path in sorted(self.output_dir.rglob("*")):
            if path.is_dir():
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.output_dir)
            entries.append((rel.as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: AssetServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        self.server.reload()
