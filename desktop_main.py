"""Desktop launcher for the VQ quality center using pywebview.

The Flask app runs on a local werkzeug server inside the process and the
window points at its login page. ``VQ_DESKTOP_PORT`` pins the port (a free
one is picked otherwise) and ``VQ_DESKTOP_FULLSCREEN`` opens the window in
kiosk mode for the line terminals.
"""

from __future__ import annotations

import os
import socket
import threading
import time
from contextlib import suppress

from dotenv import load_dotenv
from flask import Flask
from werkzeug.serving import make_server

import webview

from vqcenter import create_app

WINDOW_TITLE = "BYD - VQ Management"
LOCAL_HOST = "127.0.0.1"


class DesktopServer:
    """Serve a Flask app on a background thread for the lifetime of a window."""

    def __init__(self, app: Flask, host: str = LOCAL_HOST, port: int = 0) -> None:
        self.app = app
        self.host = host
        self._server = make_server(host, port, app, threaded=True)
        self.port = self._server.server_port
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._stopped = threading.Event()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self, timeout: float = 10.0) -> "DesktopServer":
        self._thread.start()
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(0.5)
                if sock.connect_ex((self.host, self.port)) == 0:
                    return self
            time.sleep(0.1)
        self.stop()
        raise RuntimeError(f"Server did not start within {timeout} seconds")

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        if self._thread.is_alive():
            self._server.shutdown()
            self._thread.join(timeout=2.0)
        with suppress(OSError):
            self._server.server_close()

    def __enter__(self) -> "DesktopServer":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()


def _desktop_port() -> int:
    value = (os.environ.get("VQ_DESKTOP_PORT") or "").strip()
    try:
        return int(value) if value else 0
    except ValueError:
        raise RuntimeError(f"VQ_DESKTOP_PORT must be a number, got {value!r}") from None


def run_desktop() -> None:
    load_dotenv()
    app = create_app()
    fullscreen = (os.environ.get("VQ_DESKTOP_FULLSCREEN") or "").lower() in {"1", "true", "yes"}

    with DesktopServer(app, port=_desktop_port()) as server:
        app.logger.info("Serving the quality center at %s", server.url)
        window = webview.create_window(
            WINDOW_TITLE,
            f"{server.url}/login",
            width=1280,
            height=800,
            min_size=(1024, 640),
            fullscreen=fullscreen,
        )
        window.events.closed += server.stop
        webview.start()


if __name__ == "__main__":
    run_desktop()
