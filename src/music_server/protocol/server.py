"""TCP server that hands each accepted connection to a pooled worker."""

import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from loguru import logger

from music_server.domain.library.catalog import Catalog

from .commands import ERROR_BUSY, MAX_REQUEST_BYTES, format_error
from .handler import RequestHandler

DEFAULT_PORT = 5555
ACCEPT_POLL_SECONDS = 1.0
REJECT_DRAIN_SECONDS = 0.5


class CatalogServer:
    """Serves catalog requests over TCP.

    The accept loop runs until stop() is called. Each connection is handled
    by a worker from a fixed-size thread pool; connections beyond the pool
    size wait in a bounded queue, and once that is full new connections are
    answered with a BUSY error line and closed.
    """

    def __init__(
        self,
        catalog: Catalog,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        max_workers: int = 16,
        max_pending: int = 32,
        client_timeout: Optional[float] = None,
        backlog: int = 50,
    ):
        """
        Initialize the server.

        Args:
            catalog: Catalog to serve; frozen before serving starts
            host: Interface to listen on
            port: TCP port (0 picks a free port)
            max_workers: Connections handled at the same time
            max_pending: Accepted connections allowed to wait for a worker
            client_timeout: Socket timeout for client connections (None waits forever)
            backlog: Listen backlog
        """
        self.catalog = catalog
        self.host = host
        self.port = port
        self.max_workers = max_workers
        self.max_pending = max_pending
        self.client_timeout = client_timeout
        self.backlog = backlog
        self.handler = RequestHandler(catalog)
        self.server_socket: Optional[socket.socket] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._slots = threading.BoundedSemaphore(max_workers + max_pending)

    @property
    def address(self) -> tuple[str, int]:
        """Address the server is bound to."""
        if self.server_socket is None:
            return self.host, self.port
        return self.server_socket.getsockname()[:2]

    def bind(self) -> tuple[str, int]:
        """Create the listening socket.

        Raises:
            OSError: If the address cannot be bound (e.g. port already in use)
        """
        if self.server_socket is not None:
            return self.address

        if not self.catalog.frozen:
            self.catalog.freeze()

        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(self.backlog)
            server_socket.settimeout(ACCEPT_POLL_SECONDS)  # Poll so stop() is noticed
        except OSError:
            server_socket.close()
            raise

        self.server_socket = server_socket
        host, port = self.address
        logger.info(f"Listening on {host}:{port} ({len(self.catalog)} songs)")
        return host, port

    def serve_forever(self) -> None:
        """Accept connections until stop() is called."""
        self.bind()
        self.running = True
        self._run_server()

    def _run_server(self) -> None:
        """Run the accept loop."""
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="music-server-client"
        )

        try:
            while self.running:
                try:
                    client_socket, address = self.server_socket.accept()
                except socket.timeout:
                    # Timeout is normal, just check if we should continue
                    continue
                except OSError as e:
                    if self.running:  # Only log if we're still supposed to be running
                        logger.error(f"Error accepting connection: {e}")
                    continue

                logger.info(f"Client connected from {address[0]}:{address[1]}")
                self._dispatch(client_socket, address)
        finally:
            self.running = False
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._close_server_socket()

    def _dispatch(self, client_socket: socket.socket, address: tuple) -> None:
        """Hand a connection to the pool, or refuse it when the pool is full."""
        if not self._slots.acquire(blocking=False):
            self._reject(client_socket, address)
            return

        client_socket.settimeout(self.client_timeout)
        try:
            future = self._executor.submit(self.handler.handle, client_socket, address)
        except RuntimeError as e:
            # Executor already shut down
            self._slots.release()
            logger.error(f"Cannot schedule client {address[0]}:{address[1]}: {e}")
            client_socket.close()
            return
        future.add_done_callback(lambda _: self._slots.release())

    def _reject(self, client_socket: socket.socket, address: tuple) -> None:
        logger.warning(f"Server at capacity, refusing {address[0]}:{address[1]}")
        try:
            client_socket.settimeout(REJECT_DRAIN_SECONDS)
            client_socket.sendall(format_error(ERROR_BUSY, "server is at capacity, try again later"))
            client_socket.shutdown(socket.SHUT_WR)
            # Closing with the request still unread would reset the connection
            client_socket.recv(MAX_REQUEST_BYTES)
        except OSError:
            pass
        finally:
            client_socket.close()

    def start(self) -> None:
        """Bind, then run the accept loop in a background thread."""
        if self.running:
            return

        self.bind()
        self.running = True
        self.thread = threading.Thread(
            target=self._run_server, daemon=True, name="music-server-accept"
        )
        self.thread.start()

    def stop(self) -> None:
        """Stop accepting connections. Transfers in progress are not waited for."""
        self.running = False

        if self.thread and self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout=ACCEPT_POLL_SECONDS * 3)
        else:
            self._close_server_socket()

    def _close_server_socket(self) -> None:
        if self.server_socket is not None:
            try:
                self.server_socket.close()
            except OSError:
                pass
            self.server_socket = None

    def __enter__(self) -> "CatalogServer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
