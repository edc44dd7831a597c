"""TCP transport speaking the ADB server's smart-socket protocol."""

from __future__ import annotations

import logging
import re
import socket
import struct
from typing import Optional, Tuple

from .errors import ParseError, RequestFailedError, UnknownResponseTypeError

log = logging.getLogger(__name__)

DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 5037

_HEX_RE = re.compile(r"\+?[0-9a-fA-F]+\Z")

Address = Tuple[str, int]


class TCPServerTransport:
    """Connection to an ADB server over TCP.

    The connection is opened lazily by :meth:`connect`. Requests are framed
    as four hexadecimal length digits followed by the command text, and the
    server answers with ``OKAY`` or ``FAIL`` followed by a message.
    """

    def __init__(self, address: Optional[Address] = None) -> None:
        if address is None:
            address = (DEFAULT_SERVER_HOST, DEFAULT_SERVER_PORT)
        host, port = address
        self.address: Address = (host, int(port))
        self._sock: Optional[socket.socket] = None

    def __enter__(self) -> TCPServerTransport:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        return f"TCPServerTransport(address={self.address!r}, connected={self.connected})"

    @property
    def connected(self) -> bool:
        """Whether a connection is currently open."""
        return self._sock is not None

    @property
    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise ConnectionError("not connected")
        return self._sock

    def connect(self) -> None:
        """Open a new connection, dropping any previous one."""
        if self._sock is not None:
            self._close_socket(self._sock)
            self._sock = None
        sock = socket.create_connection(self.address)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._sock = sock
        log.debug("Successfully connected to %s:%d", *self.address)

    def disconnect(self) -> None:
        """Shut down and close the connection, if one is open."""
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        self._close_socket(sock)
        log.debug("Disconnected from %s:%d", *self.address)

    @staticmethod
    def _close_socket(sock: socket.socket) -> None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        finally:
            sock.close()

    def read(self, size: int) -> bytes:
        """Read at most ``size`` bytes; an empty result means end of stream."""
        return self._socket.recv(size)

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes, raising EOFError if the stream ends first."""
        sock = self._socket
        buffer = bytearray()
        while len(buffer) < size:
            chunk = sock.recv(size - len(buffer))
            if not chunk:
                raise EOFError(
                    f"connection closed after {len(buffer)} of {size} bytes"
                )
            buffer += chunk
        return bytes(buffer)

    def write_all(self, data: bytes) -> None:
        """Write every byte of ``data``."""
        self._socket.sendall(data)

    def get_hex_body_length(self) -> int:
        """Read a length sent as four hexadecimal ASCII digits."""
        raw = self.read_exact(4)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"invalid length prefix: {raw!r}") from exc
        if not _HEX_RE.match(text):
            raise ParseError(f"invalid length prefix: {raw!r}")
        return int(text.lstrip("+"), 16)

    def get_body_length(self) -> int:
        """Read a length sent as a little-endian 32-bit integer."""
        (length,) = struct.unpack("<I", self.read_exact(4))
        return length

    def send_sync_request(self, command: str) -> None:
        """Send a four-letter sync command such as ``SEND`` or ``RECV``."""
        self.write_all(command.encode("utf-8"))

    def send_adb_request(self, command: str) -> None:
        """Send a request and check that the server accepted it."""
        payload = command.encode("utf-8")
        self.write_all(f"{len(payload):04x}".encode("ascii") + payload)
        self.read_adb_response()

    def read_adb_response(self) -> None:
        """Read an ``OKAY``/``FAIL`` status, raising on failure."""
        status = self.read_exact(4)
        if status == b"OKAY":
            return
        if status == b"FAIL":
            length = self.get_hex_body_length()
            body = self.read_exact(length) if length else b""
            raise RequestFailedError(_decode_message(body))
        raise UnknownResponseTypeError(f"unknown request status {status!r}")

    def proxy_connection(self, command: str, with_response: bool) -> bytes:
        """Send a request and, if asked, read back its length-prefixed body."""
        self.send_adb_request(command)
        if not with_response:
            return b""
        length = self.get_hex_body_length()
        return self.read_exact(length) if length else b""


def _decode_message(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"invalid UTF-8 in server message: {body!r}") from exc