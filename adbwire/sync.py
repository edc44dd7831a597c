"""File transfers over the ADB sync protocol."""

from __future__ import annotations

import logging
import struct
import time
from typing import BinaryIO, List

from .errors import ParseError, RequestFailedError, UnknownResponseTypeError
from .transport import TCPServerTransport

log = logging.getLogger(__name__)

SYNC_REQUEST = "sync:"
BUFFER_SIZE = 64 * 1024


def _enter_sync(transport: TCPServerTransport, command: str, path: str) -> None:
    transport.send_adb_request(SYNC_REQUEST)
    transport.send_sync_request(command)
    encoded = path.encode("utf-8")
    transport.write_all(struct.pack("<I", len(encoded)) + encoded)


def _decode(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"invalid UTF-8 in response: {body!r}") from exc


def send_file(transport: TCPServerTransport, stream: BinaryIO, path: str) -> None:
    """Send the contents of ``stream`` to ``path`` on the device.

    The transport must already be switched to the target device.
    """
    log.info("Sending data to %s", path)
    _enter_sync(transport, "SEND", f"{path},0777")

    while chunk := stream.read(BUFFER_SIZE):
        transport.write_all(b"DATA" + struct.pack("<I", len(chunk)) + chunk)

    transport.write_all(b"DONE" + struct.pack("<Q", int(time.time())))

    status = transport.read_exact(4)
    if status == b"OKAY":
        return
    if status == b"FAIL":
        length = transport.get_body_length()
        body = transport.read_exact(length) if length else b""
        raise RequestFailedError(_decode(body))
    raise UnknownResponseTypeError(f"unknown request status {status!r}")


def receive_file(transport: TCPServerTransport, path: str, output: BinaryIO) -> None:
    """Copy the file at ``path`` on the device into ``output``.

    The transport must already be switched to the target device.
    """
    _enter_sync(transport, "RECV", path)

    while True:
        header = transport.read_exact(4)
        if header == b"DATA":
            length = transport.get_body_length()
            output.write(transport.read_exact(length))
        elif header == b"DONE":
            break
        elif header == b"FAIL":
            length = transport.get_body_length()
            message = transport.read_exact(length).decode("utf-8", errors="replace")
            raise RequestFailedError(message)
        else:
            raise UnknownResponseTypeError(f"unknown response from device {header!r}")

    flush = getattr(output, "flush", None)
    if flush is not None:
        flush()


def list_directory(transport: TCPServerTransport, path: str) -> List[str]:
    """List the names of the entries in directory ``path`` on the device.

    The transport must already be switched to the target device. Unknown
    responses are logged and skipped.
    """
    _enter_sync(transport, "LIST", path)

    names: List[str] = []
    while True:
        response = transport.read_exact(4)
        if response == b"DENT":
            _mode, _size, _mtime, name_len = struct.unpack(
                "<IIII", transport.read_exact(16)
            )
            raw_name = transport.read_exact(name_len)
            names.append(raw_name.decode("utf-8", errors="replace"))
        elif response == b"DONE":
            return names
        else:
            log.error("Got an unknown response %r", response)