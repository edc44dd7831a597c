"""A device reached through the ADB server."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Union

from .errors import (
    ParseError,
    RequestFailedError,
    ShellNotSupportedError,
    check_extension_is_apk,
)
from .logcat import LogFilter
from .sync import BUFFER_SIZE, list_directory, receive_file, send_file
from .transport import Address, TCPServerTransport

log = logging.getLogger(__name__)

FEATURE_SHELL_V2 = "shell_v2"
FEATURE_CMD = "cmd"
SUCCESS_REPLY = b"Success\n"


def _shell_request(command: str) -> str:
    term = os.environ.get("TERM")
    if term is not None:
        return f"shell,TERM={term},raw:{command}"
    return f"shell,raw:{command}"


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"invalid UTF-8 in device reply: {data!r}") from exc


class ADBServerDevice:
    """A device connected to the ADB server.

    With an ``identifier`` every request is routed to that device; without
    one the server picks the only device connected.
    """

    def __init__(
        self, identifier: Optional[str] = None, server_address: Optional[Address] = None
    ) -> None:
        self.identifier = identifier
        self.transport = TCPServerTransport(server_address)

    @classmethod
    def autodetect(cls, server_address: Optional[Address] = None) -> ADBServerDevice:
        """Address whichever single device is currently connected."""
        return cls(None, server_address)

    def __enter__(self) -> ADBServerDevice:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ADBServerDevice(identifier={self.identifier!r}, address={self.transport.address!r})"

    def close(self) -> None:
        """Close the connection to the server, ignoring errors."""
        try:
            self.transport.disconnect()
        except OSError:
            pass

    def _connect(self) -> TCPServerTransport:
        self.transport.connect()
        return self.transport

    def _set_serial_transport(self) -> TCPServerTransport:
        transport = self._connect()
        if self.identifier is not None:
            transport.send_adb_request(f"host:transport:{self.identifier}")
        else:
            transport.send_adb_request("host:transport-any")
        return transport

    def _simple_request(self, command: str) -> None:
        self._set_serial_transport().proxy_connection(command, False)

    def host_features(self) -> List[str]:
        """List the feature names the server supports for this device."""
        body = self._set_serial_transport().proxy_connection("host:features", True)
        return [name for name in _decode(body).split(",") if name]

    def _require_shell(self) -> None:
        features = self.host_features()
        if FEATURE_SHELL_V2 not in features and FEATURE_CMD not in features:
            raise ShellNotSupportedError()

    def shell_command(
        self, command: Union[str, Iterable[str]], output: Optional[BinaryIO] = None
    ) -> Optional[bytes]:
        """Run a shell command, stdout and stderr merged.

        The output is written to ``output``; when none is given it is
        collected and returned.
        """
        self._require_shell()
        text = command if isinstance(command, str) else " ".join(command)
        transport = self._set_serial_transport()
        transport.send_adb_request(_shell_request(text))

        collected = bytearray()
        while chunk := transport.read(BUFFER_SIZE):
            if output is None:
                collected += chunk
            else:
                output.write(chunk)
        return bytes(collected) if output is None else None

    def shell(self, reader: BinaryIO, writer: BinaryIO) -> threading.Thread:
        """Start an interactive shell.

        Everything read from ``reader`` is sent to the device, and a
        background thread writes the device's output to ``writer``. Returns
        once ``reader`` is exhausted; the returned thread ends when the
        device closes the session.
        """
        self._require_shell()
        transport = self._set_serial_transport()
        transport.send_adb_request(_shell_request(""))

        def pump_output() -> None:
            try:
                while chunk := transport.read(BUFFER_SIZE):
                    writer.write(chunk)
                    writer.flush()
            except OSError as exc:
                log.error("error while reading shell output: %s", exc)
            finally:
                transport.disconnect()

        thread = threading.Thread(target=pump_output, name="adb-shell-output", daemon=True)
        thread.start()

        try:
            while data := reader.read(BUFFER_SIZE):
                transport.write_all(data)
        except BrokenPipeError:
            pass
        except ConnectionError:
            if transport.connected:
                raise
        return thread

    def push(self, stream: BinaryIO, path: str) -> None:
        """Send ``stream`` to ``path`` on the device."""
        send_file(self._set_serial_transport(), stream, path)

    def pull(self, path: str, output: BinaryIO) -> None:
        """Copy the file at ``path`` on the device into ``output``."""
        receive_file(self._set_serial_transport(), path, output)

    def list(self, path: str) -> List[str]:
        """List the entries of directory ``path`` on the device."""
        return list_directory(self._set_serial_transport(), path)

    def install(self, apk_path: Union[str, os.PathLike]) -> None:
        """Install an APK file on the device."""
        with open(apk_path, "rb") as apk_file:
            check_extension_is_apk(apk_path)
            size = os.fstat(apk_file.fileno()).st_size

            transport = self._set_serial_transport()
            transport.send_adb_request(f"exec:cmd package 'install' -S {size}")
            while chunk := apk_file.read(BUFFER_SIZE):
                transport.write_all(chunk)

        reply = transport.read(1024)
        if reply != SUCCESS_REPLY:
            raise RequestFailedError(_decode(reply))
        log.info("APK file %s successfully installed", Path(apk_path))

    def uninstall(self, package_name: str) -> None:
        """Uninstall a package from the device."""
        transport = self._set_serial_transport()
        transport.send_adb_request(f"exec:cmd package 'uninstall' {package_name}")
        reply = transport.read(1024)
        if reply != SUCCESS_REPLY:
            raise RequestFailedError(_decode(reply))
        log.info("Package %s successfully uninstalled", package_name)

    def forward(self, remote: str, local: str) -> None:
        """Forward the host socket ``local`` to ``remote`` on the device."""
        self._simple_request(f"host:forward:{local};{remote}")

    def forward_remove_all(self) -> None:
        """Remove every forward rule."""
        self._simple_request("host:killforward-all")

    def reverse(self, remote: str, local: str) -> None:
        """Forward the device socket ``remote`` to ``local`` on the host."""
        self._simple_request(f"reverse:forward:{remote};{local}")

    def reverse_remove_all(self) -> None:
        """Remove every reverse rule."""
        self._simple_request("reverse:killforward-all")

    def reconnect(self) -> None:
        """Ask the server to reconnect the device."""
        self._simple_request("reconnect")

    def tcpip(self, port: int) -> None:
        """Restart the device daemon listening on TCP ``port``."""
        self._simple_request(f"tcpip:{int(port)}")

    def usb(self) -> None:
        """Restart the device daemon listening on USB."""
        self._simple_request("usb:")

    def transport_any(self) -> None:
        """Switch the connection to the only device or emulator available."""
        self._connect().proxy_connection("host:transport-any", False)

    def get_logs(self, output: BinaryIO) -> None:
        """Stream the device log, line by line, into ``output``."""
        self.shell_command(["exec logcat"], LogFilter(output))