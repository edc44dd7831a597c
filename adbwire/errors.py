"""Exceptions raised by the ADB client, and small validation helpers."""

from __future__ import annotations

import os
from pathlib import Path, PurePath


class AdbError(Exception):
    """Base class for every error raised by this package."""


class RequestFailedError(AdbError):
    """The ADB server or device answered a request with a failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DeviceNotFoundError(AdbError):
    """No device, or more than one device, matched the request."""


class ParseError(AdbError, ValueError):
    """A response from the server could not be decoded."""


class UnknownDeviceStateError(ParseError):
    """A device reported a connection state that is not known."""

    def __init__(self, state: str) -> None:
        super().__init__(f"unknown device state: {state!r}")
        self.state = state


class UnknownTransportError(ParseError):
    """A transport name is not one of ``usb``, ``local`` or ``any``."""

    def __init__(self, transport: str) -> None:
        super().__init__(f"unknown transport: {transport!r}")
        self.transport = transport


class WrongFileExtensionError(AdbError, ValueError):
    """A file does not carry the extension the operation requires."""


class ShellNotSupportedError(AdbError):
    """The server supports neither the ``shell_v2`` nor the ``cmd`` feature."""

    def __init__(self, message: str = "shell is not supported by this ADB server") -> None:
        super().__init__(message)


class UnknownResponseTypeError(AdbError):
    """The server sent a response of a type that was not expected."""


def _extension(name: str) -> str | None:
    """Return the extension of a file name, or None when it has none."""
    if name == "..":
        return None
    index = name.rfind(".")
    if index <= 0:
        return None
    return name[index + 1 :]


def check_extension_is_apk(path: str | os.PathLike[str]) -> Path:
    """Check that ``path`` has no extension or the ``apk`` extension.

    Returns the path as a :class:`~pathlib.Path`; raises
    :class:`WrongFileExtensionError` for any other extension.
    """
    extension = _extension(PurePath(path).name)
    if extension is not None and extension != "apk":
        raise WrongFileExtensionError(f"{extension} is not an APK file")
    return Path(path)