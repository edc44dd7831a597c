"""Server information: version, mDNS services and server status."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

from .errors import ParseError

_HEX_RE = re.compile(r"\+?[0-9a-fA-F]+\Z")
_MDNS_RE = re.compile(r"^(\S+)\t(\S+)\t([\d.]+:\d+)\n?\Z")


def _decode(data: bytes | str) -> str:
    if isinstance(data, str):
        return data
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"invalid UTF-8: {exc}") from exc


def _parse_hex(text: str) -> int:
    if not _HEX_RE.match(text):
        raise ParseError(f"invalid hexadecimal number: {text!r}")
    return int(text.lstrip("+"), 16)


@dataclass(frozen=True)
class AdbVersion:
    """Version of the ADB server."""

    major: int
    minor: int
    revision: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision}"


def parse_adb_version(data: bytes | str) -> AdbVersion:
    """Parse the four hexadecimal digits answered to ``host:version``."""
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if len(raw) < 4:
        raise ParseError(f"version reply too short: {raw!r}")
    minor = _parse_hex(_decode(raw[0:2]))
    revision = _parse_hex(_decode(raw[2:4]))
    return AdbVersion(major=1, minor=minor, revision=revision)


@dataclass(frozen=True)
class MDNSServices:
    """A service discovered over mDNS by the ADB server."""

    service_name: str
    reg_type: str
    ip: ipaddress.IPv4Address
    port: int

    @property
    def socket_v4(self) -> str:
        return f"{self.ip}:{self.port}"

    def __str__(self) -> str:
        return f"{self.service_name}\t{self.reg_type}\t{self.socket_v4}"


def parse_mdns_service(data: bytes | str) -> MDNSServices:
    """Parse one ``name<TAB>type<TAB>ip:port`` line."""
    text = _decode(data)
    match = _MDNS_RE.match(text)
    if match is None:
        raise ParseError(f"cannot parse mdns service: {text!r}")
    host, _, port_text = match[3].rpartition(":")
    try:
        ip = ipaddress.IPv4Address(host)
    except ValueError as exc:
        raise ParseError(f"invalid IPv4 address: {host!r}") from exc
    port = int(port_text)
    if port > 0xFFFF:
        raise ParseError(f"invalid port: {port_text!r}")
    return MDNSServices(service_name=match[1], reg_type=match[2], ip=ip, port=port)


class UsbBackend(IntEnum):
    """USB backend used by the server."""

    UNKNOWN = 0
    NATIVE = 1
    LIBUSB = 2

    @classmethod
    def from_value(cls, value: int) -> UsbBackend:
        """Map a numeric value, falling back to ``UNKNOWN``."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_name(cls, name: str) -> UsbBackend:
        """Map a label such as ``LIBUSB``, falling back to ``UNKNOWN``."""
        return next((b for b in cls if _USB_LABELS[b] == name), cls.UNKNOWN)

    def __str__(self) -> str:
        return _USB_LABELS[self]


_USB_LABELS = {
    UsbBackend.UNKNOWN: "UNKNOWN_USB",
    UsbBackend.NATIVE: "NATIVE",
    UsbBackend.LIBUSB: "LIBUSB",
}


class MDNSBackend(IntEnum):
    """mDNS backend used by the server."""

    UNKNOWN = 0
    BONJOUR = 1
    OPENSCREEN = 2

    @classmethod
    def from_value(cls, value: int) -> MDNSBackend:
        """Map a numeric value, falling back to ``UNKNOWN``."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_name(cls, name: str) -> MDNSBackend:
        """Map a label such as ``OPENSCREEN``, falling back to ``UNKNOWN``."""
        return next((b for b in cls if _MDNS_LABELS[b] == name), cls.UNKNOWN)

    def __str__(self) -> str:
        return _MDNS_LABELS[self]


_MDNS_LABELS = {
    MDNSBackend.UNKNOWN: "UNKNOWN_MDNS",
    MDNSBackend.BONJOUR: "BONJOUR",
    MDNSBackend.OPENSCREEN: "OPENSCREEN",
}


@dataclass
class ServerStatus:
    """Status reported by the server in reply to ``host:server-status``."""

    usb_backend: UsbBackend = UsbBackend.UNKNOWN
    usb_backend_forced: bool = False
    mdns_backend: MDNSBackend = MDNSBackend.UNKNOWN
    mdns_backend_forced: bool = False
    version: str = ""
    build: str = ""
    executable_absolute_path: str = ""
    log_absolute_path: str = ""
    os: str = ""

    def __str__(self) -> str:
        lines = [f"usb_backend: {self.usb_backend}"]
        if self.usb_backend_forced:
            lines.append("usb_backend_forced: true")
        lines.append(f"mdns_backend: {self.mdns_backend}")
        if self.mdns_backend_forced:
            lines.append("mdns_backend_forced: true")
        lines += [
            f'version: "{self.version}"',
            f'build: "{self.build}"',
            f'executable_absolute_path: "{self.executable_absolute_path}"',
            f'log_absolute_path: "{self.log_absolute_path}"',
            f'os: "{self.os}"',
        ]
        return "\n".join(lines) + "\n"


class _ProtoReader:
    """Minimal protobuf wire-format reader."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def varint(self) -> int:
        result = 0
        for shift in range(0, 70, 7):
            if self.pos >= len(self.data):
                raise ParseError("truncated varint in server status")
            byte = self.data[self.pos]
            self.pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
        raise ParseError("varint too long in server status")

    def int32(self) -> int:
        value = self.varint() & 0xFFFFFFFF
        return value - (1 << 32) if value >= 1 << 31 else value

    def boolean(self) -> bool:
        return (self.varint() & 0xFFFFFFFF) != 0

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise ParseError("truncated field in server status")
        chunk = self.data[self.pos : end]
        self.pos = end
        return chunk

    def string(self) -> str:
        raw = self.take(self.varint())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("invalid UTF-8 in server status") from exc

    def skip(self, tag: int) -> None:
        wire_type = tag & 0x7
        if wire_type == 0:
            self.varint()
        elif wire_type == 1:
            self.take(8)
        elif wire_type == 2:
            self.take(self.varint())
        elif wire_type == 5:
            self.take(4)
        else:
            raise ParseError(f"unsupported wire type {wire_type} in server status")


_FIELDS: dict[int, tuple[str, Callable[[_ProtoReader], object]]] = {
    8: ("usb_backend", lambda r: UsbBackend.from_value(r.int32())),
    16: ("usb_backend_forced", _ProtoReader.boolean),
    24: ("mdns_backend", lambda r: MDNSBackend.from_value(r.int32())),
    32: ("mdns_backend_forced", _ProtoReader.boolean),
    42: ("version", _ProtoReader.string),
    50: ("build", _ProtoReader.string),
    58: ("executable_absolute_path", _ProtoReader.string),
    66: ("log_absolute_path", _ProtoReader.string),
    74: ("os", _ProtoReader.string),
}


def parse_server_status(data: bytes) -> ServerStatus:
    """Decode the protobuf-encoded server status message."""
    reader = _ProtoReader(bytes(data))
    status = ServerStatus()
    while not reader.at_end():
        tag = reader.varint() & 0xFFFFFFFF
        field = _FIELDS.get(tag)
        if field is None:
            reader.skip(tag)
            continue
        name, read = field
        setattr(status, name, read(reader))
    return status