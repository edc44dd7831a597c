import io
import socket
import struct
import threading

import pytest

from adbwire.errors import (
    RequestFailedError,
    ShellNotSupportedError,
    WrongFileExtensionError,
)
from adbwire.server_device import ADBServerDevice

SERIAL = "serial-0001"


def recv_exact(conn, size):
    data = bytearray()
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            raise EOFError("client closed")
        data += chunk
    return bytes(data)


class FakeServer:
    def __init__(self, *handlers):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen()
        self.sock.settimeout(5)
        self.address = self.sock.getsockname()
        self.requests = []
        self.received = {}
        self.error = None
        self.thread = threading.Thread(target=self._run, args=(handlers,), daemon=True)
        self.thread.start()

    def _run(self, handlers):
        try:
            for handler in handlers:
                conn, _ = self.sock.accept()
                conn.settimeout(5)
                with conn:
                    handler(self, conn)
        except Exception as exc:
            self.error = exc

    def request(self, conn):
        length = int(recv_exact(conn, 4), 16)
        text = recv_exact(conn, length).decode()
        self.requests.append(text)
        return text

    def finish(self):
        self.thread.join(5)
        self.sock.close()
        if self.error is not None:
            raise self.error


def transport_ok(server, conn):
    server.request(conn)
    conn.sendall(b"OKAY")


def with_response(body):
    def handler(server, conn):
        transport_ok(server, conn)
        server.request(conn)
        conn.sendall(b"OKAY" + f"{len(body):04x}".encode() + body)

    return handler


def no_response(server, conn):
    transport_ok(server, conn)
    server.request(conn)
    conn.sendall(b"OKAY")


def shell_output(data):
    def handler(server, conn):
        transport_ok(server, conn)
        server.request(conn)
        conn.sendall(b"OKAY" + data)

    return handler


def test_serial_transport_uses_identifier():
    server = FakeServer(no_response)
    device = ADBServerDevice(SERIAL, server.address)
    device.reconnect()
    device.close()
    server.finish()
    assert server.requests[0] == "host:transport:" + SERIAL
    assert server.requests[1] == "reconnect"


def test_autodetect_uses_any_transport():
    server = FakeServer(no_response)
    device = ADBServerDevice.autodetect(server.address)
    device.usb()
    device.close()
    server.finish()
    assert device.identifier is None
    assert server.requests[0] == "host:transport-any"


def test_forward_carries_both_endpoints():
    server = FakeServer(no_response)
    with ADBServerDevice(SERIAL, server.address) as device:
        device.forward("tcp:7001", "tcp:7002")
    server.finish()
    request = server.requests[1]
    assert request.startswith("host:forward:")
    assert "tcp:7001" in request and "tcp:7002" in request


def test_reverse_carries_both_endpoints():
    server = FakeServer(no_response)
    with ADBServerDevice(SERIAL, server.address) as device:
        device.reverse("tcp:7001", "tcp:7002")
    server.finish()
    request = server.requests[1]
    assert request.startswith("reverse:")
    assert "tcp:7001" in request and "tcp:7002" in request


def test_tcpip_sends_port():
    server = FakeServer(no_response)
    with ADBServerDevice(SERIAL, server.address) as device:
        device.tcpip(5555)
    server.finish()
    assert server.requests[1].endswith("5555")


def test_request_failure_raises_with_message():
    def failing(server, conn):
        transport_ok(server, conn)
        server.request(conn)
        message = b"no such device"
        conn.sendall(b"FAIL" + f"{len(message):04x}".encode() + message)

    server = FakeServer(failing)
    with ADBServerDevice(SERIAL, server.address) as device:
        with pytest.raises(RequestFailedError) as info:
            device.forward_remove_all()
    server.finish()
    assert info.value.message == "no such device"


def test_host_features_lists_names():
    server = FakeServer(with_response(b"shell_v2,cmd,abb"))
    with ADBServerDevice(SERIAL, server.address) as device:
        features = device.host_features()
    server.finish()
    assert features == ["shell_v2", "cmd", "abb"]


def test_shell_command_returns_output():
    data = b"hello\nworld\n"
    server = FakeServer(with_response(b"shell_v2"), shell_output(data))
    with ADBServerDevice(SERIAL, server.address) as device:
        result = device.shell_command(["echo", "hello"])
    server.finish()
    assert result == data
    assert server.requests[-1].endswith(":echo hello")


def test_shell_command_writes_to_output():
    data = b"line one\n"
    server = FakeServer(with_response(b"cmd"), shell_output(data))
    output = io.BytesIO()
    with ADBServerDevice(SERIAL, server.address) as device:
        result = device.shell_command("ls", output)
    server.finish()
    assert result is None
    assert output.getvalue() == data


def test_shell_command_requires_feature():
    server = FakeServer(with_response(b"abb,apex"))
    with ADBServerDevice(SERIAL, server.address) as device:
        with pytest.raises(ShellNotSupportedError):
            device.shell_command(["ls"])
    server.finish()


def test_get_logs_holds_back_partial_line():
    server = FakeServer(with_response(b"shell_v2"), shell_output(b"a\nb\npartial"))
    output = io.BytesIO()
    with ADBServerDevice(SERIAL, server.address) as device:
        device.get_logs(output)
    server.finish()
    assert output.getvalue() == b"a\nb\n"
    assert "exec logcat" in server.requests[-1]


def test_interactive_shell_round_trip():
    def session(server, conn):
        transport_ok(server, conn)
        server.request(conn)
        conn.sendall(b"OKAY")
        server.received["input"] = recv_exact(conn, 3)
        conn.sendall(b"out\n")

    server = FakeServer(with_response(b"shell_v2"), session)
    writer = io.BytesIO()
    device = ADBServerDevice(SERIAL, server.address)
    thread = device.shell(io.BytesIO(b"ls\n"), writer)
    thread.join(5)
    server.finish()
    assert server.received["input"] == b"ls\n"
    assert writer.getvalue() == b"out\n"


def test_uninstall_success_and_failure():
    def reply(body):
        def handler(server, conn):
            transport_ok(server, conn)
            server.request(conn)
            conn.sendall(b"OKAY" + body)

        return handler

    server = FakeServer(reply(b"Success\n"), reply(b"Failure [DELETE_FAILED]\n"))
    with ADBServerDevice(SERIAL, server.address) as device:
        device.uninstall("com.example.app")
        with pytest.raises(RequestFailedError) as info:
            device.uninstall("com.example.app")
    server.finish()
    assert info.value.message == "Failure [DELETE_FAILED]\n"
    assert server.requests[1].endswith("com.example.app")


def test_install_sends_file(tmp_path):
    apk = tmp_path / "app.apk"
    content = bytes(range(256)) * 10
    apk.write_bytes(content)

    def handler(server, conn):
        transport_ok(server, conn)
        request = server.request(conn)
        size = int(request.rsplit(" ", 1)[1])
        conn.sendall(b"OKAY")
        server.received["apk"] = recv_exact(conn, size)
        conn.sendall(b"Success\n")

    server = FakeServer(handler)
    with ADBServerDevice(SERIAL, server.address) as device:
        device.install(apk)
    server.finish()
    assert server.received["apk"] == content


def test_install_rejects_other_extension(tmp_path):
    other = tmp_path / "app.txt"
    other.write_bytes(b"data")
    device = ADBServerDevice(SERIAL, ("127.0.0.1", 1))
    with pytest.raises(WrongFileExtensionError):
        device.install(other)


def test_install_missing_file(tmp_path):
    device = ADBServerDevice(SERIAL, ("127.0.0.1", 1))
    with pytest.raises(FileNotFoundError):
        device.install(tmp_path / "missing.apk")


def test_push_then_pull_round_trip():
    content = bytes(range(200)) * 5
    remote = "/data/local/tmp/test_file"

    def push_handler(server, conn):
        transport_ok(server, conn)
        server.request(conn)
        conn.sendall(b"OKAY")
        assert recv_exact(conn, 4) == b"SEND"
        (length,) = struct.unpack("<I", recv_exact(conn, 4))
        server.received["send_path"] = recv_exact(conn, length).decode()
        stored = bytearray()
        while True:
            header = recv_exact(conn, 4)
            if header == b"DATA":
                (size,) = struct.unpack("<I", recv_exact(conn, 4))
                stored += recv_exact(conn, size)
            else:
                recv_exact(conn, 8)
                break
        server.received["file"] = bytes(stored)
        conn.sendall(b"OKAY")

    def pull_handler(server, conn):
        transport_ok(server, conn)
        server.request(conn)
        conn.sendall(b"OKAY")
        assert recv_exact(conn, 4) == b"RECV"
        (length,) = struct.unpack("<I", recv_exact(conn, 4))
        server.received["recv_path"] = recv_exact(conn, length).decode()
        data = server.received["file"]
        conn.sendall(b"DATA" + struct.pack("<I", len(data)) + data + b"DONE" + bytes(4))

    server = FakeServer(push_handler, pull_handler)
    output = io.BytesIO()
    with ADBServerDevice(SERIAL, server.address) as device:
        device.push(io.BytesIO(content), remote)
        device.pull(remote, output)
    server.finish()
    assert server.received["send_path"] == remote + ",0777"
    assert server.received["recv_path"] == remote
    assert output.getvalue() == content


def test_transport_any_does_not_switch_first():
    def handler(server, conn):
        server.request(conn)
        conn.sendall(b"OKAY")

    server = FakeServer(handler)
    with ADBServerDevice(SERIAL, server.address) as device:
        device.transport_any()
    server.finish()
    assert server.requests == ["host:transport-any"]


def test_close_drops_connection():
    server = FakeServer(no_response)
    device = ADBServerDevice(SERIAL, server.address)
    device.reverse_remove_all()
    assert device.transport.connected
    device.close()
    server.finish()
    assert not device.transport.connected