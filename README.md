# adbwire

A pure Python client for the Android Debug Bridge (ADB) server protocol.
It talks over TCP to an `adb` server that is already running, and works
with one device through it: shell commands, file transfer, package
installation and port forwarding. It also decodes some of the server's
replies.

It has no dependencies outside the standard library.

## Installation

```
pip install adbwire
```

## Working with a device

`adbwire.server_device.ADBServerDevice` addresses one device through the
server. The server address defaults to `("127.0.0.1", 5037)`.

```python
import io
from adbwire.server_device import ADBServerDevice

# Route every request to the device with this identifier...
device = ADBServerDevice("emulator-5554", ("127.0.0.1", 5037))
# ...or let the server pick the only device connected.
device = ADBServerDevice.autodetect()

with device:
    print(device.host_features())          # e.g. ['shell_v2', 'cmd', ...]

    # Output is returned when no stream is given...
    print(device.shell_command(["ls", "/sdcard"]).decode())
    # ...or written to the given stream.
    out = io.BytesIO()
    device.shell_command("getprop ro.product.model", out)

    with open("notes.txt", "rb") as source:
        device.push(source, "/data/local/tmp/notes.txt")
    with open("copy.txt", "wb") as target:
        device.pull("/data/local/tmp/notes.txt", target)
    print(device.list("/data/local/tmp"))  # entry names

    device.install("app.apk")              # only files with no extension or .apk
    device.uninstall("com.example.app")

    device.forward("tcp:8080", "tcp:8080")
    device.forward_remove_all()
    device.reverse("tcp:9000", "tcp:9000")
    device.reverse_remove_all()
```

Other methods: `reconnect()`, `tcpip(port)`, `usb()`, `transport_any()`,
`shell(reader, writer)` for an interactive session (it returns the
background thread that copies the device's output to `writer`), and
`get_logs(output)`, which streams `logcat` output into `output` one
complete line at a time through `adbwire.logcat.LogFilter`.

Running a shell command requires the server to report the `shell_v2` or
`cmd` feature; otherwise `ShellNotSupportedError` is raised.

## Lower-level pieces

- `adbwire.transport.TCPServerTransport`: the framed request/response
  connection (`send_adb_request`, `proxy_connection`, `read_adb_response`,
  `read_exact`, `write_all`, ...). It can be used as a context manager.
- `adbwire.sync`: `send_file`, `receive_file` and `list_directory` over the
  sync protocol, on a transport already switched to a device.
- `adbwire.info`: parsers for server replies:
  `parse_adb_version(b"0029")` gives `AdbVersion` `1.0.41`;
  `parse_mdns_service` reads one `name<TAB>type<TAB>ip:port` line into
  `MDNSServices`; `parse_server_status` decodes the protobuf status message
  into `ServerStatus` with `UsbBackend` and `MDNSBackend` values.

## Errors

Failures are raised as subclasses of `adbwire.errors.AdbError`:
`RequestFailedError` (the server or device answered with a failure),
`ParseError`, `ShellNotSupportedError`, `UnknownResponseTypeError`,
`WrongFileExtensionError` and others. Network problems surface as the usual
`OSError`/`ConnectionError`, and a stream that ends early as `EOFError`.

## What this package does not do

- There is no server-level client: the package cannot list the devices
  connected to the server, track them, start or kill the `adb` server,
  connect, disconnect or pair network devices, or wait for a device. You
  need to know the device's identifier, or have exactly one device
  connected and use `ADBServerDevice.autodetect()`.
- It does not talk to devices directly over USB or TCP; everything goes
  through a running `adb` server.
- There is no command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```