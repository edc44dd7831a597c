from pathlib import Path

import pytest

from adbwire.errors import (
    AdbError,
    ParseError,
    RequestFailedError,
    UnknownDeviceStateError,
    UnknownTransportError,
    WrongFileExtensionError,
    check_extension_is_apk,
)


@pytest.mark.parametrize(
    "path",
    ["app.apk", "dir/app.apk", "no_extension", "dir/.apk", Path("nested/dir/base.apk")],
)
def test_accepted_paths_are_returned(path):
    assert check_extension_is_apk(path) == Path(path)


def test_other_extension_is_rejected_with_message():
    with pytest.raises(WrongFileExtensionError, match="^txt is not an APK file$"):
        check_extension_is_apk("notes.txt")


def test_extension_check_is_case_sensitive():
    with pytest.raises(WrongFileExtensionError, match="^APK is not an APK file$"):
        check_extension_is_apk("app.APK")


def test_only_last_extension_counts():
    with pytest.raises(WrongFileExtensionError, match="^bak is not an APK file"):
        check_extension_is_apk("app.apk.bak")


def test_wrong_extension_is_an_adb_error():
    with pytest.raises(AdbError):
        check_extension_is_apk("archive.zip")


def test_request_failed_keeps_message():
    err = RequestFailedError("device offline")
    assert err.message == "device offline"
    assert str(err) == "device offline"


def test_unknown_state_and_transport_keep_values():
    state_err = UnknownDeviceStateError("weird")
    transport_err = UnknownTransportError("carrier-pigeon")
    assert state_err.state == "weird"
    assert transport_err.transport == "carrier-pigeon"
    with pytest.raises(ParseError):
        raise state_err