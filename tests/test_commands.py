"""Tests for service request builders."""

import pytest

from adb_host_mcp.protocol.commands import (
    Service,
    build_connect,
    build_disconnect,
    build_forward,
    build_install,
    build_kill_forward,
    build_kill_forward_all,
    build_list_forward,
    build_logcat,
    build_reboot,
    build_shell,
    build_transport,
)


def test_service_names():
    """Fixed service names match the wire strings exactly."""
    assert Service.VERSION == "host:version"
    assert Service.KILL == "host:kill"
    assert Service.DEVICES == "host:devices-l"
    assert Service.ROOT == "root:"
    assert Service.UNROOT == "unroot:"


def test_build_transport():
    assert build_transport("emulator-5554") == "host:transport:emulator-5554"


def test_build_transport_requires_serial():
    with pytest.raises(ValueError):
        build_transport("")


def test_build_connect_disconnect():
    assert build_connect("192.168.1.10", 5555) == "host:connect:192.168.1.10:5555"
    assert build_disconnect("192.168.1.10", 5555) == "host:disconnect:192.168.1.10:5555"


def test_build_connect_port_bounds():
    with pytest.raises(ValueError):
        build_connect("host", 0)
    with pytest.raises(ValueError):
        build_connect("host", 65536)


def test_build_forward():
    assert (
        build_forward("abc", "tcp:8080", "tcp:80")
        == "host-serial:abc:forward:tcp:8080;tcp:80"
    )


def test_build_forward_norebind():
    assert (
        build_forward("abc", "tcp:8080", "localabstract:x", allow_rebind=False)
        == "host-serial:abc:forward:norebind:tcp:8080;localabstract:x"
    )


def test_build_forward_requires_both_sides():
    with pytest.raises(ValueError):
        build_forward("abc", "", "tcp:80")


def test_build_kill_forward():
    assert build_kill_forward("abc", 8080) == "host-serial:abc:killforward:tcp:8080"
    assert build_kill_forward_all("abc") == "host-serial:abc:killforward-all"
    assert build_list_forward("abc") == "host-serial:abc:list-forward"


def test_build_shell_and_reboot():
    assert build_shell("ls -l /") == "shell:ls -l /"
    assert build_reboot() == "reboot:"
    assert build_reboot("bootloader") == "reboot:bootloader"


def test_build_logcat():
    """One -b switch per buffer, names lower-cased."""
    assert build_logcat([]) == "shell:logcat -B"
    assert build_logcat(["MAIN", "System"]) == "shell:logcat -B -b main -b system"


def test_build_install_size_last():
    """The -S switch is always appended last."""
    assert build_install(1234) == "exec:cmd package -S 1234"
    assert (
        build_install(1234, ["install", "-S", "99", "-r"])
        == "exec:cmd package install -S 99 -r -S 1234"
    )


def test_build_install_negative_length():
    with pytest.raises(ValueError):
        build_install(-1)
