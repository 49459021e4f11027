import json

import pytest

from usbsetup.core import device
from usbsetup.core.exceptions import DeviceDetectionError, UserCancelledError
from conftest import destructive_commands


def answers(*values):
    queue = list(values)
    return lambda prompt: queue.pop(0)


def test_list_removable_devices_keeps_usb_and_removable(runner):
    runner.respond(["lsblk", "-J"], stdout=json.dumps({"blockdevices": [
        {"name": "sda", "size": "1T", "type": "disk", "model": "HDD", "tran": "sata", "rm": False},
        {"name": "sdb", "size": "115G", "type": "disk", "model": "Stick", "tran": "usb", "rm": False},
        {"name": "sdc", "size": "32G", "type": "disk", "model": "Card", "tran": None, "rm": "1"},
        {"name": "sr0", "size": "1024M", "type": "rom", "model": "DVD", "tran": "usb", "rm": True},
    ]}))

    devices = device.list_removable_devices(runner)

    assert [d["name"] for d in devices] == ["sdb", "sdc"]
    assert devices[1]["removable"] is True


def test_no_removable_device_fails(runner):
    runner.respond(["lsblk", "-J"], stdout=json.dumps({"blockdevices": [
        {"name": "sda", "size": "1T", "type": "disk", "model": "HDD", "tran": "sata", "rm": False},
    ]}))

    with pytest.raises(DeviceDetectionError, match="No removable device"):
        device.list_removable_devices(runner)


def test_lsblk_failure_is_a_detection_error(runner):
    runner.respond(["lsblk", "-J"], returncode=32)

    with pytest.raises(DeviceDetectionError):
        device.list_removable_devices(runner)


@pytest.mark.parametrize("raw, expected", [
    ("sdb", "sdb"),
    ("  sdc\n", "sdc"),
    ("/dev/sdb", "devsdb"),
    ("SDB", ""),
    ("sd-b1", "sdb"),
])
def test_normalize_device_name(raw, expected):
    assert device.normalize_device_name(raw) == expected


@pytest.mark.parametrize("name", ["", "sd", "sda1", "sdab", "hda", "nvmen", "devsdb", "xsdb"])
def test_validate_device_name_rejects(name):
    with pytest.raises(DeviceDetectionError, match="Invalid device name"):
        device.validate_device_name(name)


def test_validate_device_name_accepts():
    assert device.validate_device_name("sdz") == "/dev/sdz"


@pytest.mark.parametrize("answer", ["", "N", "n", "yes", "no", "YY", "maybe", " "])
def test_confirmation_refusals(answer):
    with pytest.raises(UserCancelledError):
        device.confirm_destruction("/dev/sdb", answers(answer))


@pytest.mark.parametrize("answer", ["Y", "y", " y \n"])
def test_confirmation_accepts_only_y(answer):
    device.confirm_destruction("/dev/sdb", answers(answer))


def test_device_busy_when_held_open(runner):
    runner.respond(["lsof"], returncode=0, stdout="bash 1234 root /dev/sdb")
    assert device.is_device_busy("/dev/sdb", runner)


def test_device_busy_when_partition_mounted(runner):
    runner.respond(["mount"], stdout="/dev/sda2 on / type ext4 (rw)\n/dev/sdb1 on /media/key type vfat (rw)\n")
    assert device.is_device_busy("/dev/sdb", runner)


def test_device_not_busy_when_other_device_mounted(runner):
    runner.respond(["mount"], stdout="/dev/sdbb1 on /mnt type ext4 (rw)\n/dev/sda1 on / type ext4 (rw)\n")
    assert not device.is_device_busy("/dev/sdb", runner)


def test_missing_lsof_only_checks_mounts(runner):
    runner.respond(["lsof"], raises=FileNotFoundError("lsof"))
    assert not device.is_device_busy("/dev/sdb", runner)


def test_select_device_success(runner, session):
    session.device = None

    selected = device.select_device(session, runner, answers("sdb", "Y"))

    assert selected == "/dev/sdb"
    assert session.device == "/dev/sdb"
    assert destructive_commands(runner) == []


@pytest.mark.parametrize("typed", ["sda1", "", "sdbc", "hdb", "1"])
def test_select_device_invalid_name_issues_nothing_destructive(runner, session, typed):
    session.device = None

    with pytest.raises(DeviceDetectionError):
        device.select_device(session, runner, answers(typed, "Y"))

    assert session.device is None
    assert destructive_commands(runner) == []


def test_select_device_not_found(runner, session):
    session.device = None
    runner.respond(["lsblk", "/dev/sdc"], returncode=32)

    with pytest.raises(DeviceDetectionError, match="Device not found: /dev/sdc"):
        device.select_device(session, runner, answers("sdc", "Y"))
    assert session.device is None


def test_select_device_busy(runner, session):
    session.device = None
    runner.respond(["mount"], stdout="/dev/sdb2 on /media/data type exfat (rw)\n")

    with pytest.raises(DeviceDetectionError, match="currently in use"):
        device.select_device(session, runner, answers("sdb", "Y"))
    assert session.device is None


def test_select_device_cancelled(runner, session):
    session.device = None

    with pytest.raises(UserCancelledError):
        device.select_device(session, runner, answers("sdb", "n"))
    assert session.device is None
    assert destructive_commands(runner) == []


def test_device_busy_when_partition_held_by_mapping(runner):
    runner.respond(["lsblk", "-n"], stdout="sdb disk\nsdb1 part\nsdb3 part\nsecure_usb crypt\nsdb4 part\n")
    assert device.is_device_busy("/dev/sdb", runner)


def test_device_not_busy_with_plain_partitions(runner):
    runner.respond(["lsblk", "-n"], stdout="sdb disk\nsdb1 part\nsdb2 part\n")
    assert not device.is_device_busy("/dev/sdb", runner)


def test_select_device_rejects_leftover_mapping(runner, session):
    session.device = None
    runner.respond(["lsblk", "-n"], stdout="sdb disk\nsdb3 part\nsecure_usb crypt\n")

    with pytest.raises(DeviceDetectionError, match="currently in use"):
        device.select_device(session, runner, answers("sdb", "Y"))
    assert destructive_commands(runner) == []
