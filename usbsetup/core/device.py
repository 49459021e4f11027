"""
Device detection and selection module.

This module lists removable devices, reads and validates the target device
name and asks for the destructive confirmation. Nothing in here writes to a
device: it is the only safety gate before partitioning starts.
"""
import json
import logging
import re
import subprocess
from typing import Callable, List, Optional

from usbsetup.utils.command import CommandRunner
from usbsetup.utils.types import RemovableDevice, Session
from usbsetup.core.exceptions import DeviceDetectionError, UserCancelledError

logger = logging.getLogger('usbsetup')

DEVICE_NAME_PATTERN = re.compile(r"^sd[a-z]$")

DEVICE_PROMPT = "\nEnter the name of the USB device to be prepared (ex: sdx): "


def _is_removable(value) -> bool:
    # Depending on the util-linux version, lsblk reports RM as a bool or as "0"/"1"
    return value in (True, 1, "1", "true")


def list_removable_devices(cmd_runner: CommandRunner) -> List[RemovableDevice]:
    """
    List the block devices attached through USB or flagged as removable.

    Args:
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        List of removable devices

    Raises:
        DeviceDetectionError: If lsblk fails or no removable device is found
    """
    logger.info("Detecting USB devices...")

    try:
        result = cmd_runner.run(["lsblk", "-J", "-d", "-o", "NAME,SIZE,TYPE,MODEL,TRAN,RM"])
        entries = json.loads(result.stdout or "{}").get("blockdevices", [])
    except subprocess.CalledProcessError as e:
        raise DeviceDetectionError(f"Failed to list block devices: {e}")
    except ValueError as e:
        raise DeviceDetectionError(f"Could not parse lsblk output: {e}")

    devices: List[RemovableDevice] = []
    for entry in entries:
        tran = (entry.get("tran") or "").lower()
        removable = _is_removable(entry.get("rm"))
        if entry.get("type") != "disk" or not (tran == "usb" or removable):
            continue

        devices.append(RemovableDevice(
            name=entry.get("name") or "",
            size=entry.get("size") or "",
            type=entry.get("type") or "",
            model=(entry.get("model") or "").strip(),
            tran=tran,
            removable=removable,
        ))

    if not devices:
        raise DeviceDetectionError("No removable device detected.")

    for device in devices:
        logger.info(f"  {device['name']:<6} {device['size']:>8}  {device['tran'] or '-':<5} {device['model']}")

    return devices


def normalize_device_name(user_input: str) -> str:
    """Keep only the lowercase ASCII letters of the user input"""
    return re.sub(r"[^a-z]", "", user_input)


def validate_device_name(name: str) -> str:
    """
    Check a normalized device short-name against the sdX pattern.

    Returns:
        The full device path

    Raises:
        DeviceDetectionError: If the name is not exactly "sd" + one letter
    """
    if not DEVICE_NAME_PATTERN.match(name):
        raise DeviceDetectionError("Invalid device name.")
    return f"/dev/{name}"


def describe_device(device: str, cmd_runner: CommandRunner) -> Optional[str]:
    """
    Return the lsblk listing of the device, or None if lsblk does not know it.
    """
    result = cmd_runner.run(["lsblk", device], check=False)
    if result.returncode != 0:
        return None
    return result.stdout


def is_device_busy(device: str, cmd_runner: CommandRunner) -> bool:
    """
    Check whether the device is held open by a process, held by a
    device-mapper target, or is mounted.

    Mounted or mapped partitions of the device count as the device being in use.

    Args:
        device: Path to the device
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        True if the device is in use
    """
    try:
        # lsof exits 0 only when at least one process has the file open
        if cmd_runner.run(["lsof", device], check=False).returncode == 0:
            logger.debug(f"{device} is held open by another process")
            return True
    except FileNotFoundError:
        logger.debug("lsof not available, skipping open file detection")

    # Device-mapper holders (e.g. a LUKS mapping left open) show up as children
    # of another type than disk or part
    result = cmd_runner.run(["lsblk", "-n", "-l", "-o", "NAME,TYPE", device], check=False)
    for line in (result.stdout or "").splitlines():
        fields = line.split()
        if len(fields) == 2 and fields[1] not in ("disk", "part"):
            logger.debug(f"{device} is held by {fields[0]} ({fields[1]})")
            return True

    own_node = re.compile(re.escape(device) + r"p?\d*$")
    result = cmd_runner.run(["mount"], check=False)
    for line in (result.stdout or "").splitlines():
        fields = line.split()
        if fields and own_node.match(fields[0]):
            logger.debug(f"{fields[0]} is mounted")
            return True

    return False


def confirm_destruction(device: str, input_func: Callable[[str], str] = input) -> None:
    """
    Ask the user to confirm that all data on the device may be erased.

    Only an explicit "Y" (any case) proceeds; empty, ambiguous or negative
    answers are a refusal.

    Raises:
        UserCancelledError: If the user did not confirm
    """
    answer = input_func(f"\n*** WARNING *** All data on {device} will be DELETED. Continue? (Y/N): ")
    if answer.strip().upper() != "Y":
        raise UserCancelledError("Operation cancelled by user.")


def select_device(
    session: Session,
    cmd_runner: CommandRunner,
    input_func: Callable[[str], str] = input
) -> str:
    """
    Interactively select and validate the device to prepare.

    Args:
        session: Session receiving the selected device
        cmd_runner: CommandRunner instance for executing commands
        input_func: Function used to read user answers

    Returns:
        The selected device path

    Raises:
        DeviceDetectionError: If the device is invalid, missing or busy
        UserCancelledError: If the user refuses the confirmation
    """
    devices = list_removable_devices(cmd_runner)

    device = validate_device_name(normalize_device_name(input_func(DEVICE_PROMPT)))

    listing = describe_device(device, cmd_runner)
    if listing is None:
        raise DeviceDetectionError(f"Device not found: {device}")
    for line in listing.splitlines():
        logger.info(f"  {line}")

    if device.rsplit("/", 1)[-1] not in [d["name"] for d in devices]:
        logger.warning(f"{device} is not reported as a removable or USB device")

    if is_device_busy(device, cmd_runner):
        raise DeviceDetectionError(
            f"The {device} device is currently in use (mounted or open). "
            "Please unmount it before continuing."
        )

    confirm_destruction(device, input_func)

    session.device = device
    logger.info(f"Device {device} selected and confirmed")
    return device
