"""
Disk partitioning module.

This module creates the GPT partition table and the four partitions of the
USB key with parted, then lets the kernel pick up the new table.
"""
import logging
import subprocess
import time
from typing import List, Tuple

from usbsetup.utils.command import CommandRunner
from usbsetup.utils.types import PartitionSpec, PartitionTable, Session
from usbsetup.core.exceptions import PartitioningError

logger = logging.getLogger('usbsetup')

# Constants
FIRST_PARTITION_START_MIB = 1  # Keeps the first partition 1 MiB aligned
SETTLE_DELAY = 2               # Seconds to wait for partition device nodes

# Fixed layout for a 124 GB key, in on-disk order
PARTITION_PLAN: List[PartitionSpec] = [
    PartitionSpec("LIVE", "fat32", 16384, "fat32"),
    PartitionSpec("DATA_PUBLIC", None, 61440, "exfat"),
    PartitionSpec("DATA_SECURE", "ext4", 31040, "ext4", encrypted=True),
    PartitionSpec("BACKUPS_APPS", "ext4", None, "ext4"),
]


def get_partition_device_name(disk: str, partition_number: int) -> str:
    """
    Generate the partition device name of an sdX disk.

    Args:
        disk: Path to the disk device
        partition_number: Partition number

    Returns:
        Partition device path
    """
    return f"{disk}{partition_number}"


def compute_partition_bounds(
    plan: List[PartitionSpec],
    start_mib: int = FIRST_PARTITION_START_MIB
) -> List[Tuple[str, str]]:
    """
    Compute contiguous parted start/end positions for a partition plan.

    Each partition starts where the previous one ends. An entry without a
    size extends to the end of the device and must be the last one.

    Args:
        plan: Partition plan in on-disk order
        start_mib: Start of the first partition in MiB

    Returns:
        List of (start, end) parted position strings

    Raises:
        ValueError: If an unsized entry is not the last of the plan
    """
    bounds = []
    position = start_mib

    for index, spec in enumerate(plan):
        if spec.size_mib is None:
            if index != len(plan) - 1:
                raise ValueError(f"Only the last partition may fill the device, not {spec.name}")
            bounds.append((f"{position}MiB", "100%"))
        else:
            end = position + spec.size_mib
            bounds.append((f"{position}MiB", f"{end}MiB"))
            position = end

    return bounds


def _parted(device: str, args: List[str], cmd_runner: CommandRunner) -> subprocess.CompletedProcess:
    return cmd_runner.run(["parted", "-s", device] + args)


def create_partitions(session: Session, cmd_runner: CommandRunner) -> PartitionTable:
    """
    Create the GPT label and the partitions of PARTITION_PLAN on the session device.

    The session partition table is only filled in once every partition
    exists. Already created partitions are left as they are on failure.

    Args:
        session: Session holding the selected device
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        Dict mapping partition names to device paths

    Raises:
        PartitioningError: If the label or a partition cannot be created
    """
    device = session.device
    if not device:
        raise PartitioningError("No device selected")

    logger.info(f"Creating GPT partition table on {device}...")
    try:
        _parted(device, ["mklabel", "gpt"], cmd_runner)
    except subprocess.CalledProcessError as e:
        raise PartitioningError(f"Failed to create partition table on {device}: {e}")

    bounds = compute_partition_bounds(PARTITION_PLAN)
    for number, (spec, (start, end)) in enumerate(zip(PARTITION_PLAN, bounds), 1):
        logger.info(f"Creating {spec.name} ({spec.description}, {start} - {end})")

        mkpart = ["mkpart", spec.name]
        if spec.parted_fs_type:
            mkpart.append(spec.parted_fs_type)
        mkpart += [start, end]

        try:
            _parted(device, mkpart, cmd_runner)
        except subprocess.CalledProcessError as e:
            raise PartitioningError(f"Failed to create partition {spec.name}: {e}")

        if number == 1:
            try:
                _parted(device, ["set", "1", "boot", "on"], cmd_runner)
            except subprocess.CalledProcessError as e:
                logger.warning(f"Could not set the boot flag on {spec.name}, continuing: {e}")

    # Allow kernel to process the new partition table
    try:
        cmd_runner.run(["partprobe", device])
    except subprocess.CalledProcessError as e:
        logger.warning(f"partprobe failed, but continuing: {e}")
    time.sleep(SETTLE_DELAY)

    session.partitions = {
        spec.name: get_partition_device_name(device, number)
        for number, spec in enumerate(PARTITION_PLAN, 1)
    }

    logger.info("Partitioning completed successfully")
    return session.partitions
