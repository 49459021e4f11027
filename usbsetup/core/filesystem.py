"""
Filesystem creation module.

This module formats the partitions of the plan one after the other; the
encrypted partition gets its filesystem inside the opened LUKS container.
"""
import logging
import subprocess
import time

from usbsetup.utils.command import CommandRunner
from usbsetup.utils.types import FILESYSTEM_NAMES, PartitionSpec, Session
from usbsetup.core.encryption import format_luks_volume, open_luks_volume
from usbsetup.core.exceptions import EncryptionError, FilesystemError
from usbsetup.core.partition import PARTITION_PLAN, SETTLE_DELAY

logger = logging.getLogger('usbsetup')

# mkfs command prefix per filesystem type, followed by the label and the device
MKFS_COMMANDS = {
    "fat32": ["mkfs.vfat", "-F32", "-n"],
    "exfat": ["mkfs.exfat", "-n"],
    "ext4": ["mkfs.ext4", "-L"],
}


def create_filesystem(
    filesystem_type: str,
    device: str,
    label: str,
    cmd_runner: CommandRunner
) -> None:
    """
    Create a single filesystem on a device.

    Args:
        filesystem_type: Type of filesystem to create (fat32, exfat, ext4)
        device: Device path to create filesystem on
        label: Volume label of the filesystem
        cmd_runner: CommandRunner instance for executing commands

    Raises:
        FilesystemError: If the type is unsupported or mkfs fails
    """
    if filesystem_type not in MKFS_COMMANDS:
        raise FilesystemError(f"Unsupported filesystem type: {filesystem_type}")

    logger.info(f"Formatting {label} as {FILESYSTEM_NAMES[filesystem_type]} on {device}")
    try:
        cmd_runner.run(MKFS_COMMANDS[filesystem_type] + [label, device])
    except subprocess.CalledProcessError as e:
        raise FilesystemError(f"Failed to create {filesystem_type} filesystem on {device}: {e}")


def format_encrypted_partition(spec: PartitionSpec, session: Session, cmd_runner: CommandRunner) -> None:
    """
    Set up LUKS on the partition and create its filesystem inside the container.

    The container is closed again afterwards and the passphrase is dropped
    from the session whatever the outcome.

    Raises:
        EncryptionError: If the LUKS setup fails
        FilesystemError: If the inner filesystem cannot be created
    """
    partition = session.partitions[spec.name]
    try:
        if not session.passphrase:
            raise EncryptionError("No passphrase available for the LUKS setup")

        format_luks_volume(partition, session.passphrase, cmd_runner)

        with open_luks_volume(session, partition, cmd_runner) as mapped:
            create_filesystem(spec.filesystem, mapped, spec.name, cmd_runner)
            time.sleep(SETTLE_DELAY)
    finally:
        session.clear_passphrase()


def format_partitions(session: Session, cmd_runner: CommandRunner) -> None:
    """
    Format every partition of the plan, in order.

    Args:
        session: Session holding the partition table and the passphrase
        cmd_runner: CommandRunner instance for executing commands

    Raises:
        FilesystemError: If a filesystem cannot be created
        EncryptionError: If the LUKS setup fails
    """
    if not session.partitions:
        raise FilesystemError("No partitions to format")

    for spec in PARTITION_PLAN:
        if spec.encrypted:
            format_encrypted_partition(spec, session, cmd_runner)
        else:
            create_filesystem(spec.filesystem, session.partitions[spec.name], spec.name, cmd_runner)

    logger.info("All filesystems created successfully")
