"""
Disk encryption module.

This module handles the LUKS container of the DATA_SECURE partition. The
passphrase is always fed to cryptsetup on stdin, never on the command line.
"""
import logging
import os
import stat
import subprocess
from contextlib import contextmanager
from typing import Iterator, List

from usbsetup.utils.command import CommandRunner
from usbsetup.utils.types import Session
from usbsetup.core.exceptions import EncryptionError

logger = logging.getLogger('usbsetup')

LUKS_NAME = "secure_usb"
MAPPER_DIR = "/dev/mapper"


def mapper_path(name: str = LUKS_NAME) -> str:
    """Return the path of the decrypted device for a mapping name"""
    return os.path.join(MAPPER_DIR, name)


def is_block_device(path: str) -> bool:
    """Check that path exists and is a block device"""
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def run_cryptsetup_cmd(cmd: List[str], secret_input: str, cmd_runner: CommandRunner, error: str) -> None:
    """
    Run a cryptsetup command with the provided secret input.

    Args:
        cmd: The cryptsetup command to run
        secret_input: Secret input to provide on stdin
        cmd_runner: CommandRunner instance for executing commands
        error: Message of the EncryptionError raised on failure

    Raises:
        EncryptionError: If the command fails
    """
    try:
        cmd_runner.run(cmd, input=secret_input)
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise EncryptionError(f"{error} {stderr}".strip())


def format_luks_volume(partition: str, passphrase: str, cmd_runner: CommandRunner) -> None:
    """
    Initialize a LUKS container on the partition.

    Raises:
        EncryptionError: If cryptsetup luksFormat fails
    """
    logger.info(f"Configuring LUKS on {partition}")
    run_cryptsetup_cmd(
        ["cryptsetup", "luksFormat", partition, "--batch-mode", "--key-file=-"],
        passphrase,
        cmd_runner,
        "LUKS configuration failed."
    )


def close_luks_volume_if_open(cmd_runner: CommandRunner, name: str = LUKS_NAME) -> bool:
    """
    Close the LUKS mapping if cryptsetup reports it as active.

    Args:
        cmd_runner: CommandRunner instance for executing commands
        name: Mapping name

    Returns:
        True if a mapping was closed

    Raises:
        EncryptionError: If the mapping is active but cannot be closed
    """
    status = cmd_runner.run(["cryptsetup", "status", name], check=False)
    if status.returncode != 0:
        return False

    try:
        cmd_runner.run(["cryptsetup", "close", name])
    except subprocess.CalledProcessError as e:
        raise EncryptionError(f"Failed to close LUKS container {name}: {e}")

    logger.info(f"LUKS container {name} closed")
    return True


@contextmanager
def open_luks_volume(
    session: Session,
    partition: str,
    cmd_runner: CommandRunner,
    name: str = LUKS_NAME
) -> Iterator[str]:
    """
    Open the LUKS container of a partition for the duration of the block.

    The mapping is closed again when the block exits, whether it completed,
    raised, or was interrupted by a signal.

    Args:
        session: Session holding the passphrase
        partition: Partition carrying the LUKS container
        cmd_runner: CommandRunner instance for executing commands
        name: Mapping name

    Yields:
        Path of the decrypted device

    Raises:
        EncryptionError: If the container cannot be opened, the mapping is
            missing, or the block completed but the mapping cannot be closed
    """
    failed = False
    try:
        logger.info("Opening LUKS container")
        run_cryptsetup_cmd(
            ["cryptsetup", "open", partition, name, "--key-file=-"],
            session.passphrase,
            cmd_runner,
            "Failed to open LUKS partition."
        )
        session.luks_open = True

        mapped = mapper_path(name)
        if not cmd_runner.simulating and not is_block_device(mapped):
            raise EncryptionError(f"LUKS mapping failed: {mapped} not found.")

        yield mapped
    except BaseException:
        failed = True
        raise
    finally:
        try:
            close_luks_volume_if_open(cmd_runner, name)
            session.luks_open = False
        except EncryptionError as e:
            # The error or interrupt already in flight takes precedence;
            # session.luks_open stays set so the caller can retry the close
            if not failed:
                raise
            logger.error(str(e))
