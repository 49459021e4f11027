"""
Verification and summary of the prepared device.
"""
import logging
import subprocess

from usbsetup.utils.command import CommandRunner
from usbsetup.utils.format import TermColors, colorize, mib_to_human_readable
from usbsetup.utils.types import Session
from usbsetup.core.partition import PARTITION_PLAN

logger = logging.getLogger('usbsetup')


def verify_setup(session: Session, cmd_runner: CommandRunner) -> bool:
    """
    List the partition layout of the device into the log.

    A failing listing is reported but never undoes or aborts anything.

    Returns:
        True if the layout could be listed
    """
    logger.info(f"Verifying partition layout on {session.device}")
    try:
        result = cmd_runner.run(["lsblk", "-o", "NAME,SIZE,FSTYPE,LABEL,MOUNTPOINT", session.device])
    except (subprocess.CalledProcessError, OSError) as e:
        logger.error(f"Verification failed: {e}")
        return False

    for line in result.stdout.splitlines():
        logger.info(f"  {line}")
    return True


def show_summary(session: Session, cmd_runner: CommandRunner) -> None:
    """Print the final layout and the intended partition scheme"""
    colored = cmd_runner.colored_output

    print(colorize("\n\n=========== Summary ===========", TermColors.BOLD, colored))
    result = cmd_runner.run(["lsblk", "-o", "NAME,SIZE,FSTYPE,LABEL", session.device], check=False)
    if result.returncode == 0:
        print(result.stdout)

    print(colorize("\nPartitions created and formatted successfully.", TermColors.SUCCESS, colored))
    for spec in PARTITION_PLAN:
        size = mib_to_human_readable(spec.size_mib) if spec.size_mib else "remaining space"
        print(f"  {session.partitions.get(spec.name, '-'):<12} {spec.name:<13} {size:<16} {spec.description}")
