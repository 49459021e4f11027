"""
Validation utilities.

This module provides the prerequisite check run before any device is touched.
"""
import os
import shutil
import logging

from usbsetup.utils.command import CommandRunner
from usbsetup.core.exceptions import MissingDependencyError

logger = logging.getLogger('usbsetup')

# Tools the pipeline cannot run without
REQUIRED_TOOLS = [
    "lsblk",       # Device listing and verification
    "parted",      # Partition table editing
    "partprobe",   # Kernel partition table refresh
    "mkfs.vfat",   # LIVE partition
    "mkfs.exfat",  # DATA_PUBLIC partition
    "mkfs.ext4",   # DATA_SECURE and BACKUPS_APPS partitions
    "cryptsetup",  # LUKS setup
    "mount",       # Mounted device detection
]

# Optional tools for additional safety checks
RECOMMENDED_TOOLS = [
    "lsof",        # Detection of devices held open by other processes
]


def find_missing_tools(tools):
    """Return the tools of the list that do not resolve on PATH"""
    return [tool for tool in tools if not shutil.which(tool)]


def check_prerequisites(cmd_runner: CommandRunner) -> None:
    """
    Check for required tools and permissions.

    Args:
        cmd_runner: CommandRunner instance for executing commands

    Raises:
        MissingDependencyError: If prerequisites are not met
    """
    if cmd_runner.simulating:
        logger.info("Checking for required tools (simulated)")
        for tool in REQUIRED_TOOLS:
            logger.debug(f"Tool '{tool}' would be checked")
        return

    if os.geteuid() != 0:
        raise MissingDependencyError("This script must be run as root")

    missing_tools = find_missing_tools(REQUIRED_TOOLS)
    if missing_tools:
        raise MissingDependencyError(
            f"Missing required tools: {', '.join(missing_tools)}. "
            "Please install the necessary packages for your distribution and try again"
        )

    missing_optional = find_missing_tools(RECOMMENDED_TOOLS)
    if missing_optional:
        logger.warning(
            f"Missing optional tools: {', '.join(missing_optional)}. "
            "Devices held open by other processes will not be detected"
        )

    logger.info("All required tools are available")
