"""
Type definitions for usbsetup.

This module provides the partition plan entry type and the per-run
session object passed through every pipeline step.
"""
from typing import Dict, NamedTuple, Optional, TypedDict


# Display names of the supported filesystem types
FILESYSTEM_NAMES = {
    "fat32": "FAT32",
    "exfat": "exFAT",
    "ext4": "ext4",
}


class PartitionSpec(NamedTuple):
    """One entry of the fixed partition plan"""
    name: str                      # GPT partition name, also used as the volume label
    parted_fs_type: Optional[str]  # Filesystem hint passed to "parted mkpart"
    size_mib: Optional[int]        # None means "up to the end of the device"
    filesystem: str                # Key of FILESYSTEM_NAMES
    encrypted: bool = False        # Filesystem lives inside a LUKS container

    @property
    def description(self) -> str:
        text = FILESYSTEM_NAMES[self.filesystem]
        if self.encrypted:
            text += " (LUKS encrypted)"
        return text


class RemovableDevice(TypedDict):
    """A removable block device as reported by lsblk"""
    name: str
    size: str
    type: str
    model: str
    tran: str
    removable: bool


# Mapping of partition names to device paths
PartitionTable = Dict[str, str]


class Session:
    """
    Transient state for one preparation run.

    The partition table is only filled in once partitioning succeeded, and
    the passphrase only lives between its collection and the end of the
    LUKS setup.
    """
    def __init__(self):
        self.device: Optional[str] = None
        self.partitions: PartitionTable = {}
        self.passphrase: Optional[str] = None
        self.luks_open = False

    def clear_passphrase(self) -> None:
        """Drop the passphrase from the session"""
        self.passphrase = None

    def __repr__(self) -> str:
        # Never expose the passphrase, even in debug output
        return (
            f"Session(device={self.device!r}, partitions={self.partitions!r}, "
            f"passphrase={'<set>' if self.passphrase else None}, luks_open={self.luks_open})"
        )
