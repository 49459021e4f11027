"""
usbsetup - USB key partitioning and formatting tool

This package prepares a removable USB key with a bootable LIVE partition,
a public exFAT data partition, a LUKS encrypted ext4 partition and an ext4
backup partition.
"""

__version__ = "0.1.0"
