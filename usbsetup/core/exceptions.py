"""
Base exceptions for usbsetup.

This module defines the hierarchy of exceptions used by usbsetup. Every
step of the pipeline raises one of these; the CLI turns them into a
single error log line and a non-zero exit status.
"""

class USBSetupError(Exception):
    """Base exception for usbsetup errors"""
    pass


class MissingDependencyError(USBSetupError):
    """Exception raised when required tools or privileges are missing"""
    pass


class DeviceDetectionError(USBSetupError):
    """Exception raised when the target device is missing, busy or invalid"""
    pass


class UserCancelledError(USBSetupError):
    """Exception raised when the user refuses the destructive confirmation"""
    pass


class PassphraseError(USBSetupError):
    """Exception raised when the passphrase is mismatched, empty or weak"""
    pass


class PartitioningError(USBSetupError):
    """Exception raised when there's an error in partitioning"""
    pass


class FilesystemError(USBSetupError):
    """Exception raised when there's an error in filesystem creation"""
    pass


class EncryptionError(USBSetupError):
    """Exception raised when there's an error in encryption setup"""
    pass


class OperationInterrupted(USBSetupError):
    """Exception raised when the process receives SIGINT or SIGTERM"""
    pass
