"""
LUKS passphrase collection module.
"""
import getpass
import logging
import re
from typing import Callable

from usbsetup.utils.types import Session
from usbsetup.core.exceptions import PassphraseError

logger = logging.getLogger('usbsetup')

MIN_PASSPHRASE_LENGTH = 8


def validate_passphrase(first: str, second: str) -> None:
    """
    Validate a passphrase and its confirmation.

    Args:
        first: Passphrase as entered the first time
        second: Confirmation entry

    Raises:
        PassphraseError: If the entries differ, are empty or the passphrase is weak
    """
    if first != second or not first:
        raise PassphraseError("Passphrases do not match or are empty.")

    if (len(first) < MIN_PASSPHRASE_LENGTH
            or not re.search(r"[A-Z]", first)
            or not re.search(r"[0-9]", first)):
        raise PassphraseError(
            f"Passphrase must be at least {MIN_PASSPHRASE_LENGTH} characters long "
            "and include both digits and uppercase letters."
        )


def collect_passphrase(session: Session, getpass_func: Callable[[str], str] = getpass.getpass) -> None:
    """
    Prompt twice for the DATA_SECURE passphrase and store it in the session.

    Args:
        session: Session receiving the passphrase
        getpass_func: Function reading a line without echo

    Raises:
        PassphraseError: If validation fails
    """
    first = getpass_func("Enter passphrase for secure LUKS partition: ")
    second = getpass_func("Confirm passphrase: ")
    try:
        validate_passphrase(first, second)
        session.passphrase = first
    finally:
        del first, second

    logger.info("LUKS passphrase accepted")
