"""
Formatting utilities.

This module provides terminal colors and size formatting used for the
console output and the final summary.
"""


# ANSI Terminal Colors
class TermColors:
    """ANSI color codes for terminal output"""
    INFO = '\033[94m'     # Blue for informational messages
    SUCCESS = '\033[92m'  # Green for success messages
    WARNING = '\033[93m'  # Yellow for warnings
    ERROR = '\033[91m'    # Red for errors
    SIM = '\033[96m'      # Cyan for simulation messages
    BOLD = '\033[1m'      # Bold text
    ENDC = '\033[0m'      # End color


def colorize(message: str, color: str, enabled: bool = True) -> str:
    """
    Add color to a message if color output is enabled.

    Args:
        message: The message to colorize
        color: The color to use (from TermColors)
        enabled: Whether colorization is enabled

    Returns:
        Colorized message or original message if colors disabled
    """
    if not enabled:
        return message
    return f"{color}{message}{TermColors.ENDC}"


def mib_to_human_readable(size_mib: int) -> str:
    """
    Convert a size in MiB to a short binary-unit string (e.g. "16 GiB").

    Whole values are printed without decimals, the partition plan only
    uses GiB multiples and odd MiB remainders.
    """
    if size_mib < 1024:
        return f"{size_mib} MiB"

    size = size_mib / 1024
    for unit in ['GiB', 'TiB']:
        if size < 1024:
            break
        size /= 1024

    if size == int(size):
        return f"{int(size)} {unit}"
    return f"{size:.2f} {unit}"
