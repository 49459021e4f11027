"""
Command-line interface for usbsetup.

This module handles argument parsing, signal handling and orchestrates the
USB key preparation pipeline.
"""
import argparse
import getpass
import logging
import os
import signal
import sys
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from usbsetup.utils.logging import setup_logging
from usbsetup.utils.command import CommandRunner, SimulationMode
from usbsetup.utils.format import TermColors, colorize
from usbsetup.utils.types import Session
from usbsetup.utils.validation import check_prerequisites
from usbsetup.core.device import select_device
from usbsetup.core.passphrase import collect_passphrase
from usbsetup.core.partition import create_partitions
from usbsetup.core.filesystem import format_partitions
from usbsetup.core.encryption import close_luks_volume_if_open
from usbsetup.core.verify import verify_setup, show_summary
from usbsetup.core.exceptions import USBSetupError, OperationInterrupted

logger = logging.getLogger('usbsetup')

# Constants
DEFAULT_LOG_FILE = "usb_setup.log"


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Namespace containing parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Prepare a 124 GB USB key with LIVE (FAT32), DATA_PUBLIC (exFAT), "
                    "DATA_SECURE (LUKS + ext4) and BACKUPS_APPS (ext4) partitions. "
                    "All data on the selected device will be deleted."
    )

    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Append-only log file (default: ./{DEFAULT_LOG_FILE})"
    )

    parser.add_argument(
        "-s", "--simulate",
        action="store_true",
        help="Simulate operations without making any changes to the system"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def _raise_interrupted(signum, frame):
    raise OperationInterrupted(f"Received signal {signal.Signals(signum).name}")


@contextmanager
def handle_termination_signals() -> Iterator[None]:
    """
    Turn SIGTERM into an OperationInterrupted exception for the duration of the block.

    SIGINT already raises KeyboardInterrupt. Both unwind through the LUKS
    guard, which closes an open container on the way out.
    """
    previous = signal.signal(signal.SIGTERM, _raise_interrupted)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def run_pipeline(
    session: Session,
    cmd_runner: CommandRunner,
    input_func: Callable[[str], str],
    getpass_func: Callable[[str], str]
) -> None:
    """
    Run every preparation step in order; the first failing step raises.

    Args:
        session: Session carrying the state of this run
        cmd_runner: CommandRunner instance for executing commands
        input_func: Function used to read user answers
        getpass_func: Function used to read the passphrase without echo
    """
    check_prerequisites(cmd_runner)
    select_device(session, cmd_runner, input_func)
    collect_passphrase(session, getpass_func)
    create_partitions(session, cmd_runner)
    format_partitions(session, cmd_runner)
    verify_setup(session, cmd_runner)
    show_summary(session, cmd_runner)


def display_simulation_summary(cmd_runner: CommandRunner) -> None:
    """
    Display a summary of the simulation.

    Args:
        cmd_runner: CommandRunner instance for executing commands
    """
    if cmd_runner.simulation_mode != SimulationMode.SIMULATE:
        return

    try:
        terminal_width = os.get_terminal_size().columns
    except (AttributeError, OSError):
        terminal_width = 80
    stars = "*" * terminal_width
    colored = cmd_runner.colored_output

    print(f"\n{colorize(stars, TermColors.SIM, colored)}")
    print(colorize("SIMULATION COMPLETE - NO CHANGES WERE MADE", TermColors.SIM + TermColors.BOLD, colored))
    print(f"{colorize(stars, TermColors.SIM, colored)}\n")
    print(colorize("The following operations would have been performed:", TermColors.SUCCESS, colored))
    print(cmd_runner.get_simulation_report())
    print(colorize("\nTo execute these operations for real, run without the --simulate flag.", TermColors.SIM, colored))


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function.

    Returns:
        Exit code (0 for success, 1 for any aborted step)
    """
    args = parse_arguments(argv)
    setup_logging(args.log_file, args.debug, not args.no_color)

    cmd_runner = CommandRunner(
        SimulationMode.SIMULATE if args.simulate else SimulationMode.DISABLED,
        not args.no_color
    )
    session = Session()

    logger.info("========== Starting USB key preparation ==========")
    if args.simulate:
        logger.info("Running in simulation mode - NO CHANGES WILL BE MADE")

    with handle_termination_signals():
        try:
            run_pipeline(session, cmd_runner, input_func=input, getpass_func=getpass.getpass)

        except (KeyboardInterrupt, OperationInterrupted):
            if session.luks_open:
                try:
                    close_luks_volume_if_open(cmd_runner)
                except USBSetupError as e:
                    logger.error(str(e))
            logger.error("Script interrupted by signal.")
            return 1

        except USBSetupError as e:
            logger.error(str(e))
            return 1

        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            if args.debug:
                import traceback
                traceback.print_exc()
            return 1

        finally:
            session.clear_passphrase()

    display_simulation_summary(cmd_runner)
    logger.info("========== USB key successfully prepared ==========")
    return 0


# For module import compatibility
if __name__ == "__main__":
    sys.exit(main())
