"""
Command execution utilities.

This module provides tools for executing external commands with simulation support.
"""
import json
import logging
import os
import subprocess
import uuid
from enum import Enum
from typing import Dict, List, Any, Set

logger = logging.getLogger('usbsetup')

SIMULATED_DEVICE = "sdb"


class SimulationMode(Enum):
    """Enumeration for simulation modes"""
    DISABLED = 0  # Normal operation
    SIMULATE = 1  # Simulate operations


class CommandRunner:
    """
    Class responsible for command execution with simulation support.
    Acts as a wrapper around subprocess.run with additional functionality.

    Secrets passed through ``input`` are never logged nor recorded.
    """
    def __init__(self, simulation_mode: SimulationMode, colored_output: bool = True):
        """
        Initialize the command runner.

        Args:
            simulation_mode: Simulation mode to operate in
            colored_output: Whether to use colored output in terminal
        """
        self.simulation_mode = simulation_mode
        self.colored_output = colored_output
        self.commands_run: List[Dict[str, Any]] = []

        # Generate a unique simulation ID
        self.simulation_id = str(uuid.uuid4())[:8]

        # LUKS mappings opened during a simulation, so that "status" stays consistent
        self.simulated_mappings: Set[str] = set()

    @property
    def simulating(self) -> bool:
        return self.simulation_mode == SimulationMode.SIMULATE

    def run(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        """
        Run an external command or simulate running it.

        Args:
            cmd: Command to run as list of strings
            check: Whether to check for non-zero return code
            **kwargs: Additional arguments to pass to subprocess.run

        Returns:
            CompletedProcess instance from subprocess.run

        Raises:
            subprocess.CalledProcessError: If check is set and the command fails
        """
        cmd_str = ' '.join(cmd)
        logger.debug(f"Command requested: {cmd_str}" + (" (with stdin input)" if "input" in kwargs else ""))

        self.commands_run.append({
            "command": list(cmd),
            "simulated": self.simulating,
        })

        if self.simulating:
            logger.info(f"[SIM:{self.simulation_id}] Would execute: {cmd_str}")
            return self._simulate_command(cmd)

        try:
            return subprocess.run(
                cmd,
                check=check,
                text=True,
                capture_output=True,
                **kwargs
            )
        except subprocess.CalledProcessError as e:
            logger.debug(f"Command failed: {cmd_str}")
            logger.debug(f"Return code: {e.returncode}")
            logger.debug(f"Stdout: {e.stdout}")
            logger.debug(f"Stderr: {e.stderr}")
            raise

    def _simulate_command(self, cmd: List[str]) -> subprocess.CompletedProcess:
        """
        Generate simulated output for a command.

        Args:
            cmd: Command to simulate

        Returns:
            CompletedProcess with simulated output
        """
        result = subprocess.CompletedProcess(
            args=cmd,
            returncode=0,
            stdout="",
            stderr=""
        )

        cmd_name = os.path.basename(cmd[0]) if cmd else ""

        if cmd_name == "lsblk":
            return self._handle_lsblk_simulation(cmd, result)
        elif cmd_name == "lsof":
            # lsof exits 1 when nothing holds the file open
            result.returncode = 1
        elif cmd_name == "cryptsetup":
            return self._handle_cryptsetup_simulation(cmd, result)

        return result

    def _handle_lsblk_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate lsblk command output"""
        if "-J" in cmd:
            result.stdout = json.dumps({
                "blockdevices": [{
                    "name": SIMULATED_DEVICE,
                    "size": "124G",
                    "type": "disk",
                    "model": "SIMULATED USB",
                    "tran": "usb",
                    "rm": True,
                }]
            })
        elif "-n" in cmd:
            result.stdout = f"{os.path.basename(cmd[-1])} disk\n"
        else:
            result.stdout = f"NAME SIZE TYPE\n{os.path.basename(cmd[-1])} 124G disk\n"
        return result

    def _handle_cryptsetup_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate cryptsetup command output"""
        action = cmd[1] if len(cmd) > 1 else ""
        if action == "open" and len(cmd) > 3:
            self.simulated_mappings.add(cmd[3])
        elif action == "close" and len(cmd) > 2:
            self.simulated_mappings.discard(cmd[2])
        elif action == "status" and len(cmd) > 2:
            # cryptsetup status exits 4 for an inactive mapping
            result.returncode = 0 if cmd[2] in self.simulated_mappings else 4
        return result

    def get_simulation_report(self) -> str:
        """
        Generate a report of all simulated commands.

        Returns:
            Formatted string with report of simulated commands
        """
        if not self.simulating:
            return "Simulation mode is not active."

        report = []
        report.append("=" * 80)
        report.append(f"SIMULATION REPORT [ID: {self.simulation_id}]")
        report.append("=" * 80)

        for i, cmd_record in enumerate(self.commands_run, 1):
            report.append(f"{i:>3}. {' '.join(cmd_record['command'])}")

        report.append("-" * 80)
        report.append(f"Total commands simulated: {len(self.commands_run)}")
        report.append("=" * 80)

        return "\n".join(report)
