import json
import logging
import subprocess
from typing import Dict, List, Optional, Tuple

import pytest

from usbsetup.utils.command import CommandRunner, SimulationMode
from usbsetup.utils.types import Session

USB_LISTING = json.dumps({
    "blockdevices": [
        {"name": "sda", "size": "476.9G", "type": "disk", "model": "Internal SSD", "tran": "sata", "rm": False},
        {"name": "sdb", "size": "115.5G", "type": "disk", "model": "USB Flash Disk", "tran": "usb", "rm": True},
    ]
})


class FakeRunner(CommandRunner):
    """
    CommandRunner double answering from scripted rules.

    Rules are matched on the longest command prefix. Commands without a rule
    succeed with empty output, except a few defaults describing a healthy,
    unmounted USB key on /dev/sdb.
    """

    def __init__(self):
        super().__init__(SimulationMode.DISABLED, colored_output=False)
        self.rules: Dict[Tuple[str, ...], dict] = {}
        self.inputs: List[Tuple[List[str], Optional[str]]] = []
        self.open_mappings = set()
        self.respond(["lsblk", "-J"], stdout=USB_LISTING)
        self.respond(["lsof"], returncode=1)

    def respond(self, prefix, returncode=0, stdout="", stderr="", raises=None, action=None):
        self.rules[tuple(prefix)] = {
            "action": action,
            "returncode": returncode,
            "stdout": stdout,
            "stderr": stderr,
            "raises": raises,
        }

    def _rule_for(self, cmd):
        best = None
        for prefix, rule in self.rules.items():
            if tuple(cmd[:len(prefix)]) == prefix and (best is None or len(prefix) > len(best[0])):
                best = (prefix, rule)
        return best[1] if best else None

    def run(self, cmd, check=True, **kwargs):
        self.commands_run.append({"command": list(cmd), "simulated": False})
        self.inputs.append((list(cmd), kwargs.get("input")))

        rule = self._rule_for(cmd)
        if rule and rule["action"] is not None:
            rule["action"]()
        if rule and rule["raises"] is not None:
            raise rule["raises"]

        returncode = rule["returncode"] if rule else 0
        stdout = rule["stdout"] if rule else ""
        stderr = rule["stderr"] if rule else ""

        if cmd[:2] == ["cryptsetup", "status"] and rule is None:
            returncode = 0 if cmd[2] in self.open_mappings else 4

        if check and returncode != 0:
            raise subprocess.CalledProcessError(returncode, cmd, output=stdout, stderr=stderr)

        if returncode == 0 and cmd[:2] == ["cryptsetup", "open"]:
            self.open_mappings.add(cmd[3])
        elif returncode == 0 and cmd[:2] == ["cryptsetup", "close"]:
            self.open_mappings.discard(cmd[2])

        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    @property
    def commands(self):
        return [record["command"] for record in self.commands_run]


DESTRUCTIVE_TOOLS = {"parted", "partprobe", "mkfs.vfat", "mkfs.exfat", "mkfs.ext4", "cryptsetup"}


def destructive_commands(runner):
    return [cmd for cmd in runner.commands if cmd[0] in DESTRUCTIVE_TOOLS]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def session():
    session = Session()
    session.device = "/dev/sdb"
    return session


@pytest.fixture(autouse=True)
def no_delays(monkeypatch):
    monkeypatch.setattr("usbsetup.core.partition.time.sleep", lambda seconds: None)


@pytest.fixture(autouse=True)
def mapper_present(monkeypatch):
    monkeypatch.setattr("usbsetup.core.encryption.is_block_device", lambda path: True)


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger("usbsetup")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
