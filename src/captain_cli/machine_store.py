"""
Captain CLI Machine Store - the local directory of registered machines
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .machine_config import MachineProfile, MACHINE_NAME_PATTERN

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Get the configuration directory."""
    if "CAPTAIN_CLI_CONFIG" in os.environ:
        return Path(os.environ["CAPTAIN_CLI_CONFIG"])

    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config) / "captain-cli"


def is_name_valid(name: str) -> bool:
    """Small letters, numbers and single hyphens only."""
    return bool(name) and MACHINE_NAME_PATTERN.match(name) is not None


def format_machine_name(suffix: int) -> str:
    return f"captain-{suffix:02d}"


class MachineStore:
    """Registered machines, keyed by name, stored as YAML."""

    def __init__(self, config_dir: Path = None):
        self.config_dir = config_dir or get_config_dir()
        self.machines_file = self.config_dir / "machines.yaml"
        self.machines: List[MachineProfile] = []

    @classmethod
    def load(cls, config_dir: Path = None) -> "MachineStore":
        """Load the directory from disk (empty if nothing saved yet)."""
        instance = cls(config_dir)

        if instance.machines_file.exists():
            with open(instance.machines_file) as f:
                data = yaml.safe_load(f) or {}
            instance.machines = [
                MachineProfile.from_dict(m) for m in data.get("machines") or []
                if isinstance(m, dict)
            ]
            logger.debug(f"Loaded {len(instance.machines)} machine(s) from {instance.machines_file}")

        return instance

    def find_machine(self, name: str) -> Optional[MachineProfile]:
        for machine in self.machines:
            if machine.name == name:
                return machine
        return None

    def save_machine(self, machine: MachineProfile) -> None:
        """Add a machine and write the directory."""
        self.machines.append(MachineProfile(
            name=machine.name,
            base_url=machine.base_url,
            auth_token=machine.auth_token,
        ))
        self.save()

    def remove_machine(self, name: str) -> bool:
        """Remove a machine by name. Returns False if it was not registered."""
        remaining = [m for m in self.machines if m.name != name]
        if len(remaining) == len(self.machines):
            return False
        self.machines = remaining
        self.save()
        return True

    def default_machine_name(self) -> str:
        """First free captain-NN name, counting up from the number of machines."""
        suffix = len(self.machines) + 1
        while self.find_machine(format_machine_name(suffix)):
            suffix += 1
        return format_machine_name(suffix)

    def get_name_error(self, name: str) -> Union[str, bool]:
        """
        Validate a new machine name.

        Returns True when the name can be used, otherwise a message suitable
        for showing inline next to the prompt.
        """
        if self.find_machine(name):
            return (
                f"{name} already exist. If you want to replace the existing entry, "
                "you have to first use <logout> command, and then re-login."
            )

        if is_name_valid(name):
            return True

        return "Please enter a valid CapRover Name. Small letters, numbers, single hyphen."

    def save(self) -> Path:
        """Write the directory to disk."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        data = {"machines": [m.to_dict() for m in self.machines]}
        with open(self.machines_file, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        # Auth tokens live in this file
        os.chmod(self.machines_file, 0o600)
        logger.debug(f"Saved {len(self.machines)} machine(s) to {self.machines_file}")

        return self.machines_file
