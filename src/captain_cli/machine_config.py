"""
Captain CLI Machine Configuration
Data classes for the machine being set up and the batch setup parameters.
"""

import json
import re
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Dict, Any

import yaml


DEFAULT_PASSWORD = "captain42"
SAMPLE_IP = "123.123.123.123"
SETUP_PORT = 3000
CAPTAIN_SUBDOMAIN = "captain"
MIN_PASSWORD_LENGTH = 8
DOCS_URL = "https://caprover.com"

MACHINE_NAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class ConfigFileError(Exception):
    """Batch setup file is missing or unreadable."""


@dataclass
class MachineProfile:
    """A CapRover machine as stored in the local directory."""
    name: str = ""
    base_url: str = ""
    auth_token: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineProfile":
        return cls(
            name=data.get("name", ""),
            base_url=data.get("base_url", ""),
            auth_token=data.get("auth_token", ""),
        )


# camelCase keys accepted alongside the snake_case ones
_PARAM_ALIASES = {
    "machineName": "machine_name",
    "ipAddress": "ip_address",
    "currentPassword": "current_password",
    "rootDomain": "root_domain",
    "newPassword": "new_password",
    "emailForHttps": "email_for_https",
}

_REQUIRED_PARAMS = ("machine_name", "ip_address", "root_domain", "new_password", "email_for_https")


@dataclass
class ServerSetupParams:
    """
    Everything the interactive wizard would otherwise ask for, one field at a time.
    Loaded from a JSON or YAML file for non-interactive setup.
    """
    machine_name: str
    ip_address: str
    root_domain: str
    new_password: str
    email_for_https: str
    current_password: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSetupParams":
        """Build params from a parsed mapping, accepting camelCase aliases."""
        if not isinstance(data, dict):
            raise ConfigFileError("Setup file must contain a mapping of setup parameters")

        values = {}
        for key, value in data.items():
            values[_PARAM_ALIASES.get(key, key)] = value

        missing = [key for key in _REQUIRED_PARAMS if not values.get(key)]
        if missing:
            raise ConfigFileError(f"Missing required setup parameters: {', '.join(missing)}")

        # Passwords are taken verbatim; YAML would turn 0x1234abcd or 12345678 into a number
        for key in ("new_password", "current_password"):
            if key in values and values[key] is not None and not isinstance(values[key], str):
                raise ConfigFileError(f"{key} must be a string, quote the password in the setup file")

        return cls(
            machine_name=str(values["machine_name"]).strip(),
            ip_address=str(values["ip_address"]).strip(),
            root_domain=str(values["root_domain"]).strip(),
            new_password=values["new_password"],
            email_for_https=str(values["email_for_https"]).strip(),
            current_password=values.get("current_password"),
        )

    @classmethod
    def load(cls, path: Path) -> "ServerSetupParams":
        """
        Load params from a file.

        The syntax is picked from the first non-whitespace character:
        ``{`` or ``[`` means JSON, anything else is parsed as YAML.
        """
        if not path.exists():
            raise ConfigFileError(f"File not found: {path}")

        content = path.read_text(encoding="utf-8").strip()

        try:
            if content.startswith("{") or content.startswith("["):
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigFileError(f"Cannot parse {path}: {e}") from e

        if data is None:
            raise ConfigFileError(f"Setup file is empty: {path}")

        return cls.from_dict(data)

