"""
Captain CLI - CapRover server setup

Takes a freshly installed CapRover server from a bare IP address to a named,
HTTPS-enabled machine with a new password:
- Logs in with the default password (or asks for the current one)
- Assigns and verifies a root domain
- Enables HTTPS and rotates the password
- Registers the machine locally for later commands

Quick Start:
    pip install captain-cli
    captain serversetup
"""

__version__ = "1.0.0"

# Export main classes for programmatic use
from .machine_config import MachineProfile, ServerSetupParams
from .machine_store import MachineStore
from .api_client import CaptainApi, CaptainApiError
from .server_setup import SetupContext, SetupAborted
from .setup_wizard import ServerSetupWizard, BatchServerSetup, run_server_setup

__all__ = [
    "MachineProfile",
    "ServerSetupParams",
    "MachineStore",
    "CaptainApi",
    "CaptainApiError",
    "SetupContext",
    "SetupAborted",
    "ServerSetupWizard",
    "BatchServerSetup",
    "run_server_setup",
]
