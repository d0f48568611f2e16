"""
Captain CLI Setup Wizard
Interactive and file-driven front ends for the server setup pipeline.
Both collect the same answers and drive the same steps.
"""

import ipaddress
import logging
from pathlib import Path
from typing import Optional, Callable, Union

import questionary
from questionary import Style
from rich.console import Console
from rich.panel import Panel

from .machine_config import (
    MachineProfile, ServerSetupParams, ConfigFileError,
    SAMPLE_IP, MIN_PASSWORD_LENGTH, DOCS_URL,
)
from .machine_store import MachineStore
from .server_setup import (
    SetupContext, SetupAborted, ApiFactory,
    resolve_auth_token, try_current_password, update_root_domain,
    enable_https_and_change_password, register_machine,
)
from .api_client import CaptainApi

logger = logging.getLogger(__name__)

console = Console()

# Custom questionary style
custom_style = Style([
    ('qmark', 'fg:cyan bold'),
    ('question', 'bold'),
    ('answer', 'fg:cyan'),
    ('pointer', 'fg:cyan bold'),
    ('highlighted', 'fg:cyan bold'),
    ('selected', 'fg:green'),
    ('separator', 'fg:gray'),
])

Validator = Callable[[str], Union[str, bool]]


class QuestionaryPrompter:
    """Prompts backed by questionary. An unanswered prompt (Ctrl+C) cancels setup."""

    def text(self, message: str, default: str = "", validate: Optional[Validator] = None) -> str:
        answer = questionary.text(
            message,
            default=default,
            validate=validate,
            style=custom_style
        ).ask()
        if answer is None:
            raise KeyboardInterrupt()
        return answer

    def password(self, message: str) -> str:
        answer = questionary.password(message, style=custom_style).ask()
        if answer is None:
            raise KeyboardInterrupt()
        return answer

    def confirm(self, message: str, default: bool = True) -> bool:
        answer = questionary.confirm(message, default=default, style=custom_style).ask()
        if answer is None:
            raise KeyboardInterrupt()
        return answer


# ============ Validation ============

def validate_ip_address(value: str) -> Union[str, bool]:
    """True for a usable IPv4 address, otherwise the error to show."""
    ip = value.strip()
    if ip != SAMPLE_IP:
        try:
            ipaddress.IPv4Address(ip)
            return True
        except ValueError:
            pass
    return f"This is an invalid IP Address: {ip}"


def check_new_password(password: str) -> None:
    """A bad new password ends the wizard; it is never re-asked."""
    if not password:
        console.print("[red]Password empty.[/red]")
        raise SetupAborted("Password empty")

    if len(password) < MIN_PASSWORD_LENGTH:
        console.print("[red]Password too small.[/red]")
        raise SetupAborted("Password too small")


# ============ Interactive ============

class ServerSetupWizard:
    """
    Asks the setup questions one at a time.

    Each answer is applied to the server before the next question is asked,
    so a wrong domain or an unreachable server stops the wizard early.
    """

    def __init__(self, context: SetupContext, prompter=None):
        self.context = context
        self.prompter = prompter or QuestionaryPrompter()

    def run(self) -> MachineProfile:
        self._confirm_installed()

        ip_address = self.prompter.text(
            "Enter IP address of your CapRover server:",
            default=SAMPLE_IP,
            validate=validate_ip_address
        ).strip()

        if not resolve_auth_token(self.context, ip_address):
            # The default password didn't work
            current_password = self.prompter.password("Enter your current password:")
            try_current_password(self.context, current_password)

        root_domain = self.prompter.text(
            "Enter a root domain for this CapRover server. For example, enter test.yourdomain.com if you"
            " setup your DNS to point *.test.yourdomain.com to ip address of your server."
        ).strip()
        update_root_domain(self.context, root_domain)

        self._collect_new_password()

        email_address = self.prompter.text(
            "Enter your 'valid' email address to enable HTTPS:"
        ).strip()
        enable_https_and_change_password(self.context, email_address)

        store = self.context.store
        machine_name = self.prompter.text(
            "Enter a name for this CapRover machine:",
            default=store.default_machine_name(),
            validate=lambda value: store.get_name_error(value.strip())
        ).strip()

        return register_machine(self.context, machine_name)

    def _confirm_installed(self):
        console.print(Panel(
            "[bold]Have you already installed CapRover on your server?[/bold]\n\n"
            "[dim]mkdir /captain && docker run -p 80:80 -p 443:443 -p 3000:3000 "
            "-v /var/run/docker.sock:/var/run/docker.sock caprover/caprover[/dim]",
            border_style="blue"
        ))

        if not self.prompter.confirm("Is CapRover running on the server?", default=True):
            console.print("\n\nCannot start the setup process if CapRover is not installed.")
            console.print(f"Please read tutorial on {DOCS_URL} to learn how to install CapRover on a server.")
            raise SetupAborted("CapRover is not installed on the server")

    def _collect_new_password(self):
        new_password = self.prompter.password(
            f"Enter a new password (min {MIN_PASSWORD_LENGTH} characters):"
        )
        check_new_password(new_password)
        self.context.new_password_first_try = new_password

        confirmation = self.prompter.password("Enter your new password again:")
        if confirmation != new_password:
            console.print("[red]Passwords do not match. Try serversetup again.[/red]")
            raise SetupAborted("Password mismatch")


# ============ Batch ============

class BatchServerSetup:
    """
    Replays setup parameters loaded from a file through the same steps.
    There is nobody to re-ask, so every validation failure is fatal.
    """

    def __init__(self, context: SetupContext, params: ServerSetupParams):
        self.context = context
        self.params = params

    def run(self) -> MachineProfile:
        params = self.params

        name_error = self.context.store.get_name_error(params.machine_name)
        if name_error is not True:
            raise SetupAborted(name_error)

        ip_error = validate_ip_address(params.ip_address)
        if ip_error is not True:
            raise SetupAborted(ip_error)

        check_new_password(params.new_password)

        if not resolve_auth_token(self.context, params.ip_address):
            if params.current_password is None:
                raise SetupAborted(
                    "The default password was rejected and no current_password was given"
                )
            try_current_password(self.context, params.current_password)

        update_root_domain(self.context, params.root_domain)

        self.context.new_password_first_try = params.new_password
        enable_https_and_change_password(self.context, params.email_for_https)

        return register_machine(self.context, params.machine_name)


def load_setup_params(config_file: str) -> ServerSetupParams:
    """Read batch parameters; relative paths are taken from the working directory."""
    path = Path(config_file)
    if not path.is_absolute():
        path = Path.cwd() / path

    try:
        return ServerSetupParams.load(path)
    except ConfigFileError as e:
        raise SetupAborted(str(e)) from e


def run_server_setup(
    config_file: str = None,
    config_dir: Path = None,
    api_factory: ApiFactory = CaptainApi,
    prompter=None,
) -> MachineProfile:
    """Run setup interactively, or from config_file when given."""
    # Parse the file before anything touches the network
    params = load_setup_params(config_file) if config_file else None

    context = SetupContext(store=MachineStore.load(config_dir), api_factory=api_factory)

    if params:
        logger.debug(f"Running batch setup from {config_file}")
        return BatchServerSetup(context, params).run()

    return ServerSetupWizard(context, prompter).run()
