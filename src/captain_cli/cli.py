"""
Captain CLI - set up CapRover servers and manage the machines you are logged into
"""

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape as rich_escape
from rich.table import Table

from . import __version__
from .machine_config import DOCS_URL
from .machine_store import MachineStore
from .server_setup import SetupAborted, login_existing_machine
from .setup_wizard import QuestionaryPrompter, run_server_setup

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="captain")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """
    Captain CLI - CapRover server setup

    \b
    QUICK START:

        captain serversetup                 # Interactive setup of a fresh server
        captain serversetup -c setup.yaml   # Automated setup from a file
        captain list                        # Show registered machines
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


@click.command()
@click.option("--config-file", "-c", "config_file", help="JSON or YAML file with all setup answers")
def serversetup(config_file: str):
    """
    Set up a freshly installed CapRover server.

    Logs in with the default password, assigns a root domain, enables HTTPS,
    changes the password and stores the machine locally.

    \b
    CONFIG FILE KEYS:
        machine_name, ip_address, current_password (optional),
        root_domain, new_password, email_for_https

    \b
    EXAMPLES:
        captain serversetup
        captain serversetup -c setup.yaml
    """
    console.print("\n[bold cyan]Setup your CapRover server[/bold cyan]\n")

    try:
        machine = run_server_setup(config_file)
    except SetupAborted as e:
        console.print(f"\n[red]Error:[/red] {rich_escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Setup cancelled.[/yellow]")
        sys.exit(1)

    console.print(f"\n\n[green]✓[/green] CapRover is available at [cyan]{machine.base_url}[/cyan]")
    console.print(f"\nFor more details and docs see {DOCS_URL}\n\n")


@click.command()
@click.option("--url", "-u", help="Dashboard URL, e.g. https://captain.example.com")
@click.option("--password", "-p", help="Dashboard password")
@click.option("--name", "-n", help="Name to register this machine under")
def login(url: str, password: str, name: str):
    """
    Log in to a CapRover server that is already set up.

    \b
    EXAMPLE:
        captain login -u https://captain.example.com -n production
    """
    store = MachineStore.load()
    prompter = QuestionaryPrompter()

    try:
        url = url or prompter.text("CapRover URL:", default="https://captain.")
        password = password or prompter.password("CapRover password:")
        name = name or prompter.text(
            "Enter a name for this CapRover machine:",
            default=store.default_machine_name(),
            validate=lambda value: store.get_name_error(value.strip())
        )
        machine = login_existing_machine(store, normalize_url(url), password, name.strip())
    except SetupAborted as e:
        console.print(f"[red]Error:[/red] {rich_escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Login cancelled.[/yellow]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Logged in to {machine.name} ({machine.base_url})")


@click.command("list")
def list_machines():
    """
    List registered CapRover machines.
    """
    store = MachineStore.load()

    if not store.machines:
        console.print("[yellow]No machines registered.[/yellow]")
        console.print("Add one with: [cyan]captain serversetup[/cyan] or [cyan]captain login[/cyan]")
        return

    table = Table(title="CapRover Machines")
    table.add_column("Name", style="cyan")
    table.add_column("URL")

    for machine in store.machines:
        table.add_row(machine.name, machine.base_url)

    console.print(table)


@click.command()
@click.argument("name")
def logout(name: str):
    """
    Remove a machine from the local directory.
    """
    store = MachineStore.load()

    if not store.remove_machine(name):
        console.print(f"[red]Error:[/red] No machine named {rich_escape(name)}")
        sys.exit(1)

    console.print(f"[green]✓[/green] Logged out of {name}")


def normalize_url(url: str) -> str:
    """Strip whitespace and trailing slashes, defaulting to https."""
    url = url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


# Register commands
main.add_command(serversetup)
main.add_command(login)
main.add_command(list_machines)
main.add_command(logout)


if __name__ == "__main__":
    main()
