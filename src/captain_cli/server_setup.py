"""
Captain CLI Server Setup
The setup pipeline: resolve credentials, assign the root domain, enable HTTPS
and rotate the password, then register the machine locally.

Every step works on a SetupContext and either returns normally or raises
SetupAborted after printing its own diagnostics. Nothing is rolled back once
the server has been changed.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape as rich_escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from .api_client import (
    CaptainApi, CaptainApiError, WrongPasswordError,
    VerificationFailedError, AlreadyConfiguredError,
)
from .machine_config import (
    MachineProfile, DEFAULT_PASSWORD, SETUP_PORT, CAPTAIN_SUBDOMAIN,
)
from .machine_store import MachineStore

logger = logging.getLogger(__name__)

console = Console()

ApiFactory = Callable[[str, str], CaptainApi]


class SetupAborted(Exception):
    """The wizard cannot continue. Diagnostics have already been printed."""


@dataclass
class SetupContext:
    """
    Everything one wizard run carries from step to step.

    The profile is the machine being configured. The remaining fields only
    bridge a step's output to the next step's input and are discarded when the
    wizard exits.
    """
    store: MachineStore
    api_factory: ApiFactory = CaptainApi
    profile: MachineProfile = field(default_factory=MachineProfile)
    last_working_password: str = DEFAULT_PASSWORD
    new_password_first_try: Optional[str] = None
    server_ip: str = ""
    # Set once root SSL is enabled; the server can no longer be set up from scratch
    https_enabled: bool = False

    def api(self) -> CaptainApi:
        """Client for the profile's current address."""
        return self.api_factory(self.profile.base_url, self.profile.auth_token)


# ============ Credentials ============

def resolve_auth_token(ctx: SetupContext, ip_address: str) -> str:
    """
    Log in to a freshly installed server using the last working password.

    Returns the auth token, or an empty string when the password was rejected
    so the caller can ask for the current one.
    """
    ctx.profile.base_url = f"http://{ip_address}:{SETUP_PORT}"
    logger.debug(f"Trying default credentials at {ctx.profile.base_url}")

    try:
        token = ctx.api().login(ctx.last_working_password)
    except WrongPasswordError:
        logger.info(f"Default password rejected by {ip_address}")
        ctx.server_ip = ip_address
        return ""
    except AlreadyConfiguredError as e:
        console.print(
            "\n\n[red]**** You may have already setup the server! "
            "Use captain login to log into an existing server.[/red]"
        )
        raise SetupAborted(str(e)) from e
    except CaptainApiError as e:
        raise SetupAborted(str(e)) from e

    ctx.server_ip = ip_address
    ctx.profile.auth_token = token
    return token


def try_current_password(ctx: SetupContext, password: str) -> None:
    """Log in with an operator-supplied password. There is no further fallback."""
    try:
        token = ctx.api().login(password)
    except CaptainApiError as e:
        raise SetupAborted(str(e)) from e

    ctx.last_working_password = password
    ctx.profile.auth_token = token


# ============ Root domain ============

def update_root_domain(ctx: SetupContext, root_domain: str) -> None:
    """Assign the root domain and switch the profile to address the server by name."""
    try:
        ctx.api().update_root_domain(root_domain)
    except VerificationFailedError as e:
        _print_domain_hints(ctx, root_domain)
        raise SetupAborted(str(e)) from e
    except CaptainApiError as e:
        raise SetupAborted(str(e)) from e

    ctx.profile.base_url = f"http://{CAPTAIN_SUBDOMAIN}.{root_domain}"
    logger.info(f"Root domain set, server now at {ctx.profile.base_url}")


def _print_domain_hints(ctx: SetupContext, root_domain: str) -> None:
    domain = rich_escape(root_domain)
    console.print("\n")

    if "/" in root_domain:
        console.print(
            "[red]DO NOT include http in your base domain, it should be just "
            "plain domain, e.g., test.domain.com[/red]"
        )

    if "*" in root_domain:
        console.print(
            "[red]DO NOT include * in your base domain, it should be just "
            "plain domain, e.g., test.domain.com[/red]"
        )

    console.print(
        f"\n\n[red]Cannot verify that http://{CAPTAIN_SUBDOMAIN}.{domain} points to your server IP.[/red]\n"
        f"\nAre you sure that you set *.{domain} points to {ctx.server_ip}\n\n"
        "Double check your DNS. If everything looks correct, note that, DNS changes "
        "take up to 24 hrs to work properly. Check with your Domain Provider."
    )


# ============ HTTPS + password ============

def enable_https_and_change_password(ctx: SetupContext, email_address: str) -> None:
    """
    Enable root SSL, force HTTPS and rotate the password.

    Once SSL is enabled the server cannot go through setup again, so any later
    failure leaves the operator with manual recovery instructions instead.
    """
    if not ctx.new_password_first_try:
        raise SetupAborted("No new password was provided")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("Enabling SSL... Takes a few seconds..."),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("ssl", total=None)
            ctx.api().enable_root_ssl(email_address)
    except CaptainApiError as e:
        console.print("[red]✗[/red] Enabling SSL failed")
        raise SetupAborted(str(e)) from e
    except KeyboardInterrupt:
        # The request was already sent; the server may finish issuing the certificate
        console.print(
            "\n[yellow]Interrupted while enabling SSL. HTTPS may already be enabled "
            "on the server.[/yellow]"
        )
        _print_recovery_guidance(ctx, ctx.profile.base_url.replace("http://", "https://", 1))
        raise

    ctx.profile.base_url = ctx.profile.base_url.replace("http://", "https://", 1)
    ctx.https_enabled = True
    console.print("[green]✓[/green] SSL enabled")

    try:
        api = ctx.api()
        api.force_ssl(True)
        api.change_password(ctx.last_working_password, ctx.new_password_first_try)
        ctx.last_working_password = ctx.new_password_first_try
        # Confirms both the new password and the https address work
        ctx.profile.auth_token = ctx.api().login(ctx.last_working_password)
    except CaptainApiError as e:
        _print_recovery_guidance(ctx)
        raise SetupAborted(str(e)) from e
    except KeyboardInterrupt:
        _print_recovery_guidance(ctx)
        raise

    console.print("[green]✓[/green] Password changed")


def _print_recovery_guidance(ctx: SetupContext, url: Optional[str] = None) -> None:
    url = rich_escape(url or ctx.profile.base_url)
    console.print(
        "\n[red]Server is setup, but password was not changed due to an error. "
        "You cannot use serversetup again.[/red]"
    )
    console.print(f"[red]Instead, go to {url} and change your password on settings page.[/red]")
    console.print("[red]Then, use captain login on your local machine to connect to your server.[/red]")


# ============ Directory ============

def register_machine(ctx: SetupContext, name: str) -> MachineProfile:
    """Name the profile and persist it. Callers validate the name beforehand."""
    ctx.profile.name = name
    ctx.store.save_machine(ctx.profile)
    logger.info(f"Registered {name} at {ctx.profile.base_url}")
    return ctx.profile


def login_existing_machine(
    store: MachineStore,
    base_url: str,
    password: str,
    name: str,
    api_factory: ApiFactory = CaptainApi,
) -> MachineProfile:
    """Register a server that has already been set up."""
    error = store.get_name_error(name)
    if error is not True:
        raise SetupAborted(error)

    try:
        token = api_factory(base_url, "").login(password)
    except CaptainApiError as e:
        raise SetupAborted(str(e)) from e

    profile = MachineProfile(name=name, base_url=base_url, auth_token=token)
    store.save_machine(profile)
    return profile
