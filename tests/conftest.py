"""
Shared fixtures: an in-memory CapRover server, a scripted prompter and a
recording console.
"""

import io

import pytest
from rich.console import Console

from captain_cli import server_setup, setup_wizard
from captain_cli.api_client import (
    AlreadyConfiguredError, ServerUnreachableError,
    VerificationFailedError, WrongPasswordError,
    STATUS_UNKNOWN_ERROR, STATUS_VERIFICATION_FAILED, STATUS_WRONG_PASSWORD,
)
from captain_cli.machine_config import DEFAULT_PASSWORD
from captain_cli.machine_store import MachineStore
from captain_cli.server_setup import SetupContext


class FakeServer:
    """Behaves like a freshly installed CapRover server."""

    def __init__(self, password=DEFAULT_PASSWORD, resolvable_domains=(),
                 already_configured=False, unreachable=False):
        self.password = password
        self.resolvable_domains = set(resolvable_domains)
        self.already_configured = already_configured
        self.unreachable = unreachable
        self.root_domain = None
        self.ssl_enabled = False
        self.ssl_forced = False
        # method name -> exception raised on the next and all later calls
        self.failures = {}
        self.calls = []
        self.login_attempts = []

    def api(self, base_url, auth_token):
        return FakeCaptainApi(self, base_url, auth_token)

    def call_names(self):
        return [name for name, _ in self.calls]


class FakeCaptainApi:

    def __init__(self, server, base_url, auth_token):
        self.server = server
        self.base_url = base_url
        self.auth_token = auth_token

    def _record(self, name):
        self.server.calls.append((name, self.base_url))
        if self.server.unreachable:
            raise ServerUnreachableError(STATUS_UNKNOWN_ERROR, f"Cannot connect to {self.base_url}")
        if name in self.server.failures:
            raise self.server.failures[name]

    def login(self, password):
        self._record("login")
        self.server.login_attempts.append(password)
        if self.server.already_configured and self.base_url.startswith("http://"):
            raise AlreadyConfiguredError(self.base_url.replace("http://", "https://"))
        if password != self.server.password:
            raise WrongPasswordError(STATUS_WRONG_PASSWORD, "Password is incorrect.")
        return f"token-{password}"

    def update_root_domain(self, root_domain):
        self._record("update_root_domain")
        if root_domain not in self.server.resolvable_domains:
            raise VerificationFailedError(STATUS_VERIFICATION_FAILED, "Verification Failed.")
        self.server.root_domain = root_domain

    def enable_root_ssl(self, email_address):
        self._record("enable_root_ssl")
        self.server.ssl_enabled = True

    def force_ssl(self, enabled):
        self._record("force_ssl")
        self.server.ssl_forced = enabled

    def change_password(self, old_password, new_password):
        self._record("change_password")
        if old_password != self.server.password:
            raise WrongPasswordError(STATUS_WRONG_PASSWORD, "Password is incorrect.")
        self.server.password = new_password


class ScriptedPrompter:
    """
    Answers prompts from a list.

    ``None`` accepts the prompt's default. Answers rejected by a validator are
    recorded in ``errors`` and the next answer is tried, like a reprompt.
    """

    def __init__(self, answers):
        self.answers = list(answers)
        self.asked = []
        self.errors = []

    def _next(self, message):
        self.asked.append(message)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        return self.answers.pop(0)

    def text(self, message, default="", validate=None):
        while True:
            answer = self._next(message)
            if answer is None:
                answer = default
            if validate is None:
                return answer
            result = validate(answer)
            if result is True:
                return answer
            self.errors.append(result)

    def password(self, message):
        return self._next(message)

    def confirm(self, message, default=True):
        answer = self._next(message)
        return default if answer is None else answer


@pytest.fixture
def server():
    return FakeServer(resolvable_domains={"test.example.com", "demo.example.org"})


@pytest.fixture
def store(tmp_path):
    return MachineStore.load(tmp_path)


@pytest.fixture
def context(server, store):
    return SetupContext(store=store, api_factory=server.api)


@pytest.fixture
def output(monkeypatch):
    """Console shared by the setup modules; call export_text() to read it."""
    console = Console(record=True, width=300, file=io.StringIO())
    monkeypatch.setattr(server_setup, "console", console)
    monkeypatch.setattr(setup_wizard, "console", console)
    return console
