"""Run configuration: defaults, command-line flags and environment."""
import enum
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from hostprep.prompts import Prompt
from hostprep.utils import log_console, log_detail

DEFAULT_USERNAME = "jack"
DEFAULT_LOG_FILE = "/var/log/bootstrap.log"
PASSWORD_ENV = "NEWUSER_PASSWORD"

KNOWN_FLAGS = frozenset({
    "user",
    "no_sudo",
    "with_docker",
    "with_zsh",
    "no_dev",
    "non_interactive",
    "dry_run",
    "log_file",
})


class PasswordSource(enum.Enum):
    PROMPTED = "prompted"
    ENVIRONMENT = "environment"


class ConfigErrorReason(enum.Enum):
    UNKNOWN_FLAG = "unknown-flag"
    MISSING_PASSWORD = "missing-password"


class ConfigError(Exception):
    """The requested configuration cannot be used."""

    def __init__(self, reason: ConfigErrorReason, message: str):
        self.reason = reason
        super().__init__(message)


@dataclass(frozen=True)
class Defaults:
    username: str = DEFAULT_USERNAME
    grant_sudo: bool = True
    install_dev_packages: bool = True
    install_docker: bool = False
    install_zsh: bool = False
    interactive: bool = True
    log_file: str = DEFAULT_LOG_FILE
    password_env: str = PASSWORD_ENV


DEFAULTS = Defaults()


@dataclass(frozen=True)
class ProvisioningConfig:
    username: str
    grant_sudo: bool
    add_ssh_key: bool
    install_dev_packages: bool
    install_docker: bool
    install_zsh: bool
    interactive: bool
    password_source: PasswordSource
    password: Optional[str] = field(default=None, repr=False)
    log_file: Optional[str] = None
    dry_run: bool = False


def resolve(defaults: Defaults, flags: Mapping[str, Any], env: Mapping[str, str]) -> ProvisioningConfig:
    """Build the run configuration.

    ``flags`` holds parsed command-line values keyed by option name
    (``user``, ``no_sudo``, ``with_docker``...). Missing keys fall back to
    ``defaults``. In non-interactive mode the password must come from the
    environment; otherwise ConfigError is raised before anything touches
    the host.
    """
    unknown = sorted(set(flags) - KNOWN_FLAGS)
    if unknown:
        raise ConfigError(ConfigErrorReason.UNKNOWN_FLAG, f"Unknown option: {unknown[0]}")

    interactive = defaults.interactive and not flags.get("non_interactive", False)

    password = None
    source = PasswordSource.PROMPTED
    if not interactive:
        password = env.get(defaults.password_env) or None
        if password is None:
            raise ConfigError(
                ConfigErrorReason.MISSING_PASSWORD,
                f"Non-interactive mode requires {defaults.password_env} env var.",
            )
        source = PasswordSource.ENVIRONMENT

    config = ProvisioningConfig(
        username=flags.get("user") or defaults.username,
        grant_sudo=defaults.grant_sudo and not flags.get("no_sudo", False),
        # SSH keys are only ever pasted in by a human
        add_ssh_key=False,
        install_dev_packages=defaults.install_dev_packages and not flags.get("no_dev", False),
        install_docker=defaults.install_docker or bool(flags.get("with_docker", False)),
        install_zsh=defaults.install_zsh or bool(flags.get("with_zsh", False)),
        interactive=interactive,
        password_source=source,
        password=password,
        log_file=str(flags.get("log_file") or defaults.log_file),
        dry_run=bool(flags.get("dry_run", False)),
    )
    log_detail(f"Resolved config: {config}")
    return config


def elicit_username(config: ProvisioningConfig, prompt: Prompt) -> ProvisioningConfig:
    """Ask which account to create or reuse."""
    answer = prompt.ask("Enter username to create", default=config.username).strip()
    return replace(config, username=answer or config.username)


def elicit_password(username: str, prompt: Prompt) -> str:
    """Ask for the password until it is non-empty and confirmed."""
    while True:
        password = prompt.secret(f"Enter password for user '{username}'")
        confirmation = prompt.secret("Confirm password")
        if password != confirmation:
            log_console("Passwords do not match, try again.")
            log_detail(f"Password mismatch while configuring user '{username}'.")
        elif not password:
            log_console("Password must not be empty, try again.")
            log_detail(f"Empty password attempted for user '{username}'.")
        else:
            return password


def elicit_credentials(config: ProvisioningConfig, prompt: Prompt) -> ProvisioningConfig:
    """Ask for the password, sudo membership and whether to add an SSH key."""
    password = elicit_password(config.username, prompt)
    grant_sudo = prompt.confirm(f"Add user '{config.username}' to sudo group?", default=config.grant_sudo)
    add_ssh_key = prompt.confirm(f"Add an SSH public key for '{config.username}'?", default=config.add_ssh_key)
    updated = replace(
        config,
        password=password,
        password_source=PasswordSource.PROMPTED,
        grant_sudo=grant_sudo,
        add_ssh_key=add_ssh_key,
    )
    log_detail(f"User config: {updated}")
    return updated
