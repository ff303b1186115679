"""CLI interface for the bootstrap tool."""
import os
import sys
from typing import List, Optional

import typer

from . import config
from . import prompts
from . import steps
from . import system
from . import utils


def setup(
    user: Optional[str] = typer.Option(None, "--user", metavar="NAME",
                                       help=f"Username to create/use (default: {config.DEFAULT_USERNAME})"),
    no_sudo: bool = typer.Option(False, "--no-sudo", help="Do NOT add user to sudo group"),
    with_docker: bool = typer.Option(False, "--with-docker", help="Install Docker and add user to docker group"),
    with_zsh: bool = typer.Option(False, "--with-zsh", help="Install zsh and make it the user's login shell"),
    no_dev: bool = typer.Option(False, "--no-dev", help="Skip installing common dev packages (git, curl, etc.)"),
    non_interactive: bool = typer.Option(
        False, "--non-interactive",
        help=f"No prompts: password read from ${config.PASSWORD_ENV}, SSH key disabled",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview changes without applying them"),
    log_file: str = typer.Option(config.DEFAULT_LOG_FILE, "--log-file", metavar="PATH", help="Append-only log file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output on the console"),
):
    """Bootstrap a fresh Debian/Ubuntu host: user, packages and shell."""
    log_path = utils.setup_logging(verbose, log_file)

    flags = {
        "user": user,
        "no_sudo": no_sudo,
        "with_docker": with_docker,
        "with_zsh": with_zsh,
        "no_dev": no_dev,
        "non_interactive": non_interactive,
        "dry_run": dry_run,
        "log_file": log_file,
    }
    try:
        cfg = config.resolve(config.DEFAULTS, flags, os.environ)
    except config.ConfigError as e:
        utils.log_error(str(e))
        raise typer.Exit(1)

    host = system.DryRunHost() if cfg.dry_run else system.Host()
    report = steps.run_steps(cfg, host, prompts.TerminalPrompt(),
                             log_file=str(log_path) if log_path else None)
    if report.exit_code:
        raise typer.Exit(report.exit_code)
    typer.echo("✅ Bootstrap complete!")


app = typer.Typer(
    name="hostprep",
    help=f"Bootstrap a fresh Debian/Ubuntu host. Environment: {config.PASSWORD_ENV} supplies "
         "the password in --non-interactive mode.",
    add_completion=False,
    invoke_without_command=True,
    no_args_is_help=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    callback=setup,
)


# Exit code click uses for command-line usage errors
USAGE_ERROR = 2


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return its exit code; usage errors exit with 1."""
    try:
        app(args=argv, prog_name="hostprep")
    except SystemExit as e:
        if e.code is None:
            return 0
        if not isinstance(e.code, int):
            return 1
        return 1 if e.code == USAGE_ERROR else e.code
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
