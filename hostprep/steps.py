"""Provisioning workflow steps."""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from hostprep import debian
from hostprep.config import ProvisioningConfig, elicit_credentials, elicit_username
from hostprep.prompts import Prompt
from hostprep.report import ProvisioningReport, StepResult, StepStatus, emit_summary
from hostprep.system import CommandError, Host
from hostprep.utils import log_action, log_console, log_detail, log_error, log_info, log_warning


@dataclass
class RunContext:
    """State threaded through one run.

    ``config`` is only ever replaced (by the interactive questions), never
    mutated. ``user_existed`` is what the host reported, not a setting.
    """
    config: ProvisioningConfig
    host: Host
    prompt: Prompt
    user_existed: Optional[bool] = None

    @property
    def home(self) -> Path:
        return self.host.home_of(self.config.username)


@dataclass(frozen=True)
class Step:
    name: str
    action: Callable[[RunContext], StepResult]
    # Whether a failed host command aborts the run
    fatal: bool = True


def check_privileges(ctx: RunContext) -> StepResult:
    """Require root."""
    if ctx.host.is_root():
        return StepResult.ok("Running as root.")
    if ctx.host.dry_run:
        return StepResult.skipped("[DRY RUN] Not running as root, continuing anyway.")
    return StepResult.fatal("This script must be run as root (use sudo).")


def check_distribution(ctx: RunContext) -> StepResult:
    """Make sure this is a Debian/Ubuntu-like system."""
    os_release = ctx.host.os_release()
    if not os_release:
        log_warning("Cannot detect OS (no /etc/os-release). Continuing blindly.")
        return StepResult.ok("OS not detected.", warnings=("no /etc/os-release",))

    name = debian.describe(os_release)
    if debian.is_supported(os_release):
        log_info(f"Detected Debian/Ubuntu-like system: {name}")
        return StepResult.ok(f"Detected {name}.")

    log_warning(f"This script is intended for Debian/Ubuntu. Detected: {name}")
    if not ctx.config.interactive:
        return StepResult.ok(f"Continuing on {name} (non-interactive).",
                             warnings=(f"unsupported distribution {name}",))
    if not ctx.prompt.confirm("Continue anyway?", default=False):
        return StepResult.fatal("Aborting due to unsupported distro.")
    return StepResult.ok(f"Continuing on {name} at operator request.",
                         warnings=(f"unsupported distribution {name}",))


def resolve_user(ctx: RunContext) -> StepResult:
    """Pick the account and record whether it already exists."""
    if ctx.config.interactive:
        ctx.config = elicit_username(ctx.config, ctx.prompt)

    username = ctx.config.username
    ctx.user_existed = ctx.host.user_exists(username)
    if ctx.user_existed:
        log_info(f"User '{username}' already exists.")
        return StepResult.ok(f"User '{username}' exists.")
    log_info(f"User '{username}' does not exist yet, will be created.")
    return StepResult.ok(f"User '{username}' will be created.")


def elicit_user_credentials(ctx: RunContext) -> StepResult:
    """Ask for the password and account options (interactive only)."""
    if not ctx.config.interactive:
        return StepResult.skipped("Password taken from the environment.")
    ctx.config = elicit_credentials(ctx.config, ctx.prompt)
    return StepResult.ok("Credentials collected.")


def create_account(ctx: RunContext) -> StepResult:
    """Create the user unless it already exists."""
    username = ctx.config.username
    if ctx.user_existed:
        log_info(f"Using existing user '{username}'.")
        return StepResult.skipped(f"User '{username}' already exists.")

    log_action(f"Creating user '{username}'...")
    ctx.host.run(["useradd", "-m", "-s", "/bin/bash", username])
    return StepResult.ok(f"Created user '{username}'.")


def assign_password(ctx: RunContext) -> StepResult:
    """Set the password, also for reused accounts."""
    username = ctx.config.username
    if not ctx.config.password:
        return StepResult.fatal(f"No password available for '{username}'.")

    log_detail(f"Setting password for '{username}'.")
    ctx.host.run(["chpasswd"], input=f"{username}:{ctx.config.password}\n")
    return StepResult.ok("Password set.")


def grant_sudo(ctx: RunContext) -> StepResult:
    """Add the user to sudo, or wheel where there is no sudo group."""
    username = ctx.config.username
    if not ctx.config.grant_sudo:
        return StepResult.skipped("Sudo membership not requested.")

    group = debian.find_sudo_group(ctx.host)
    if group is None:
        log_error("No sudo/wheel group found. Skipping sudo group membership.")
        return StepResult.nonfatal("No sudo/wheel group found.")

    log_action(f"Adding '{username}' to {group} group...")
    debian.add_to_group(ctx.host, username, group)
    return StepResult.ok(f"Added to {group}.")


def install_ssh_key(ctx: RunContext) -> StepResult:
    """Append a pasted public key to authorized_keys."""
    username = ctx.config.username
    if not ctx.config.add_ssh_key:
        return StepResult.skipped("SSH key addition not requested.")

    log_console(f"Paste the SSH public key for '{username}' below.")
    log_console("End with an empty line.")
    lines = ctx.prompt.read_lines()
    key = "".join(f"{line}\n" for line in lines)
    if not key.strip():
        log_console("No SSH key entered, skipping.")
        log_detail(f"No SSH key entered for '{username}'.")
        return StepResult.skipped("No SSH key entered.")

    ssh_dir = ctx.home / ".ssh"
    auth_keys = ssh_dir / "authorized_keys"
    ctx.host.make_dirs(ssh_dir, mode=0o700)
    ctx.host.append_file(auth_keys, key, mode=0o600)
    ctx.host.chown(ssh_dir, username, recursive=True)
    log_info(f"SSH key added to {auth_keys}.")
    return StepResult.ok(f"SSH key added to {auth_keys}.")


def update_system(ctx: RunContext) -> StepResult:
    """Refresh the package index and upgrade everything."""
    debian.apt_update(ctx.host)
    debian.apt_upgrade(ctx.host)
    return StepResult.ok("Packages updated and upgraded.")


def install_dev_packages(ctx: RunContext) -> StepResult:
    if not ctx.config.install_dev_packages:
        log_info("Skipping common dev packages installation.")
        return StepResult.skipped("Dev packages disabled.")

    log_action(f"Installing common dev packages ({', '.join(debian.DEV_PACKAGES)})...")
    debian.apt_install(ctx.host, debian.DEV_PACKAGES)
    log_detail("Common dev packages installed.")
    return StepResult.ok("Dev packages installed.")


def install_greeting_tool(ctx: RunContext) -> StepResult:
    log_action(f"Installing {debian.GREETING_PACKAGE}...")
    debian.apt_install(ctx.host, [debian.GREETING_PACKAGE])
    return StepResult.ok(f"{debian.GREETING_PACKAGE} installed.")


def install_docker(ctx: RunContext) -> StepResult:
    """Install Docker CE from Docker's own apt repository."""
    if not ctx.config.install_docker:
        log_info("Skipping Docker installation.")
        return StepResult.skipped("Docker disabled.")

    host = ctx.host
    username = ctx.config.username
    warnings = []
    log_action("Installing Docker (Docker CE) for Debian/Ubuntu...")

    debian.ensure_curl(host)

    removal = debian.apt_remove(host, debian.DOCKER_LEGACY_PACKAGES)
    if not removal.ok:
        log_warning(f"Removing legacy Docker packages failed ({removal.exit_code}), ignoring.")
        warnings.append("legacy package removal failed")

    os_release = host.os_release()
    host.run(["install", "-m", "0755", "-d", str(debian.KEYRINGS_DIR)])
    debian.install_docker_key(host, os_release)
    debian.register_docker_source(host, os_release)
    debian.apt_update(host)
    debian.apt_install(host, debian.DOCKER_PACKAGES)
    debian.enable_service(host, "docker")

    if not host.group_exists("docker"):
        log_error("Docker group not found after installation.")
        return StepResult.nonfatal("Docker installed but the docker group is missing.",
                                  warnings=tuple(warnings))

    debian.add_to_group(host, username, "docker")
    log_info(f"Docker installed. User '{username}' added to docker group (logout/login required).")
    return StepResult.ok("Docker installed.", warnings=tuple(warnings))


def install_zsh(ctx: RunContext) -> StepResult:
    """Install zsh, seed a .zshrc and make it the login shell."""
    if not ctx.config.install_zsh:
        log_info("Skipping zsh installation.")
        return StepResult.skipped("zsh disabled.")

    username = ctx.config.username
    log_action("Installing zsh...")
    debian.apt_install(ctx.host, ["zsh"])

    zshrc = ctx.home / ".zshrc"
    if ctx.host.exists(zshrc):
        log_info(f"{zshrc} already exists, leaving it alone.")
    else:
        ctx.host.write_file(zshrc, debian.ZSHRC_TEMPLATE)
        ctx.host.chown(zshrc, username)
        log_detail(f"Created default .zshrc for '{username}'.")

    log_action(f"Setting zsh as default shell for '{username}'...")
    ctx.host.run(["chsh", "-s", debian.zsh_path(ctx.host), username])
    return StepResult.ok("zsh installed and set as login shell.")


def wire_greeting(ctx: RunContext) -> StepResult:
    """Run fastfetch from the user's shell startup files."""
    rc_files = [ctx.home / ".bashrc"]
    if ctx.config.install_zsh:
        rc_files.append(ctx.home / ".zshrc")

    changed = [str(rc) for rc in rc_files
               if debian.append_greeting(ctx.host, rc, ctx.config.username)]
    if not changed:
        return StepResult.skipped("fastfetch already wired or no startup file.")
    return StepResult.ok(f"fastfetch added to {', '.join(changed)}.")


STEPS = (
    Step("privileges", check_privileges),
    Step("distribution", check_distribution),
    Step("user", resolve_user),
    Step("credentials", elicit_user_credentials),
    Step("account", create_account),
    Step("password", assign_password),
    Step("sudo_group", grant_sudo),
    Step("ssh_key", install_ssh_key),
    Step("system_update", update_system),
    Step("dev_packages", install_dev_packages),
    Step("greeting_tool", install_greeting_tool, fatal=False),
    Step("docker", install_docker),
    Step("zsh", install_zsh),
    Step("greeting_wiring", wire_greeting),
)


def run_step(step: Step, ctx: RunContext) -> StepResult:
    """Run one step, turning host failures into a result per its policy."""
    log_detail(f"Running step {step.name}")
    try:
        result = step.action(ctx)
    except (CommandError, OSError) as e:
        if step.fatal:
            result = StepResult.fatal(str(e), error=e)
        else:
            result = StepResult.nonfatal(str(e), error=e)

    result = StepResult(result.status, result.message, result.error, result.warnings, step.name)
    detail = f"Step {step.name}: {result.status.value} - {result.message}"
    if result.status is StepStatus.FAILED_FATAL:
        log_error(detail)
    elif result.status is StepStatus.FAILED_NONFATAL:
        log_warning(detail)
    else:
        log_detail(detail)
    return result


def run_steps(config: ProvisioningConfig, host: Host, prompt: Prompt,
              steps: Sequence[Step] = STEPS, log_file: Optional[str] = None) -> ProvisioningReport:
    """Main provisioning workflow.

    Steps run in order; the first fatal result stops the run. The summary
    is printed either way.
    """
    ctx = RunContext(config=config, host=host, prompt=prompt)
    results = []
    aborted = False

    for step in steps:
        result = run_step(step, ctx)
        results.append(result)
        if result.status is StepStatus.FAILED_FATAL:
            aborted = True
            break

    report = ProvisioningReport(
        config=ctx.config,
        results=tuple(results),
        user_existed=ctx.user_existed,
        aborted=aborted,
        log_file=log_file,
        steps_total=len(steps),
    )
    emit_summary(report)
    return report
