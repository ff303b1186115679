"""Debian/Ubuntu-specific provisioning functions."""
from pathlib import Path
from typing import Dict, Iterable, Optional

from hostprep.system import CommandError, CommandResult, Host
from hostprep.utils import log_action, log_detail, log_info

SUPPORTED_FAMILIES = ("debian", "ubuntu")

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

DEV_PACKAGES = (
    "git",
    "curl",
    "wget",
    "vim",
    "build-essential",
    "ca-certificates",
    "gnupg",
    "lsb-release",
)

GREETING_PACKAGE = "fastfetch"

DOCKER_LEGACY_PACKAGES = ("docker", "docker-engine", "docker.io", "containerd", "runc")
DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)
KEYRINGS_DIR = Path("/etc/apt/keyrings")
DOCKER_KEY = KEYRINGS_DIR / "docker.gpg"
DOCKER_SOURCES = Path("/etc/apt/sources.list.d/docker.list")
DOCKER_DOWNLOAD = "https://download.docker.com/linux"

GREETING_SNIPPET = """
# Run fastfetch on interactive login
if command -v fastfetch >/dev/null 2>&1; then
    fastfetch
fi
"""

ZSHRC_TEMPLATE = """# Basic zsh config
export HISTFILE=~/.zsh_history
export HISTSIZE=5000
export SAVEHIST=5000

setopt INC_APPEND_HISTORY SHARE_HISTORY
setopt HIST_IGNORE_ALL_DUPS

PROMPT='%F{cyan}%n@%m%f:%F{yellow}%~%f %# '

# Aliases
alias ll='ls -alF'
alias la='ls -A'
alias l='ls -CF'

# Run fastfetch if available
if command -v fastfetch >/dev/null 2>&1; then
    fastfetch
fi
"""


def describe(os_release: Dict[str, str]) -> str:
    return os_release.get("PRETTY_NAME") or os_release.get("ID", "unknown")


def is_supported(os_release: Dict[str, str]) -> bool:
    """Check whether the distribution belongs to the Debian family."""
    family = os_release.get("ID_LIKE") or os_release.get("ID", "")
    return any(name in family for name in SUPPORTED_FAMILIES)


def apt_update(host: Host) -> None:
    log_action("Updating apt package lists...")
    host.run(["apt-get", "update", "-y"], env=APT_ENV)


def apt_upgrade(host: Host) -> None:
    log_action("Upgrading existing packages...")
    host.run(["apt-get", "upgrade", "-y"], env=APT_ENV)


def apt_install(host: Host, packages: Iterable[str]) -> None:
    packages = list(packages)
    if not packages:
        return
    host.run(["apt-get", "install", "-y", *packages], env=APT_ENV)


def apt_remove(host: Host, packages: Iterable[str]) -> CommandResult:
    """Remove packages without failing when some are unknown."""
    return host.run(["apt-get", "remove", "-y", *packages], env=APT_ENV, check=False)


def ensure_curl(host: Host) -> None:
    """Install curl when no downloader is available."""
    if host.which("curl") or host.which("wget"):
        return
    log_action("Neither curl nor wget found. Installing curl...")
    apt_install(host, ["curl"])


def fetch(host: Host, url: str) -> str:
    if host.which("curl"):
        return host.run(["curl", "-fsSL", url]).stdout
    return host.run(["wget", "-qO-", url]).stdout


def docker_repo_line(os_release: Dict[str, str], arch: str) -> str:
    distro = os_release.get("ID", "debian")
    codename = os_release.get("VERSION_CODENAME", "")
    return (
        f"deb [arch={arch} signed-by={DOCKER_KEY}] "
        f"{DOCKER_DOWNLOAD}/{distro} {codename} stable\n"
    )


def install_docker_key(host: Host, os_release: Dict[str, str]) -> bool:
    """Fetch the Docker signing key unless it is already present.

    Returns True when the key was fetched.
    """
    if host.exists(DOCKER_KEY):
        log_info("Docker signing key already present.")
        return False

    distro = os_release.get("ID", "debian")
    log_action("Fetching Docker signing key...")
    armored = fetch(host, f"{DOCKER_DOWNLOAD}/{distro}/gpg")
    host.run(["gpg", "--dearmor", "-o", str(DOCKER_KEY)], input=armored)
    host.chmod(DOCKER_KEY, 0o644)
    return True


def register_docker_source(host: Host, os_release: Dict[str, str]) -> str:
    result = host.query(["dpkg", "--print-architecture"])
    if not result.ok:
        raise CommandError(result)
    arch = result.stdout.strip()
    line = docker_repo_line(os_release, arch)
    log_detail(f"Docker apt source: {line.strip()}")
    host.write_file(DOCKER_SOURCES, line)
    return line


def enable_service(host: Host, name: str) -> None:
    host.run(["systemctl", "enable", name])
    host.run(["systemctl", "start", name])


def add_to_group(host: Host, username: str, group: str) -> None:
    host.run(["usermod", "-aG", group, username])


def zsh_path(host: Host) -> str:
    return host.which("zsh") or "/usr/bin/zsh"


def references_greeting(content: str) -> bool:
    return GREETING_PACKAGE in content


def append_greeting(host: Host, rc_file: Path, username: str) -> bool:
    """Hook fastfetch into a startup file.

    Returns False when the file is missing or already runs fastfetch.
    """
    if not host.exists(rc_file):
        log_detail(f"{rc_file} does not exist, not adding fastfetch.")
        return False
    if references_greeting(host.read_file(rc_file)):
        log_info(f"fastfetch already referenced in {rc_file}, not adding again.")
        return False

    log_action(f"Enabling fastfetch for '{username}' in {rc_file}...")
    host.append_file(rc_file, GREETING_SNIPPET)
    host.chown(rc_file, username)
    return True


def find_sudo_group(host: Host) -> Optional[str]:
    """Return the first admin group that exists, preferring sudo over wheel."""
    for group in ("sudo", "wheel"):
        if host.group_exists(group):
            return group
    return None
