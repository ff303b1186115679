"""Shared fakes for the provisioning tests."""
from pathlib import Path

import pytest

from hostprep.config import PasswordSource, ProvisioningConfig
from hostprep.system import CommandResult, Host

UBUNTU_RELEASE = """NAME="Ubuntu"
VERSION_ID="22.04"
PRETTY_NAME="Ubuntu 22.04.4 LTS"
ID=ubuntu
ID_LIKE=debian
VERSION_CODENAME=jammy
"""


class FakeHost(Host):
    """In-memory host that records commands instead of running them."""

    def __init__(self, root=True, users=(), groups=("sudo",), files=None):
        self.root = root
        self.users = set(users)
        self.groups = set(groups)
        self.files = {"/etc/os-release": UBUNTU_RELEASE}
        self.files.update(files or {})
        self.dirs = set()
        self.modes = {}
        self.commands = []
        self.inputs = {}
        self.failures = {}

    def fail(self, *prefix, exit_code=100):
        """Make commands starting with prefix exit non-zero."""
        self.failures[tuple(prefix)] = exit_code

    def ran(self, *prefix):
        return any(argv[:len(prefix)] == prefix for argv in self.commands)

    def execute(self, argv, *, input=None, env=None):
        argv = tuple(str(a) for a in argv)
        self.commands.append(argv)
        if input is not None:
            self.inputs[argv] = input

        for prefix, code in self.failures.items():
            if argv[:len(prefix)] == prefix:
                return CommandResult(argv, code, "", "failed")

        stdout = ""
        if argv[0] == "id":
            return CommandResult(argv, 0 if argv[1] in self.users else 1)
        if argv[:2] == ("getent", "group"):
            return CommandResult(argv, 0 if argv[2] in self.groups else 2)
        if argv[0] == "useradd":
            self.users.add(argv[-1])
        elif argv[:2] == ("dpkg", "--print-architecture"):
            stdout = "amd64\n"
        elif argv[:2] == ("curl", "-fsSL"):
            stdout = "-----BEGIN PGP PUBLIC KEY BLOCK-----\n"
        elif argv[:3] == ("apt-get", "install", "-y") and "docker-ce" in argv:
            self.groups.add("docker")
        return CommandResult(argv, 0, stdout, "")

    def is_root(self):
        return self.root

    def which(self, command):
        return f"/usr/bin/{command}"

    def home_of(self, username):
        return Path("/home") / username

    def exists(self, path):
        return str(path) in self.files or str(path) in self.dirs

    def read_file(self, path):
        return self.files[str(path)]

    def write_file(self, path, content, mode=None):
        self.files[str(path)] = content
        if mode is not None:
            self.chmod(path, mode)

    def append_file(self, path, content, mode=None):
        self.files[str(path)] = self.files.get(str(path), "") + content
        if mode is not None:
            self.chmod(path, mode)

    def make_dirs(self, path, mode=None):
        self.dirs.add(str(path))
        if mode is not None:
            self.chmod(path, mode)

    def chmod(self, path, mode):
        self.modes[str(path)] = mode


class ScriptedPrompt:
    """Prompt that answers from canned lists and records the questions."""

    def __init__(self, answers=(), secrets=(), confirms=(), lines=()):
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.confirms = list(confirms)
        self.lines = list(lines)
        self.asked = []

    def ask(self, text, default=None):
        self.asked.append(text)
        return self.answers.pop(0) if self.answers else (default or "")

    def secret(self, text):
        self.asked.append(text)
        return self.secrets.pop(0)

    def confirm(self, text, default=False):
        self.asked.append(text)
        return self.confirms.pop(0) if self.confirms else default

    def read_lines(self):
        return list(self.lines)


def make_config(**overrides):
    values = dict(
        username="jack",
        grant_sudo=True,
        add_ssh_key=False,
        install_dev_packages=True,
        install_docker=False,
        install_zsh=False,
        interactive=False,
        password_source=PasswordSource.ENVIRONMENT,
        password="s3cret",
        log_file=None,
        dry_run=False,
    )
    values.update(overrides)
    return ProvisioningConfig(**values)


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def prompt():
    return ScriptedPrompt()
