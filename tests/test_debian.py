"""Tests for Debian/Ubuntu-specific provisioning functions."""
import pytest
from pathlib import Path
from unittest.mock import patch

from hostprep import debian
from hostprep.system import CommandError, Host

from conftest import FakeHost


@pytest.mark.parametrize("os_release, expected", [
    ({"ID": "ubuntu", "ID_LIKE": "debian"}, True),
    ({"ID": "debian"}, True),
    ({"ID": "linuxmint", "ID_LIKE": "ubuntu debian"}, True),
    ({"ID": "fedora"}, False),
    ({"ID": "rocky", "ID_LIKE": "rhel centos fedora"}, False),
])
def test_is_supported(os_release, expected):
    assert debian.is_supported(os_release) is expected


def test_docker_repo_line():
    line = debian.docker_repo_line({"ID": "debian", "VERSION_CODENAME": "bookworm"}, "arm64")

    assert line == (
        "deb [arch=arm64 signed-by=/etc/apt/keyrings/docker.gpg] "
        "https://download.docker.com/linux/debian bookworm stable\n"
    )


def test_apt_commands_are_noninteractive():
    host = FakeHost()
    env_seen = []
    original = host.execute

    def execute(argv, *, input=None, env=None):
        env_seen.append(env)
        return original(argv, input=input, env=env)

    host.execute = execute
    debian.apt_update(host)
    debian.apt_upgrade(host)

    assert host.commands == [("apt-get", "update", "-y"), ("apt-get", "upgrade", "-y")]
    assert env_seen == [debian.APT_ENV, debian.APT_ENV]


def test_apt_install_nothing():
    host = FakeHost()
    debian.apt_install(host, [])
    assert host.commands == []


def test_ensure_curl_installs_when_missing():
    host = FakeHost()
    host.which = lambda command: None

    debian.ensure_curl(host)

    assert host.ran("apt-get", "install", "-y", "curl")


def test_install_docker_key_pipes_key_into_gpg():
    host = FakeHost()

    assert debian.install_docker_key(host, {"ID": "ubuntu"}) is True

    assert host.ran("curl", "-fsSL", "https://download.docker.com/linux/ubuntu/gpg")
    gpg = ("gpg", "--dearmor", "-o", "/etc/apt/keyrings/docker.gpg")
    assert host.inputs[gpg].startswith("-----BEGIN PGP")
    assert host.modes["/etc/apt/keyrings/docker.gpg"] == 0o644


def test_find_sudo_group_none():
    assert debian.find_sudo_group(FakeHost(groups=())) is None


def test_append_greeting_chowns_file():
    host = FakeHost(files={"/home/jack/.bashrc": ""})

    assert debian.append_greeting(host, Path("/home/jack/.bashrc"), "jack") is True
    assert host.ran("chown", "jack:jack", "/home/jack/.bashrc")


def test_register_docker_source():
    host = FakeHost()

    line = debian.register_docker_source(host, {"ID": "ubuntu", "VERSION_CODENAME": "jammy"})

    assert "[arch=amd64 " in line
    assert host.files[str(debian.DOCKER_SOURCES)] == line


def test_register_docker_source_unknown_arch():
    host = FakeHost()
    host.fail("dpkg", "--print-architecture", exit_code=1)

    with pytest.raises(CommandError):
        debian.register_docker_source(host, {"ID": "ubuntu", "VERSION_CODENAME": "jammy"})

    assert str(debian.DOCKER_SOURCES) not in host.files


def test_append_greeting_latin1_bashrc(tmp_path):
    rc_file = tmp_path / ".bashrc"
    rc_file.write_bytes(b"# r\xe9glages\nexport EDITOR=vim\n")
    host = Host()

    with patch.object(host, 'chown') as chown:
        assert debian.append_greeting(host, rc_file, "jack") is True

    chown.assert_called_once_with(rc_file, "jack")
    content = rc_file.read_bytes()
    assert content.startswith(b"# r\xe9glages\n")
    assert content.endswith(debian.GREETING_SNIPPET.encode("utf-8"))
