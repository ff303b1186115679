"""Host access: every command and file change goes through here."""
import os
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

from sh import Command, CommandNotFound, ErrorReturnCode

from hostprep import utils
from hostprep.utils import log_action, log_detail

OS_RELEASE = "/etc/os-release"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command."""
    argv: Tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandError(RuntimeError):
    """A command that had to succeed exited non-zero."""

    def __init__(self, result: CommandResult):
        self.result = result
        detail = result.stderr.strip()
        message = f"Command failed ({result.exit_code}): {format_argv(result.argv)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def parse_os_release(content: str) -> Dict[str, str]:
    """Parse os-release KEY=value lines, dropping quotes."""
    fields = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key.strip()] = value.strip().strip('"\'')
    return fields


class Host:
    """The machine being provisioned."""

    dry_run = False

    def execute(self, argv: Sequence[str], *, input: Optional[str] = None,
                env: Optional[Mapping[str, str]] = None) -> CommandResult:
        """Run a command and capture its result without raising."""
        argv = tuple(str(a) for a in argv)
        log_detail(f"CMD {format_argv(argv)}")

        try:
            command = Command(argv[0])
        except CommandNotFound:
            log_detail(f"Command not found: {argv[0]}")
            return CommandResult(argv, 127, "", f"{argv[0]}: command not found")

        kwargs = {"_return_cmd": True}
        if input is not None:
            kwargs["_in"] = input
        if env:
            kwargs["_env"] = {**os.environ, **env}

        try:
            proc = command(*argv[1:], **kwargs)
            result = CommandResult(argv, proc.exit_code, _text(proc.stdout), _text(proc.stderr))
        except ErrorReturnCode as e:
            result = CommandResult(argv, e.exit_code, _text(e.stdout), _text(e.stderr))

        if result.stdout.strip():
            log_detail(f"STDOUT {result.stdout.strip()}")
        if result.stderr.strip():
            log_detail(f"STDERR {result.stderr.strip()}")
        if not result.ok:
            log_detail(f"EXIT {result.exit_code}")
        return result

    def run(self, argv: Sequence[str], *, input: Optional[str] = None,
            env: Optional[Mapping[str, str]] = None, check: bool = True) -> CommandResult:
        """Run a command that changes the host."""
        result = self.execute(argv, input=input, env=env)
        if check and not result.ok:
            raise CommandError(result)
        return result

    def query(self, argv: Sequence[str]) -> CommandResult:
        """Run a read-only command; also executed in dry-run mode."""
        return self.execute(argv)

    def is_root(self) -> bool:
        return utils.is_root()

    def which(self, command: str) -> Optional[str]:
        return shutil.which(command)

    def os_release(self) -> Dict[str, str]:
        """Return the os-release fields, or {} when the file is missing."""
        if not self.exists(OS_RELEASE):
            return {}
        return parse_os_release(self.read_file(OS_RELEASE))

    def user_exists(self, username: str) -> bool:
        return self.query(["id", username]).ok

    def group_exists(self, group: str) -> bool:
        return self.query(["getent", "group", group]).ok

    def home_of(self, username: str) -> Path:
        home = os.path.expanduser(f"~{username}")
        if home.startswith("~"):
            # Not created yet (dry run)
            return Path("/home") / username
        return Path(home)

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def read_file(self, path: PathLike) -> str:
        # Startup files are not always UTF-8
        return Path(path).read_text(encoding="utf-8", errors="replace")

    def write_file(self, path: PathLike, content: str, mode: Optional[int] = None) -> None:
        log_detail(f"Writing {path}")
        Path(path).write_text(content, encoding="utf-8")
        if mode is not None:
            self.chmod(path, mode)

    def append_file(self, path: PathLike, content: str, mode: Optional[int] = None) -> None:
        log_detail(f"Appending to {path}")
        with open(path, "a", encoding="utf-8") as f:
            f.write(content)
        if mode is not None:
            self.chmod(path, mode)

    def make_dirs(self, path: PathLike, mode: Optional[int] = None) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)
        if mode is not None:
            self.chmod(path, mode)

    def chmod(self, path: PathLike, mode: int) -> None:
        os.chmod(path, mode)

    def chown(self, path: PathLike, username: str, recursive: bool = False) -> None:
        argv = ["chown"]
        if recursive:
            argv.append("-R")
        self.run([*argv, f"{username}:{username}", str(path)])


class DryRunHost(Host):
    """Reports what would change and only performs reads."""

    dry_run = True

    def run(self, argv: Sequence[str], *, input: Optional[str] = None,
            env: Optional[Mapping[str, str]] = None, check: bool = True) -> CommandResult:
        argv = tuple(str(a) for a in argv)
        log_action(f"[DRY RUN] Would run: {format_argv(argv)}")
        return CommandResult(argv, 0)

    def write_file(self, path: PathLike, content: str, mode: Optional[int] = None) -> None:
        log_action(f"[DRY RUN] Would write {path}")

    def append_file(self, path: PathLike, content: str, mode: Optional[int] = None) -> None:
        log_action(f"[DRY RUN] Would append to {path}")

    def make_dirs(self, path: PathLike, mode: Optional[int] = None) -> None:
        log_action(f"[DRY RUN] Would create directory {path}")

    def chmod(self, path: PathLike, mode: int) -> None:
        log_action(f"[DRY RUN] Would chmod {mode:o} {path}")
