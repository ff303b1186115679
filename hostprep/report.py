"""Step outcomes and the end-of-run summary."""
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from hostprep.config import ProvisioningConfig
from hostprep.utils import log_console, log_detail, log_error

RULE = "=" * 40


class StepStatus(enum.Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED_NONFATAL = "failed-nonfatal"
    FAILED_FATAL = "failed-fatal"


@dataclass(frozen=True)
class StepResult:
    status: StepStatus
    message: str
    error: Optional[BaseException] = None
    warnings: Tuple[str, ...] = ()
    step: str = ""

    @classmethod
    def ok(cls, message: str, warnings: Tuple[str, ...] = ()) -> "StepResult":
        return cls(StepStatus.OK, message, warnings=warnings)

    @classmethod
    def skipped(cls, message: str) -> "StepResult":
        return cls(StepStatus.SKIPPED, message)

    @classmethod
    def nonfatal(cls, message: str, error: Optional[BaseException] = None,
                 warnings: Tuple[str, ...] = ()) -> "StepResult":
        return cls(StepStatus.FAILED_NONFATAL, message, error=error, warnings=tuple(warnings))

    @classmethod
    def fatal(cls, message: str, error: Optional[BaseException] = None) -> "StepResult":
        return cls(StepStatus.FAILED_FATAL, message, error=error)


@dataclass(frozen=True)
class ProvisioningReport:
    config: ProvisioningConfig
    results: Tuple[StepResult, ...]
    user_existed: Optional[bool] = None
    aborted: bool = False
    log_file: Optional[str] = None
    steps_total: int = field(default=0, compare=False)

    def result(self, step: str) -> Optional[StepResult]:
        for result in self.results:
            if result.step == step:
                return result
        return None

    def status(self, step: str) -> Optional[StepStatus]:
        result = self.result(step)
        return result.status if result else None

    @property
    def exit_code(self) -> int:
        return 1 if self.aborted else 0


def _outcome(report: ProvisioningReport, step: str, done: str, skipped: str = "skipped") -> str:
    status = report.status(step)
    if status is StepStatus.OK:
        return done
    if status is None:
        return "not run"
    if status is StepStatus.SKIPPED:
        return skipped
    return "failed"


def format_summary(report: ProvisioningReport) -> List[str]:
    """Render the report as console lines."""
    config = report.config
    if report.user_existed is None:
        user = config.username
    else:
        user = f"{config.username} ({'existing' if report.user_existed else 'created'})"

    lines = [
        "",
        RULE,
        "Bootstrap aborted." if report.aborted else "Bootstrap finished.",
        f"User:         {user}",
        f"Sudo:         {_outcome(report, 'sudo_group', 'yes', 'no')}",
        f"SSH key:      {_outcome(report, 'ssh_key', 'added')}",
        f"Dev packages: {_outcome(report, 'dev_packages', 'installed')}",
        f"fastfetch:    {_outcome(report, 'greeting_tool', 'installed')}",
        f"Docker:       {_outcome(report, 'docker', 'installed')}",
        f"zsh:          {_outcome(report, 'zsh', 'installed/configured')}",
        f"Log file:     {report.log_file or 'none'}",
        "-" * 40,
        "Steps:",
    ]
    for result in report.results:
        lines.append(f"  {result.status.value:<16} {result.step:<16} {result.message}")
        for warning in result.warnings:
            lines.append(f"  {'':<16} {'':<16} warning: {warning}")
    if report.aborted and report.steps_total > len(report.results):
        lines.append(f"  ({report.steps_total - len(report.results)} remaining steps not run)")
    lines.append(RULE)
    return lines


def emit_summary(report: ProvisioningReport) -> None:
    for line in format_summary(report):
        log_console(line)

    if report.aborted:
        log_error("Bootstrap aborted.")
    else:
        log_detail("Bootstrap finished successfully.")
