#!/usr/bin/env python3
"""
Debian Server Bootstrap
-----------------------

Bootstraps a fresh Debian server. Idempotent; safe to run again. It:
  • Installs required packages and upgrades the system.
  • Sets the locale to en_US.UTF-8 and the timezone to UTC.
  • Configures the UFW firewall, Fail2Ban and unattended upgrades.
  • Creates a non-root user with passwordless sudo.
  • Adds the authorized SSH key for root and the new user.
  • Secures the SSH daemon by disabling password authentication.

Requires root privileges. Exits 0 on success and 1 on any failure.
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from rich.panel import Panel
from rich.style import Style
from rich.traceback import install as install_rich_traceback

from sysadmin_toolkit import __version__
from sysadmin_toolkit.commands import Runner, run_command
from sysadmin_toolkit.config import BootstrapConfig
from sysadmin_toolkit.errors import SetupError, StepError
from sysadmin_toolkit.preflight import PreflightChecker
from sysadmin_toolkit.provisioning import (
    MaintenanceManager,
    SecurityHardener,
    SystemUpdater,
    UserManager,
)
from sysadmin_toolkit.runlog import RunContext, close_logging, setup_logging
from sysadmin_toolkit.ui import NordColors, console, create_header, status_table

SCRIPT_NAME = "bootstrap-debian"
APP_NAME = "Debian Bootstrap"
APP_SUBTITLE = "Server Setup & Hardening"

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------
# Step Pipeline
# ----------------------------------------------------------------
@dataclass
class Step:
    key: str
    description: str
    action: Callable[[], None]


@dataclass
class StepResult:
    key: str
    description: str
    status: str = "pending"
    message: str = ""
    error: Optional[StepError] = None


def build_steps(config: BootstrapConfig, runner: Runner = run_command) -> List[Step]:
    """Return the provisioning steps in the order they must run."""
    updater = SystemUpdater(config, runner)
    users = UserManager(config, runner)
    security = SecurityHardener(config, runner)
    maintenance = MaintenanceManager(config, runner)
    user = config.new_user

    return [
        Step("packages", "Install and upgrade packages", updater.install_software),
        Step(
            "locale",
            "Configure locale and timezone",
            updater.configure_locale_and_timezone,
        ),
        Step("user", f"Create user '{user}'", users.create_and_configure_user),
        Step(
            "ssh_key_root",
            "Add SSH key for 'root'",
            lambda: users.add_ssh_key_for_user("root", config.root_home),
        ),
        Step(
            f"ssh_key_{user}",
            f"Add SSH key for '{user}'",
            lambda: users.add_ssh_key_for_user(user, config.user_home),
        ),
        Step("firewall", "Configure UFW firewall", security.configure_ufw),
        Step("fail2ban", "Configure Fail2Ban", security.configure_fail2ban),
        Step(
            "unattended_upgrades",
            "Configure unattended upgrades",
            maintenance.configure_unattended_upgrades,
        ),
        Step("ssh", "Secure SSH daemon", security.configure_secure_ssh),
    ]


def run_pipeline(steps: Sequence[Step]) -> List[StepResult]:
    """
    Run steps in order, stopping at the first failure.

    Steps after a failure stay ``pending``; nothing already applied is undone.

    Returns:
        One result per step, in order.
    """
    results = [StepResult(s.key, s.description) for s in steps]
    for step, result in zip(steps, results):
        try:
            step.action()
        except (StepError, OSError) as e:
            if not isinstance(e, StepError):
                e = StepError(step.key, f"{step.description} failed: {e}")
            logger.error(str(e))
            result.status = "failed"
            result.message = str(e)
            result.error = e
            break
        result.status = "success"
        result.message = "Done"
    return results


def first_failure(results: Sequence[StepResult]) -> Optional[StepResult]:
    return next((r for r in results if r.status == "failed"), None)


# ----------------------------------------------------------------
# Main Orchestration Class
# ----------------------------------------------------------------
class DebianBootstrap:
    """Runs the preflight checks and the provisioning pipeline."""

    def __init__(
        self,
        config: BootstrapConfig,
        runner: Runner = run_command,
        geteuid: Callable[[], int] = os.geteuid,
        log_file: Optional[str] = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.preflight = PreflightChecker(geteuid)
        self.log_file = log_file
        self.results: List[StepResult] = []

    def run(self) -> int:
        """
        Returns:
            int: Exit code (0 for success, 1 for failure)
        """
        try:
            self.preflight.run(self.config)
        except SetupError as e:
            logger.error(str(e))
            return 1

        logger.info(
            f"Debian server bootstrap script started. Logging to: {self.log_file}"
        )

        self.results = run_pipeline(build_steps(self.config, self.runner))
        self.report()
        if first_failure(self.results):
            return 1
        self.summary()
        return 0

    def report(self) -> None:
        if not self.results:
            return
        rows = [[r.description, r.status, r.message] for r in self.results]
        console.print(status_table(rows, title="Debian Bootstrap Status"))

    def summary(self) -> None:
        user = self.config.new_user
        lines = [
            "✅ ✅ ✅",
            "-" * 66,
            f"Debian server bootstrap completed, output logged to: {self.log_file}",
            "",
            "System configured with:",
            "  - Updated system packages.",
            f"  - Locale set to {self.config.locale} and timezone to {self.config.timezone}.",
            "  - UFW Firewall, Fail2Ban, and Unattended Upgrades enabled.",
            f"  - User '{user}' created with passwordless sudo.",
            f"  - SSH key added for 'root' and '{user}'.",
            "  - SSH secured (public key authentication required).",
            "",
            f"You should now be able to SSH into the server as 'root' or '{user}' using your key.",
            "Consider rebooting ('sudo reboot') to apply any kernel updates and for all locale changes to take effect.",
            "-" * 66,
        ]
        for line in lines:
            logger.info(line)
        console.print(
            Panel(
                f"[bold {NordColors.GREEN}]✓ Bootstrap complete. Log: {self.log_file}[/]",
                border_style=Style(color=NordColors.FROST_1),
                padding=(1, 2),
            )
        )


# ----------------------------------------------------------------
# Main Entry Point
# ----------------------------------------------------------------
def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point. Arguments are ignored; edit the settings in
    ``sysadmin_toolkit.config`` or export the override variables instead.
    """
    install_rich_traceback()
    context = RunContext.create(SCRIPT_NAME)
    log = setup_logging(context)
    try:
        console.print(create_header(APP_NAME, APP_SUBTITLE, __version__))
        config = BootstrapConfig.from_environment()
        return DebianBootstrap(config, log_file=str(context.log_file)).run()
    except KeyboardInterrupt:
        log.error("Process interrupted by user. Re-run to finish configuration.")
        return 130
    except Exception as e:
        log.exception(f"Unexpected error: {e}")
        return 1
    finally:
        close_logging(log)


if __name__ == "__main__":
    sys.exit(main())
