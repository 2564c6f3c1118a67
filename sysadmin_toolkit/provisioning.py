"""
Provisioning steps for a fresh Debian server.

Every step either applies fully or raises ``StepError``; each one is safe to
run again on an already configured host. The existence checks are plain
read-then-act and assume a single operator running one bootstrap at a time.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from sysadmin_toolkit import config as cfg
from sysadmin_toolkit.commands import Runner, noninteractive_env, run_command
from sysadmin_toolkit.config import BootstrapConfig
from sysadmin_toolkit.errors import ExecutionError, StepError, ValidationError

logger = logging.getLogger(__name__)


class Provisioner:
    """Shared plumbing: the configuration and the command runner."""

    def __init__(self, config: BootstrapConfig, runner: Runner = run_command) -> None:
        self.config = config
        self.runner = runner

    def _run(
        self,
        step: str,
        failure: str,
        cmd: List[str],
        env: Optional[Dict[str, str]] = None,
    ):
        """Run a command, turning a failure into a ``StepError`` for ``step``."""
        try:
            return self.runner(cmd, env=env)
        except ExecutionError as e:
            if e.output:
                logger.debug(e.output)
            raise StepError(step, failure, e.returncode) from e

    def _write_file(self, path: Path, content: str, mode: int = 0o644) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        os.chmod(path, mode)


# ----------------------------------------------------------------
# Packages, Locale and Timezone
# ----------------------------------------------------------------
class SystemUpdater(Provisioner):
    """Package upgrades plus locale and timezone settings."""

    def install_software(self) -> None:
        """Update the package index, upgrade everything, install the base packages."""
        env = noninteractive_env()

        logger.info("Updating package information...")
        self._run("packages", "Failed to update package lists.", ["apt-get", "update"])

        logger.info("Upgrading distribution...")
        self._run(
            "packages",
            "Failed to upgrade distribution.",
            ["apt-get", "dist-upgrade", "-y"],
            env=env,
        )

        logger.info("Upgrading existing packages...")
        self._run(
            "packages",
            "Failed to upgrade packages.",
            ["apt-get", "upgrade", "-y"],
            env=env,
        )

        logger.info("Installing essential system packages...")
        self._run(
            "packages",
            "Failed to install essential packages.",
            ["apt-get", "install", "-y"] + list(self.config.packages),
            env=env,
        )

    def enable_locale(self) -> bool:
        """
        Uncomment the configured locale in the locale generator file.

        Returns:
            bool: True if the file was changed
        """
        locale = self.config.locale
        path = self.config.locale_gen
        try:
            lines = path.read_text().splitlines(keepends=True)
        except OSError as e:
            raise StepError("locale", f"Failed to read {path}: {e}") from e

        updated = [
            line[2:] if locale in line and line.startswith("# ") else line
            for line in lines
        ]
        if updated == lines:
            return False
        path.write_text("".join(updated))
        return True

    def configure_locale_and_timezone(self) -> None:
        locale = self.config.locale
        tz = self.config.timezone

        logger.info(f"Configuring system locale to {locale}...")
        self.enable_locale()
        self._run("locale", "Failed to generate locales.", ["locale-gen"])
        self._run(
            "locale",
            "Failed to update system locale.",
            ["update-locale", f"LANG={locale}"],
        )
        logger.info(f"System locale set to {locale}.")

        logger.info(f"Configuring system timezone to {tz}...")
        self._run(
            "locale",
            f"Failed to set timezone to {tz}.",
            ["timedatectl", "set-timezone", tz],
        )
        logger.info(f"System timezone set to {tz}.")


# ----------------------------------------------------------------
# Users and SSH Keys
# ----------------------------------------------------------------
class UserManager(Provisioner):
    """Creates the non-root user and installs the authorized key."""

    def user_exists(self, user: str) -> bool:
        result = self.runner(["id", user], check=False)
        return result.returncode == 0

    def create_and_configure_user(self) -> None:
        """Create the user if absent, lock its password and grant passwordless sudo."""
        user = self.config.new_user

        if self.user_exists(user):
            logger.info(f"User '{user}' already exists. Skipping creation.")
        else:
            logger.info(f"Creating user '{user}'...")
            self._run(
                "user",
                f"Failed to create user '{user}'.",
                ["useradd", "-m", "-s", self.config.user_shell, user],
            )
            logger.info(f"User '{user}' created.")

            logger.info(f"Locking password for '{user}' to enforce key-based SSH.")
            self._run(
                "user",
                f"Failed to lock password for '{user}'.",
                ["passwd", "-l", user],
            )

        self.configure_sudoers()

    def configure_sudoers(self) -> None:
        """
        (Re)write the user's sudoers drop-in.

        The file is staged next to its final location and only moved into
        place once ``visudo`` accepts it; sudo ignores names containing a dot,
        so the staged copy is never live.
        """
        user = self.config.new_user
        target = self.config.sudoers_file
        staged = target.with_name(target.name + ".tmp")

        logger.info(f"Configuring passwordless sudo for '{user}'...")
        self._write_file(staged, cfg.sudoers_content(user), mode=0o440)
        try:
            self._run(
                "user",
                f"Failed to configure passwordless sudo for '{user}'.",
                ["visudo", "-c", "-f", str(staged)],
            )
        except StepError:
            staged.unlink(missing_ok=True)
            raise
        os.replace(staged, target)
        logger.info(f"Passwordless sudo configured for '{user}'.")

    def add_ssh_key_for_user(self, user: str, home_dir: Path) -> None:
        """
        Add the authorized SSH key for a user.

        Args:
            user: The username (e.g. 'root')
            home_dir: The user's home directory (e.g. '/root')
        """
        key = self.config.authorized_ssh_key.strip()
        ssh_dir = Path(home_dir) / ".ssh"
        auth_keys_file = ssh_dir / "authorized_keys"

        logger.info(f"Configuring SSH key for user '{user}'...")

        if not ssh_dir.is_dir():
            logger.info(f"Creating .ssh directory for {user}...")
            ssh_dir.mkdir(parents=True, exist_ok=True)

        existing = auth_keys_file.read_text() if auth_keys_file.exists() else ""
        if key in existing:
            logger.info(f"SSH key already exists for '{user}'. Skipping.")
        else:
            logger.info(f"Adding SSH key to {auth_keys_file}...")
            prefix = "" if not existing or existing.endswith("\n") else "\n"
            with open(auth_keys_file, "a") as f:
                f.write(f"{prefix}{key}\n")

        logger.info(f"Setting permissions for {user}'s .ssh directory...")
        os.chmod(ssh_dir, 0o700)
        os.chmod(auth_keys_file, 0o600)
        self._run(
            f"ssh_key_{user}",
            f"Failed to set ownership of {ssh_dir}.",
            ["chown", "-R", f"{user}:{user}", str(ssh_dir)],
        )


# ----------------------------------------------------------------
# Security Hardening
# ----------------------------------------------------------------
class SecurityHardener(Provisioner):
    """Firewall, Fail2Ban and SSH daemon settings."""

    def configure_ufw(self) -> None:
        logger.info("Configuring firewall (ufw)...")
        for args in (
            ["default", "deny"],
            ["allow", "ssh"],
            ["limit", "ssh"],
            ["--force", "enable"],
        ):
            self._run(
                "firewall", f"Failed to run 'ufw {' '.join(args)}'.", ["ufw"] + args
            )
        logger.info("Firewall (ufw) configured and enabled.")

        status = self._run("firewall", "Failed to read UFW status.", ["ufw", "status"])
        logger.info(f"UFW status: {(status.stdout or '').strip()}")

    def configure_fail2ban(self) -> None:
        logger.info("Configuring fail2ban...")
        self._write_file(self.config.fail2ban_jail, cfg.fail2ban_jail_content())
        self._run(
            "fail2ban",
            "Failed to enable fail2ban.",
            ["systemctl", "enable", "fail2ban"],
        )
        self._run(
            "fail2ban",
            "Failed to restart fail2ban.",
            ["systemctl", "restart", "fail2ban"],
        )
        logger.info("Fail2Ban configured and restarted.")

    def configure_secure_ssh(self) -> None:
        """
        Disable password logins through an sshd drop-in.

        An existing drop-in is left alone. The full daemon configuration is
        always checked with ``sshd -t``; if the check fails the drop-in is
        removed and the daemon is not touched.
        """
        logger.info("Configuring and securing SSH daemon (sshd)...")
        dropin = self.config.sshd_dropin

        if dropin.is_file():
            logger.info("SSH security configuration already exists. Skipping.")
        else:
            logger.info(f"Creating SSH security configuration at {dropin}")
            self._write_file(dropin, cfg.sshd_dropin_content())

        logger.info("Testing SSH configuration...")
        result = self.runner(["sshd", "-t"], check=False)
        if result.returncode != 0:
            if result.stderr:
                logger.debug(result.stderr.strip())
            dropin.unlink(missing_ok=True)
            raise ValidationError(
                "ssh",
                f"SSH configuration test failed. Review settings in '{dropin}'.",
                result.returncode,
            )

        logger.info("Reloading SSH service to apply changes...")
        self._run(
            "ssh",
            "Failed to reload SSH service. Check 'systemctl status sshd'.",
            ["systemctl", "reload-or-restart", "sshd"],
        )
        logger.info("SSH secured successfully.")


# ----------------------------------------------------------------
# Maintenance
# ----------------------------------------------------------------
class MaintenanceManager(Provisioner):
    def configure_unattended_upgrades(self) -> None:
        logger.info("Configuring unattended-upgrades...")
        conf_dir = self.config.apt_conf_dir
        # Enables the periodic jobs.
        self._write_file(conf_dir / "20auto-upgrades", cfg.auto_upgrades_content())
        # What gets updated and how.
        self._write_file(
            conf_dir / "50unattended-upgrades",
            cfg.unattended_upgrades_content(self.config.reboot_time),
        )
        logger.info("Unattended upgrades configured.")
