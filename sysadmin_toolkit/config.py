"""
Bootstrap configuration.

Edit ``NEW_USER`` and ``AUTHORIZED_SSH_KEY`` before running, or export
``BOOTSTRAP_NEW_USER`` / ``BOOTSTRAP_SSH_KEY``. The shipped values are
placeholders and the bootstrap refuses to run while either is still in place.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from sysadmin_toolkit.errors import ConfigurationError

# ----------------------------------------------------------------
# Operator Settings
# ----------------------------------------------------------------
# The username for the new non-root user.
NEW_USER: str = "NEW_USER"

# The public SSH key added for both root and the new user.
AUTHORIZED_SSH_KEY: str = "ssh-rsa AAAA... user@example.com"

PLACEHOLDER_USER = "NEW_USER"
PLACEHOLDER_SSH_KEY = "ssh-rsa AAAA... user@example.com"

ENV_NEW_USER = "BOOTSTRAP_NEW_USER"
ENV_SSH_KEY = "BOOTSTRAP_SSH_KEY"

DEFAULT_PACKAGES: List[str] = [
    "locales",
    "vim",
    "zsh",
    "curl",
    "fail2ban",
    "ufw",
    "unattended-upgrades",
    "apt-listchanges",
    "apt-transport-https",
    "ca-certificates",
]


@dataclass
class BootstrapConfig:
    """Everything the bootstrap steps need to know about the target host."""

    new_user: str = NEW_USER
    authorized_ssh_key: str = AUTHORIZED_SSH_KEY
    packages: List[str] = field(default_factory=lambda: list(DEFAULT_PACKAGES))
    locale: str = "en_US.UTF-8"
    timezone: str = "UTC"
    user_shell: str = "/bin/zsh"
    reboot_time: str = "02:00"

    # Paths and files
    locale_gen: Path = Path("/etc/locale.gen")
    sudoers_dir: Path = Path("/etc/sudoers.d")
    home_root: Path = Path("/home")
    root_home: Path = Path("/root")
    fail2ban_jail: Path = Path("/etc/fail2ban/jail.local")
    apt_conf_dir: Path = Path("/etc/apt/apt.conf.d")
    sshd_config_dir: Path = Path("/etc/ssh/sshd_config.d")

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "BootstrapConfig":
        """Build a config from the module settings, letting the environment override them."""
        environ = os.environ if environ is None else environ
        return cls(
            new_user=environ.get(ENV_NEW_USER, NEW_USER),
            authorized_ssh_key=environ.get(ENV_SSH_KEY, AUTHORIZED_SSH_KEY),
            **overrides,
        )

    @property
    def user_home(self) -> Path:
        return self.home_root / self.new_user

    @property
    def sudoers_file(self) -> Path:
        return self.sudoers_dir / f"{self.new_user}-nopasswd"

    @property
    def sshd_dropin(self) -> Path:
        return self.sshd_config_dir / f"99-{self.new_user}-defaults.conf"

    def validate(self) -> None:
        """
        Reject placeholder or empty settings.

        Raises:
            ConfigurationError: If the username or key was not customized.
        """
        user = self.new_user.strip()
        if not user or user == PLACEHOLDER_USER:
            raise ConfigurationError(
                "Placeholder user detected. Please update the name in the "
                f"'NEW_USER' setting or export {ENV_NEW_USER}."
            )
        key = self.authorized_ssh_key.strip()
        if not key or key == PLACEHOLDER_SSH_KEY:
            raise ConfigurationError(
                "Placeholder SSH key detected. Please add your public key to the "
                f"'AUTHORIZED_SSH_KEY' setting or export {ENV_SSH_KEY}."
            )


# ----------------------------------------------------------------
# Static File Contents
# ----------------------------------------------------------------
def sudoers_content(user: str) -> str:
    return f"{user} ALL=(ALL) NOPASSWD: ALL\n"


def fail2ban_jail_content() -> str:
    return (
        "[DEFAULT]\n"
        "# Ban for 1 day\n"
        "bantime  = 1d\n"
        "# Find 3 failures within 10 minutes\n"
        "findtime = 10m\n"
        "maxretry = 3\n"
        "\n"
        "[sshd]\n"
        "enabled = true\n"
    )


def auto_upgrades_content() -> str:
    return (
        'APT::Periodic::Update-Package-Lists "1";\n'
        'APT::Periodic::Download-Upgradeable-Packages "1";\n'
        'APT::Periodic::Unattended-Upgrade "1";\n'
        'APT::Periodic::AutocleanInterval "7";\n'
    )


def unattended_upgrades_content(reboot_time: str = "02:00") -> str:
    # ${distro_codename} is expanded by unattended-upgrades, not by us.
    return (
        "// Automatically upgrade packages from these origin patterns\n"
        "Unattended-Upgrade::Origins-Pattern {\n"
        '      "origin=Debian,codename=${distro_codename},label=Debian";\n'
        '      "origin=Debian,codename=${distro_codename}-security,label=Debian-Security";\n'
        '      "origin=Debian,codename=${distro_codename}-updates,label=Debian";\n'
        "};\n"
        "\n"
        "// Other settings for good hygiene and stability\n"
        'Unattended-Upgrade::AutoFixInterruptedDpkg "true";\n'
        'Unattended-Upgrade::MinimalSteps "true";\n'
        'Unattended-Upgrade::InstallOnShutdown "false";\n'
        'Unattended-Upgrade::Mail "root";\n'
        'Unattended-Upgrade::MailReport "on-change";\n'
        'Unattended-Upgrade::Remove-Unused-Kernel-Packages "true";\n'
        'Unattended-Upgrade::Remove-New-Unused-Dependencies "true";\n'
        'Unattended-Upgrade::Remove-Unused-Dependencies "true";\n'
        'Unattended-Upgrade::Automatic-Reboot "true";\n'
        f'Unattended-Upgrade::Automatic-Reboot-Time "{reboot_time}";\n'
    )


def sshd_dropin_content() -> str:
    return (
        "# --- Custom SSH security settings ---\n"
        "PubkeyAuthentication yes\n"
        "PasswordAuthentication no\n"
        "PermitRootLogin prohibit-password\n"
        "ChallengeResponseAuthentication no\n"
    )
