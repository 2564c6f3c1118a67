import logging
import stat

import pytest

from sysadmin_toolkit.errors import StepError, ValidationError
from sysadmin_toolkit.provisioning import (
    MaintenanceManager,
    SecurityHardener,
    SystemUpdater,
    UserManager,
)

from conftest import KEY


def mode(path):
    return stat.S_IMODE(path.stat().st_mode)


# ----------------------------------------------------------------
# Packages, locale, timezone
# ----------------------------------------------------------------
def test_install_software_runs_apt_in_order(config, runner):
    SystemUpdater(config, runner).install_software()

    assert [c[:2] for c in runner.calls] == [
        ["apt-get", "update"],
        ["apt-get", "dist-upgrade"],
        ["apt-get", "upgrade"],
        ["apt-get", "install"],
    ]
    assert runner.calls[-1][3:] == config.packages
    assert runner.envs[1]["DEBIAN_FRONTEND"] == "noninteractive"


@pytest.mark.parametrize(
    "sub, message",
    [
        ("update", "Failed to update package lists."),
        ("dist-upgrade", "Failed to upgrade distribution."),
        ("upgrade", "Failed to upgrade packages."),
        ("install", "Failed to install essential packages."),
    ],
)
def test_install_software_aborts_on_any_apt_failure(config, runner, sub, message):
    runner.fail("apt-get", sub, returncode=100)

    with pytest.raises(StepError) as excinfo:
        SystemUpdater(config, runner).install_software()

    assert excinfo.value.operation == message
    assert excinfo.value.returncode == 100
    assert runner.calls[-1][1] == sub


def test_locale_is_uncommented_only_for_configured_locale(config, runner):
    updater = SystemUpdater(config, runner)

    assert updater.enable_locale() is True
    lines = config.locale_gen.read_text().splitlines()
    assert "en_US.UTF-8 UTF-8" in lines
    assert "# en_GB.UTF-8 UTF-8" in lines
    assert "# fr_FR.UTF-8 UTF-8" in lines

    assert updater.enable_locale() is False


def test_locale_and_timezone_commands(config, runner):
    SystemUpdater(config, runner).configure_locale_and_timezone()

    assert runner.calls == [
        ["locale-gen"],
        ["update-locale", "LANG=en_US.UTF-8"],
        ["timedatectl", "set-timezone", "UTC"],
    ]


def test_missing_locale_gen_aborts(config, runner):
    config.locale_gen.unlink()
    with pytest.raises(StepError):
        SystemUpdater(config, runner).configure_locale_and_timezone()
    assert runner.calls == []


# ----------------------------------------------------------------
# User account and sudo
# ----------------------------------------------------------------
def test_new_user_is_created_and_locked(config, runner):
    UserManager(config, runner).create_and_configure_user()

    assert ["useradd", "-m", "-s", "/bin/zsh", "alice"] in runner.calls
    assert ["passwd", "-l", "alice"] in runner.calls
    assert config.sudoers_file.read_text() == "alice ALL=(ALL) NOPASSWD: ALL\n"
    assert mode(config.sudoers_file) == 0o440


def test_existing_user_is_not_recreated(config, runner):
    runner.users.add("alice")

    UserManager(config, runner).create_and_configure_user()

    assert runner.commands("useradd") == []
    assert runner.commands("passwd") == []
    assert config.sudoers_file.exists()


def test_sudoers_is_validated_before_install(config, runner):
    UserManager(config, runner).create_and_configure_user()

    [visudo] = runner.commands("visudo")
    assert visudo[:3] == ["visudo", "-c", "-f"]
    assert visudo[3].endswith("alice-nopasswd.tmp")
    assert [p.name for p in config.sudoers_dir.iterdir()] == ["alice-nopasswd"]


def test_rejected_sudoers_is_not_installed(config, runner):
    runner.fail("visudo")

    with pytest.raises(StepError, match="passwordless sudo"):
        UserManager(config, runner).create_and_configure_user()

    assert list(config.sudoers_dir.iterdir()) == []


def test_useradd_failure_aborts_before_sudo(config, runner):
    runner.fail("useradd", returncode=9)

    with pytest.raises(StepError) as excinfo:
        UserManager(config, runner).create_and_configure_user()

    assert excinfo.value.returncode == 9
    assert runner.commands("passwd") == []
    assert not config.sudoers_dir.exists()


# ----------------------------------------------------------------
# SSH keys
# ----------------------------------------------------------------
def test_key_is_installed_with_strict_permissions(config, runner):
    UserManager(config, runner).add_ssh_key_for_user("alice", config.user_home)

    ssh_dir = config.user_home / ".ssh"
    auth_keys = ssh_dir / "authorized_keys"
    assert auth_keys.read_text() == KEY + "\n"
    assert mode(ssh_dir) == 0o700
    assert mode(auth_keys) == 0o600
    assert runner.calls == [["chown", "-R", "alice:alice", str(ssh_dir)]]


def test_existing_key_is_not_duplicated_but_permissions_are_fixed(
    config, runner, caplog
):
    ssh_dir = config.root_home / ".ssh"
    ssh_dir.mkdir(mode=0o755)
    auth_keys = ssh_dir / "authorized_keys"
    auth_keys.write_text("ssh-rsa AAAAother other@host\n" + KEY + "\n")
    auth_keys.chmod(0o644)
    caplog.set_level(logging.INFO)

    UserManager(config, runner).add_ssh_key_for_user("root", config.root_home)

    assert auth_keys.read_text().count(KEY) == 1
    assert len(auth_keys.read_text().splitlines()) == 2
    assert mode(ssh_dir) == 0o700
    assert mode(auth_keys) == 0o600
    assert "SSH key already exists for 'root'" in caplog.text


def test_key_is_appended_on_its_own_line(config, runner):
    ssh_dir = config.root_home / ".ssh"
    ssh_dir.mkdir()
    (ssh_dir / "authorized_keys").write_text("ssh-rsa AAAAother other@host")

    UserManager(config, runner).add_ssh_key_for_user("root", config.root_home)

    assert (ssh_dir / "authorized_keys").read_text().splitlines() == [
        "ssh-rsa AAAAother other@host",
        KEY,
    ]


# ----------------------------------------------------------------
# Firewall, fail2ban, unattended upgrades
# ----------------------------------------------------------------
def test_ufw_rules_then_enable(config, runner, caplog):
    caplog.set_level(logging.INFO)

    SecurityHardener(config, runner).configure_ufw()

    assert runner.calls == [
        ["ufw", "default", "deny"],
        ["ufw", "allow", "ssh"],
        ["ufw", "limit", "ssh"],
        ["ufw", "--force", "enable"],
        ["ufw", "status"],
    ]
    assert "UFW status: Status: active" in caplog.text


def test_ufw_failure_aborts(config, runner):
    runner.fail("ufw", "allow")
    with pytest.raises(StepError):
        SecurityHardener(config, runner).configure_ufw()
    assert ["ufw", "--force", "enable"] not in runner.calls


def test_fail2ban_jail_is_overwritten_and_service_restarted(config, runner):
    config.fail2ban_jail.parent.mkdir(parents=True)
    config.fail2ban_jail.write_text("[DEFAULT]\nbantime = 5m\n")

    SecurityHardener(config, runner).configure_fail2ban()

    assert "bantime  = 1d" in config.fail2ban_jail.read_text()
    assert runner.calls == [
        ["systemctl", "enable", "fail2ban"],
        ["systemctl", "restart", "fail2ban"],
    ]


def test_unattended_upgrades_files(config, runner):
    MaintenanceManager(config, runner).configure_unattended_upgrades()

    periodic = (config.apt_conf_dir / "20auto-upgrades").read_text()
    settings = (config.apt_conf_dir / "50unattended-upgrades").read_text()
    assert 'APT::Periodic::Unattended-Upgrade "1";' in periodic
    assert 'Unattended-Upgrade::AutoFixInterruptedDpkg "true";' in settings
    assert 'Unattended-Upgrade::Automatic-Reboot-Time "02:00";' in settings
    assert runner.calls == []


# ----------------------------------------------------------------
# SSH daemon hardening
# ----------------------------------------------------------------
def test_ssh_dropin_written_tested_and_reloaded(config, runner):
    SecurityHardener(config, runner).configure_secure_ssh()

    assert "PasswordAuthentication no" in config.sshd_dropin.read_text()
    assert config.sshd_dropin.name == "99-alice-defaults.conf"
    assert runner.calls == [
        ["sshd", "-t"],
        ["systemctl", "reload-or-restart", "sshd"],
    ]


def test_existing_dropin_is_left_alone(config, runner):
    config.sshd_config_dir.mkdir(parents=True)
    config.sshd_dropin.write_text("PasswordAuthentication no\n")

    SecurityHardener(config, runner).configure_secure_ssh()

    assert config.sshd_dropin.read_text() == "PasswordAuthentication no\n"
    assert ["sshd", "-t"] in runner.calls


def test_failed_config_test_rolls_back_without_restart(config, runner):
    runner.fail("sshd", "-t", returncode=255)

    with pytest.raises(ValidationError) as excinfo:
        SecurityHardener(config, runner).configure_secure_ssh()

    assert excinfo.value.returncode == 255
    assert not config.sshd_dropin.exists()
    assert runner.commands("systemctl") == []


def test_reload_failure_aborts(config, runner):
    runner.fail("systemctl", "reload-or-restart")
    with pytest.raises(StepError, match="Failed to reload SSH service"):
        SecurityHardener(config, runner).configure_secure_ssh()
    assert config.sshd_dropin.exists()
