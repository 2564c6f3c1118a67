import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from sysadmin_toolkit.config import BootstrapConfig
from sysadmin_toolkit.errors import ExecutionError

KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyForTests alice@laptop"

LOCALE_GEN = (
    "# This file lists locales that you wish to have built.\n"
    "# en_GB.UTF-8 UTF-8\n"
    "# en_US.UTF-8 UTF-8\n"
    "# fr_FR.UTF-8 UTF-8\n"
)


class FakeRunner:
    """Records commands and answers them like a small, well-behaved host."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.envs: List[Optional[Dict[str, str]]] = []
        self.users: Set[str] = {"root"}
        self.failures: Dict[Tuple[str, ...], int] = {}

    def fail(self, *prefix: str, returncode: int = 1) -> None:
        self.failures[tuple(prefix)] = returncode

    def commands(self, name: str) -> List[List[str]]:
        return [c for c in self.calls if c[0] == name]

    def _returncode(self, cmd: List[str]) -> int:
        for prefix, code in self.failures.items():
            if tuple(cmd[: len(prefix)]) == prefix:
                return code
        if cmd[0] == "id":
            return 0 if cmd[1] in self.users else 1
        if cmd[0] == "useradd":
            self.users.add(cmd[-1])
        return 0

    def __call__(self, cmd, env=None, check=True, input=None, timeout=None):
        self.calls.append(list(cmd))
        self.envs.append(env)
        code = self._returncode(list(cmd))
        stdout = "Status: active\n" if cmd[:2] == ["ufw", "status"] else ""
        if check and code != 0:
            raise ExecutionError(" ".join(cmd), code, "simulated failure")
        return subprocess.CompletedProcess(cmd, code, stdout, "")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def config(tmp_path: Path) -> BootstrapConfig:
    etc = tmp_path / "etc"
    etc.mkdir()
    (etc / "locale.gen").write_text(LOCALE_GEN)
    (tmp_path / "root").mkdir()
    (tmp_path / "home" / "alice").mkdir(parents=True)
    return BootstrapConfig(
        new_user="alice",
        authorized_ssh_key=KEY,
        locale_gen=etc / "locale.gen",
        sudoers_dir=etc / "sudoers.d",
        home_root=tmp_path / "home",
        root_home=tmp_path / "root",
        fail2ban_jail=etc / "fail2ban" / "jail.local",
        apt_conf_dir=etc / "apt" / "apt.conf.d",
        sshd_config_dir=etc / "ssh" / "sshd_config.d",
    )


def snapshot(root: Path) -> Dict[str, Tuple[str, int]]:
    """Contents and permission bits of every file under ``root``."""
    return {
        str(p.relative_to(root)): (p.read_text(), p.stat().st_mode & 0o777)
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }
