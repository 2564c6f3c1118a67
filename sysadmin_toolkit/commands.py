"""External command execution."""

import logging
import os
import subprocess
from typing import Callable, Dict, List, Optional

from sysadmin_toolkit.errors import ExecutionError

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 1800  # seconds; a full dist-upgrade can be slow

Runner = Callable[..., subprocess.CompletedProcess]


def noninteractive_env() -> Dict[str, str]:
    """Return a copy of the environment that keeps apt from prompting."""
    env = os.environ.copy()
    env["DEBIAN_FRONTEND"] = "noninteractive"
    return env


def run_command(
    cmd: List[str],
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
    input: Optional[str] = None,
    timeout: int = COMMAND_TIMEOUT,
) -> subprocess.CompletedProcess:
    """
    Execute a system command and capture its output.

    Args:
        cmd: Command to execute
        env: Environment variables, the current environment by default
        check: Whether to raise on a non-zero exit status
        input: Text passed to the command's stdin
        timeout: Command timeout in seconds

    Returns:
        subprocess.CompletedProcess object

    Raises:
        ExecutionError: If the command fails, times out or cannot be started
    """
    cmd_str = " ".join(cmd)
    logger.debug(f"Executing: {cmd_str}")

    try:
        result = subprocess.run(
            cmd,
            env=env or os.environ.copy(),
            input=input,
            text=True,
            capture_output=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise ExecutionError(cmd_str, output=f"timed out after {timeout} seconds")
    except OSError as e:
        raise ExecutionError(cmd_str, output=str(e))

    if check and result.returncode != 0:
        output = (result.stderr or result.stdout or "").strip()
        raise ExecutionError(cmd_str, result.returncode, output)
    return result
