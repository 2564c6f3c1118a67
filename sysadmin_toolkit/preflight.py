"""Checks that must pass before the bootstrap touches the system."""

import logging
import os
from typing import Callable

from sysadmin_toolkit.config import BootstrapConfig
from sysadmin_toolkit.errors import PreconditionError

logger = logging.getLogger(__name__)


class PreflightChecker:
    """Verifies privileges and configuration before any mutation."""

    def __init__(self, geteuid: Callable[[], int] = os.geteuid) -> None:
        self._geteuid = geteuid

    def check_root(self) -> None:
        """
        Raises:
            PreconditionError: If the effective user is not root.
        """
        if self._geteuid() != 0:
            raise PreconditionError("This script must be run as root. Please use sudo.")
        logger.debug("Root privileges confirmed.")

    def check_placeholders(self, config: BootstrapConfig) -> None:
        config.validate()

    def run(self, config: BootstrapConfig) -> None:
        self.check_root()
        self.check_placeholders(config)
