#!/usr/bin/env python3
"""
script-template
---------------

Starter template for new scripts. Sets up the per-run log file and the
start/finish log lines; put the script's work in ``run``.

Exit Codes:
  0: Success
"""

import logging
import sys
from typing import Optional

from sysadmin_toolkit.runlog import RunContext, close_logging, setup_logging

SCRIPT_NAME = "script-template"


def run(logger: logging.Logger) -> None:
    pass


def main(log_dir: Optional[str] = None) -> int:
    context = (
        RunContext.create(SCRIPT_NAME, log_dir)
        if log_dir
        else RunContext.create(SCRIPT_NAME)
    )
    logger = setup_logging(context)
    try:
        logger.info(f"Script started, logging output to: {context.log_file}")

        run(logger)

        logger.info("✅ ✅ ✅")
        logger.info("-" * 66)
        logger.info(f"Script completed, output logged to: {context.log_file}")
        logger.info("-" * 66)
        return 0
    finally:
        close_logging(logger)


if __name__ == "__main__":
    sys.exit(main())
