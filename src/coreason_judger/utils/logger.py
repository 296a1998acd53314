# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

import sys
from pathlib import Path

from loguru import logger

LOG_FILE_NAME = "app.log"


def setup_logger(log_dir: Path = Path("logs"), level: str = "INFO") -> None:
    """Route logs to stderr and to a rotated JSON file under ``log_dir``.

    Previously configured sinks are removed, so calling this again re-targets
    the logger instead of duplicating output.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        log_dir / LOG_FILE_NAME,
        level=level,
        rotation="10 MB",
        retention=5,
        serialize=True,
        enqueue=True,
    )


__all__ = ["logger", "setup_logger"]
