# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

import secrets

TASK_ID_BYTES = 16


def new_task_id() -> str:
    """Returns a fresh 128-bit task identity as 32 hex characters."""
    return secrets.token_hex(TASK_ID_BYTES)


def sandbox_hostname(prefix: str, role: str, task_id: str) -> str:
    return f"{prefix}-{role}-{task_id}"


def cgroup_name(role: str, task_id: str) -> str:
    return f"{role}-{task_id}"
