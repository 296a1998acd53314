# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

"""Errors raised by the execution pipeline.

Limit violations of the confined process (time, memory, runtime error) are
verdicts carried in ``RawOutcome.status`` and are never raised.
"""


class JudgerError(Exception):
    """Base class for pipeline errors."""


class WorkspaceCreationError(JudgerError):
    """The task directory already exists or cannot be created."""


class StagingError(JudgerError):
    """An input artifact is missing, unreadable or cannot be placed."""


class InvocationError(JudgerError):
    """The invocation parameters were rejected."""


class CollaboratorFailure(JudgerError):
    """The sandbox runner itself failed while starting or awaiting a process."""


class CaptureError(JudgerError):
    """A captured stream required for the verdict could not be read."""
