# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

"""
coreason-judger
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import JudgerConfig
from .exceptions import (
    CaptureError,
    CollaboratorFailure,
    InvocationError,
    JudgerError,
    StagingError,
    WorkspaceCreationError,
)
from .factory import RunnerFactory
from .judger import Judger, JudgerAsync
from .models import (
    CheckerResult,
    CheckerVerdict,
    ExecutionStatus,
    InvocationSpec,
    NormalizedResult,
    RawOutcome,
    ResourceLimits,
    RunResult,
)
from .pipeline import ExecutionPipeline, PipelineState
from .runtime import SandboxProcess, SandboxRunner
from .runtimes.local import LocalRuntime

__all__ = [
    "CaptureError",
    "CheckerResult",
    "CheckerVerdict",
    "CollaboratorFailure",
    "ExecutionPipeline",
    "ExecutionStatus",
    "InvocationError",
    "InvocationSpec",
    "Judger",
    "JudgerAsync",
    "JudgerConfig",
    "JudgerError",
    "LocalRuntime",
    "NormalizedResult",
    "PipelineState",
    "RawOutcome",
    "ResourceLimits",
    "RunResult",
    "RunnerFactory",
    "SandboxProcess",
    "SandboxRunner",
    "StagingError",
    "WorkspaceCreationError",
]
