# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

"""Data models shared by the execution pipeline and the sandbox runners."""

from enum import Enum, IntEnum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class IOMode(str, Enum):
    """How a confined program exchanges data with the judge."""

    STDIO = "stdio"
    FILEIO = "fileio"


class Phase(str, Enum):
    """A staging/invocation recipe sharing the pipeline skeleton."""

    COMPILE = "compile"
    RUN_STDIO = "run_stdio"
    RUN_FILEIO = "run_fileio"
    CHECK = "check"

    @property
    def io_mode(self) -> IOMode:
        return IOMode.FILEIO if self is Phase.RUN_FILEIO else IOMode.STDIO

    @property
    def role(self) -> str:
        """Name used in the sandbox hostname and cgroup."""
        if self is Phase.COMPILE:
            return "compiler"
        if self is Phase.CHECK:
            return "checker"
        return "runner"


class ExecutionStatus(IntEnum):
    """Terminal state of a confined process, numbered as the sandbox reports it.

    SUCCEEDED only means the process exited by itself; the exit code still has
    to be inspected.
    """

    UNKNOWN = 0
    SUCCEEDED = 1
    TIME_LIMIT_EXCEEDED = 2
    MEMORY_LIMIT_EXCEEDED = 3
    RUNTIME_ERROR = 4
    CANCELLED = 5
    OUTPUT_LIMIT_EXCEEDED = 6


class CheckerVerdict(IntEnum):
    """Exit codes of testlib-style checkers."""

    OK = 0
    WRONG_ANSWER = 1
    PRESENTATION_ERROR = 2
    FAIL = 3
    DIRT = 4
    POINTS = 7


class ResourceLimits(BaseModel):
    """Time, memory and process-count caps for one confined process."""

    model_config = ConfigDict(frozen=True)

    time_ms: int = Field(..., description="Wall-clock limit in milliseconds.")
    memory_bytes: int = Field(..., description="Memory limit in bytes.")
    process_count: int = Field(..., description="Maximum number of processes.")

    def is_valid(self) -> bool:
        return self.time_ms > 0 and self.memory_bytes > 0 and self.process_count > 0


class MountSpec(BaseModel):
    """A host directory exposed inside the sandbox."""

    model_config = ConfigDict(frozen=True)

    src: str = Field(..., description="Host path.")
    dst: str = Field(..., description="Path inside the confined root.")
    limit: int = Field(..., description="Byte quota of the mount.")


class UserIdentity(BaseModel):
    """Numeric identity of an account inside the confined root."""

    model_config = ConfigDict(frozen=True)

    uid: int
    gid: int


class InvocationSpec(BaseModel):
    """
    The fully resolved parameter set handed to the sandbox runner for one
    confined process execution.
    """

    model_config = ConfigDict(frozen=True)

    hostname: str
    cgroup: str
    chroot: str
    mounts: tuple[MountSpec, ...]
    executable: str
    parameters: tuple[str, ...]
    environments: tuple[str, ...]
    stdin: str | None = None
    stdout: str | None = None
    stderr: str | None = None
    time: int = Field(..., description="Time limit in milliseconds.")
    memory: int = Field(..., description="Memory limit in bytes.")
    process: int = Field(..., description="Process-count cap.")
    user: UserIdentity
    working_directory: str
    mount_proc: bool = True
    redirect_before_chroot: bool = True


class RawOutcome(BaseModel):
    """Measurement reported by the sandbox runner."""

    model_config = ConfigDict(frozen=True)

    status: ExecutionStatus
    exit_code: int
    time_ns: int
    memory_bytes: int


class NormalizedResult(BaseModel):
    """
    Judge-facing record of one pipeline invocation.
    """

    status: ExecutionStatus = Field(..., description="Verdict signal reported by the sandbox.")
    exit_code: int = Field(..., description="Exit code (or terminating signal) of the process.")
    time_ms: float = Field(..., description="Elapsed time in milliseconds.")
    memory_bytes: int = Field(..., description="Peak memory usage in bytes.")
    output: str = Field(default="", description="Captured program output, size-capped.")
    error: str = Field(default="", description="Captured standard error, size-capped.")

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCEEDED and self.exit_code == 0


class RunResult(BaseModel):
    """Result of running a candidate program."""

    result: NormalizedResult

    @computed_field  # type: ignore[prop-decorator]
    @property
    def output(self) -> str:
        return self.result.output

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error(self) -> str:
        return self.result.error


class CheckerResult(RunResult):
    """Result of running a checker over a candidate output."""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def verdict(self) -> CheckerVerdict | None:
        if self.result.status != ExecutionStatus.SUCCEEDED:
            return None
        try:
            return CheckerVerdict(self.result.exit_code)
        except ValueError:
            return None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def message(self) -> str:
        return self.result.output.strip()


class CompileRequest(BaseModel):
    phase: Literal[Phase.COMPILE] = Phase.COMPILE
    source_path: Path
    output_path: Path


class StdIORunRequest(BaseModel):
    phase: Literal[Phase.RUN_STDIO] = Phase.RUN_STDIO
    executable_path: Path
    input_path: Path


class FileIORunRequest(BaseModel):
    phase: Literal[Phase.RUN_FILEIO] = Phase.RUN_FILEIO
    executable_path: Path
    input_path: Path
    input_file_name: str
    output_file_name: str


class CheckerRequest(BaseModel):
    phase: Literal[Phase.CHECK] = Phase.CHECK
    checker_path: Path
    input_path: Path
    output_path: Path
    answer_path: Path


PhaseRequest = Annotated[
    Union[CompileRequest, StdIORunRequest, FileIORunRequest, CheckerRequest],
    Field(discriminator="phase"),
]
